"""Tool catalog for the chat editor."""

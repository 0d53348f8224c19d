"""Prompt templates for the chat editor."""

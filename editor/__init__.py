"""Conversational syllabind editing agent."""

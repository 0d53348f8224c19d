"""Shared services: model provider adapter and web search."""

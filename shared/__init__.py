"""Shared infrastructure: ORM models, repositories, external services."""

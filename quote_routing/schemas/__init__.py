"""Pydantic and value schemas."""

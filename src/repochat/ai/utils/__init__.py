"""Helper utilities for AI operations."""

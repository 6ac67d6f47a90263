"""Shared helpers: paths, formatting, logging and manifest validation."""

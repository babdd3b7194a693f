"""Shared helpers: order statistics and logging configuration."""

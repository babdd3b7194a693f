"""
gamme_advisor.reporting — Flat exports and terminal tables for results.

Modules:
  export     — CSV/JSON writers and flatten helpers (one row per product).
  formatters — ASCII terminal tables for Typer CLI commands.
"""

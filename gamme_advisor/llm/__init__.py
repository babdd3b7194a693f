"""Chat-completion HTTP client (OpenRouter-compatible)."""

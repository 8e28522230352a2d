"""Command-line interface for openidgate."""

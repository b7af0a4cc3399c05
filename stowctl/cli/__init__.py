"""Command-line interface for stowctl."""

"""Command line interface for autofin."""

"""Command-line interface for Gainday."""

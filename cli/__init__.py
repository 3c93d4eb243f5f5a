"""Command line interface for chorus."""

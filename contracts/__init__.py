"""Versioned API contracts."""

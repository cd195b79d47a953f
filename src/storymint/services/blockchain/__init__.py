"""Blockchain adapter services."""

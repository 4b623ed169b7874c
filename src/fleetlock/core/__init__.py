"""Ambient infrastructure: errors, logging and settings."""

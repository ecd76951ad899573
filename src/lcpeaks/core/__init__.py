"""Core models, configuration and exceptions."""

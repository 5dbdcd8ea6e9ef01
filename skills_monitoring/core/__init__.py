"""Core configuration, enumerations and logging utilities."""

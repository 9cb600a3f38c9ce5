"""Confgate - policy tests for structured configuration files."""

__version__ = "0.1.0"

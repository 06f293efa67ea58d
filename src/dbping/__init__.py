"""Database keep-alive and connectivity checks."""

__version__ = "0.1.0"

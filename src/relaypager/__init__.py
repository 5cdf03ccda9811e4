"""Bidirectional cursor pagination over pluggable data sources."""

__version__ = "0.1.0"

"""Notion <-> Google Keep bidirectional sync service."""

__version__ = "0.1.0"

"""
Database package for Terminus.

This package provides SQLite-based storage slots for saves and engagement logs.
"""

from .manager import DatabaseManager

__all__ = ["DatabaseManager"]

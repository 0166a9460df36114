"""
Database Package

Relational backend for the match store.
"""

from .database import Database
from .match_repository import SqliteMatchStore
from .schema import init_schema

__all__ = [
    "Database",
    "SqliteMatchStore",
    "init_schema",
]

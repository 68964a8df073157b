"""Persistence backends for series and fiscal documents."""

from .base import DocumentStore, SeriesUnitOfWork
from .memory import MemoryDocumentStore
from .sqlite import SqliteDocumentStore

__all__ = [
    "DocumentStore",
    "MemoryDocumentStore",
    "SeriesUnitOfWork",
    "SqliteDocumentStore",
]

"""Persistence backends for analysis results."""

from .base import ResultStore
from .filesystem import FileSystemResultStore

__all__ = ["FileSystemResultStore", "ResultStore"]

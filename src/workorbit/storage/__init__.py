"""Persistence for board entities and their history."""

from workorbit.storage.interface import BoardStorage
from workorbit.storage.sqlite_store import SQLiteBoardStorage, open_storage

__all__ = ["BoardStorage", "SQLiteBoardStorage", "open_storage"]

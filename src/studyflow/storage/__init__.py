import os
from typing import Optional, Union

from .base import BaseStorage
from .in_memory import InMemoryStorage
from .sqlite import SQLiteStorage


def get_storage(storage: Optional[Union[str, BaseStorage]]) -> BaseStorage:
    """
    Resolves a storage argument to a storage instance.

    ``None`` gives a fresh :class:`InMemoryStorage`, a string is treated as a
    SQLite URL or file path, and a storage instance is returned as is.
    """
    if storage is None:
        return InMemoryStorage()
    if isinstance(storage, str):
        return SQLiteStorage(storage)
    if isinstance(storage, BaseStorage):
        return storage
    raise TypeError(f"Unsupported storage type: {type(storage).__name__}")


def create_sqlite_url(directory: str, name: str) -> str:
    """
    Builds a ``sqlite:///`` URL for the database ``<directory>/<name>.db``.

    The directory is created if it does not exist.
    """
    os.makedirs(directory, exist_ok=True)
    path = os.path.abspath(os.path.join(directory, f"{name}.db"))
    return f"sqlite:///{path}"


__all__ = [
    "BaseStorage",
    "InMemoryStorage",
    "SQLiteStorage",
    "create_sqlite_url",
    "get_storage",
]

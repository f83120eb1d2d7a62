from __future__ import annotations


class DatabaseError(Exception):
    """Base class for embedded_json_db errors."""


class NotFoundError(DatabaseError):
    """Referenced path, key or element does not exist."""


class TypeMismatchError(DatabaseError):
    """Node at a path has the wrong shape (e.g. not a list)."""


class ConfigurationError(DatabaseError):
    """Operation conflicts with the database options or is misconfigured."""


class PreconditionError(DatabaseError):
    """Required argument missing or invalid."""


class StorageError(DatabaseError):
    """Backing file could not be read or parsed."""

from .batch import Operation, OpKind, WriteMode
from .database import Database
from .errors import (
    ConfigurationError,
    DatabaseError,
    NotFoundError,
    PreconditionError,
    StorageError,
    TypeMismatchError,
)
from .index import IndexDefinition, IndexKind, InMemoryIndex
from .options import DbOptions
from .query import (
    Aggregation,
    AggregationResult,
    Page,
    PageResult,
    Pagination,
    QueryResult,
    QueryStats,
    Sort,
)

__all__ = [
    "Aggregation",
    "AggregationResult",
    "ConfigurationError",
    "Database",
    "DatabaseError",
    "DbOptions",
    "IndexDefinition",
    "IndexKind",
    "InMemoryIndex",
    "NotFoundError",
    "OpKind",
    "Operation",
    "Page",
    "PageResult",
    "Pagination",
    "PreconditionError",
    "QueryResult",
    "QueryStats",
    "Sort",
    "StorageError",
    "TypeMismatchError",
    "WriteMode",
]

__version__ = "0.1.0"

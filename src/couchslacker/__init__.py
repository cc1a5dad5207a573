"""
couchslacker: typed CouchDB documents with schema reconciliation.

couchslacker maps pydantic document classes onto CouchDB databases and keeps
databases and design documents in line with the class declarations.
"""

__version__ = "0.1.0"
__author__ = "couchslacker Contributors"

from .config import CouchSlackerConfig
from .database import CouchDbClient, DocumentFindRequest
from .document import Document, database, view
from .exceptions import (
    ConfigurationError,
    CouchSlackerError,
    MetadataResolutionError,
    SchemaCreationError,
    SchemaDropError,
    SchemaError,
    SchemaValidationError,
    StoreError,
)
from .schema import SchemaOperation, SchemaReconciler

__all__ = [
    "__version__",
    "CouchSlackerConfig",
    "CouchDbClient",
    "DocumentFindRequest",
    "Document",
    "database",
    "view",
    "CouchSlackerError",
    "ConfigurationError",
    "MetadataResolutionError",
    "SchemaError",
    "SchemaValidationError",
    "SchemaCreationError",
    "SchemaDropError",
    "StoreError",
    "SchemaOperation",
    "SchemaReconciler",
]

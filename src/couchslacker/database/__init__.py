"""
CouchDB integration package for couchslacker.

This package provides:
- Async CouchDB HTTP client with basic authentication
- Database and design document operations
- Document read, save, delete, bulk read and Mango find
"""

from .client import CouchDbClient
from .structure import BulkGetResponse, DocumentFindRequest

__all__ = [
    "CouchDbClient",
    "BulkGetResponse",
    "DocumentFindRequest",
]

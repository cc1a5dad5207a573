"""
Exception classes for couchslacker.
"""

from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional


class CouchSlackerError(Exception):
    """Base exception for all couchslacker errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        result = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            result += f" [{details_str}]"
        if self.cause:
            result += f" (caused by: {self.cause})"
        return result


class ConfigurationError(CouchSlackerError):
    """Raised when there's an error in configuration."""

    pass


class MetadataResolutionError(CouchSlackerError):
    """Raised when a document class lacks the declarations needed for mapping."""

    def __init__(self, entity: str, reason: str) -> None:
        super().__init__(
            f"Cannot resolve metadata for '{entity}': {reason}",
            {"entity": entity},
        )
        self.entity = entity
        self.reason = reason


class StoreError(CouchSlackerError):
    """Raised when there's an error talking to CouchDB."""

    pass


class StoreTransportError(StoreError):
    """Raised when CouchDB can't be reached or the request fails in transit."""

    pass


class StoreResponseError(StoreError):
    """Raised when CouchDB answers with an unexpected status or body."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ) -> None:
        details = {}
        if status_code:
            details["status_code"] = status_code
        if response_body:
            details["response_body"] = response_body

        super().__init__(message, details)
        self.status_code = status_code
        self.response_body = response_body


class DocumentNotFoundError(StoreError):
    """Raised when a requested document does not exist."""

    def __init__(self, database: str, doc_id: str) -> None:
        super().__init__(
            f"Document '{doc_id}' not found in database '{database}'",
            {"database": database, "id": doc_id},
        )
        self.database = database
        self.doc_id = doc_id


class DocumentConflictError(StoreError):
    """Raised when a document update is rejected because of a stale revision."""

    def __init__(self, database: str, doc_id: str) -> None:
        super().__init__(
            f"Document update conflict for '{doc_id}' in database '{database}'",
            {"database": database, "id": doc_id},
        )
        self.database = database
        self.doc_id = doc_id


class SchemaFailureKind(str, Enum):
    """What went wrong while reconciling an entity's schema."""

    MISSING_DATABASE = "missing_database"
    MISSING_OR_DIVERGENT_DESIGN = "missing_or_divergent_design"
    DATABASE_CREATE_FAILED = "database_create_failed"
    DESIGN_WRITE_FAILED = "design_write_failed"
    DELETE_FAILED = "delete_failed"
    RECREATE_FAILED = "recreate_failed"


class SchemaError(CouchSlackerError):
    """Raised when the remote schema can't be brought in line with declarations."""

    allowed_kinds: FrozenSet[SchemaFailureKind] = frozenset(SchemaFailureKind)

    def __init__(
        self,
        kind: SchemaFailureKind,
        entity: str,
        database: str,
        design: Optional[str] = None,
        views: Optional[List[str]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        if kind not in self.allowed_kinds:
            raise ValueError(f"{self.__class__.__name__} does not accept kind {kind}")

        details: Dict[str, Any] = {"entity": entity, "database": database}
        if design:
            details["design"] = design
        if views:
            details["views"] = ",".join(views)

        super().__init__(
            f"Schema {kind.value.replace('_', ' ')} for entity '{entity}'",
            details,
            cause,
        )
        self.kind = kind
        self.entity = entity
        self.database = database
        self.design = design
        self.views = list(views or [])


class SchemaValidationError(SchemaError):
    """Raised when the remote schema does not match the declared one."""

    allowed_kinds = frozenset({
        SchemaFailureKind.MISSING_DATABASE,
        SchemaFailureKind.MISSING_OR_DIVERGENT_DESIGN,
    })


class SchemaCreationError(SchemaError):
    """Raised when a missing database or design document can't be created."""

    allowed_kinds = frozenset({
        SchemaFailureKind.DATABASE_CREATE_FAILED,
        SchemaFailureKind.DESIGN_WRITE_FAILED,
    })


class SchemaDropError(SchemaError):
    """Raised when dropping and recreating a database fails."""

    allowed_kinds = frozenset({
        SchemaFailureKind.DELETE_FAILED,
        SchemaFailureKind.RECREATE_FAILED,
        SchemaFailureKind.DESIGN_WRITE_FAILED,
    })

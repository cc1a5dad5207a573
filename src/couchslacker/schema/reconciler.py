"""
Schema reconciliation core logic for couchslacker.

Brings database existence and design documents in CouchDB in line with the
declarations of document classes, according to the configured operation.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, List, Sequence

from ..exceptions import (
    SchemaCreationError,
    SchemaDropError,
    SchemaError,
    SchemaFailureKind,
    SchemaValidationError,
    StoreError,
)
from .comparator import ComparisonStatus, compare_designs
from .metadata import EntityMetadata
from .operations import SchemaOperation

if TYPE_CHECKING:
    from ..database.client import CouchDbClient


logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    """Result of reconciling one document class."""

    entity: str
    database: str
    design: str
    operation: SchemaOperation
    actions: List[str] = field(default_factory=list)
    execution_time_ms: float = 0.0

    @property
    def changed(self) -> bool:
        """Check if remote state was modified."""
        return bool(self.actions)


class SchemaReconciler:
    """
    Reconciles remote CouchDB schema with document class declarations.

    Entities are processed one by one in the given order. The first failure
    stops the whole call and is raised to the caller; no state is kept
    between calls, so every call re-reads the remote state.
    """

    def __init__(self, client: "CouchDbClient", operation: SchemaOperation = SchemaOperation.VALIDATE):
        self.client = client
        self.operation = SchemaOperation(operation)

        handlers: Dict[SchemaOperation, Callable[[EntityMetadata, ReconciliationResult], Awaitable[None]]] = {
            SchemaOperation.NONE: self._skip,
            SchemaOperation.VALIDATE: self._validate,
            SchemaOperation.CREATE: self._create,
            SchemaOperation.DROP: self._drop,
        }
        self._handler = handlers[self.operation]

    async def process(self, entity_types: Sequence[type]) -> List[ReconciliationResult]:
        """
        Reconcile the schema of each document class.

        Args:
            entity_types: Document classes, processed in order

        Returns:
            One ReconciliationResult per document class

        Raises:
            MetadataResolutionError: If a class can't be mapped
            SchemaError: If validation, creation or drop fails
            StoreError: If CouchDB can't be queried
        """
        results = []

        for entity_type in entity_types:
            metadata = self.client.get_entity_metadata(entity_type)
            start_time = time.perf_counter()

            result = ReconciliationResult(
                entity=metadata.entity_name,
                database=metadata.database,
                design=metadata.design_name,
                operation=self.operation,
            )

            try:
                await self._handler(metadata, result)
            except StoreError as e:
                # Unclassified store failures keep their type
                e.details.setdefault("entity", metadata.entity_name)
                e.details.setdefault("database", metadata.database)
                e.details.setdefault("design", metadata.design_name)
                logger.error(f"Schema {self.operation.value} failed for {metadata.entity_name}: {e}")
                raise
            except SchemaError as e:
                logger.error(f"Schema {self.operation.value} failed for {metadata.entity_name}: {e}")
                raise

            result.execution_time_ms = (time.perf_counter() - start_time) * 1000
            results.append(result)

            if self.operation != SchemaOperation.NONE:
                logger.info(
                    f"Schema {self.operation.value} completed for {metadata.entity_name} "
                    f"(database={metadata.database}, actions={result.actions or 'none'}, "
                    f"{result.execution_time_ms:.1f}ms)"
                )

        return results

    async def _skip(self, metadata: EntityMetadata, result: ReconciliationResult) -> None:
        logger.debug(f"Schema operation is none, skipping {metadata.entity_name}")

    async def _validate(self, metadata: EntityMetadata, result: ReconciliationResult) -> None:
        if not await self.client.database_exists(metadata):
            raise SchemaValidationError(
                SchemaFailureKind.MISSING_DATABASE,
                metadata.entity_name,
                metadata.database,
            )

        observed = await self.client.read_design_safely(metadata.design_name, metadata.database)
        comparison = compare_designs(metadata.expected_design(), observed)
        if comparison.status != ComparisonStatus.MATCH:
            raise SchemaValidationError(
                SchemaFailureKind.MISSING_OR_DIVERGENT_DESIGN,
                metadata.entity_name,
                metadata.database,
                design=metadata.design_name,
                views=comparison.differing_views,
            )

    async def _create(self, metadata: EntityMetadata, result: ReconciliationResult) -> None:
        if await self.client.database_exists(metadata):
            logger.debug(f"Database '{metadata.database}' exists, not creating")
        else:
            try:
                await self.client.create_database(metadata)
            except StoreError as e:
                raise SchemaCreationError(
                    SchemaFailureKind.DATABASE_CREATE_FAILED,
                    metadata.entity_name,
                    metadata.database,
                    cause=e,
                ) from e
            result.actions.append("create_database")

        expected = metadata.expected_design()
        observed = await self.client.read_design_safely(metadata.design_name, metadata.database)
        comparison = compare_designs(expected, observed)
        if not comparison.needs_write:
            logger.debug(f"Design '{metadata.design_name}' in '{metadata.database}' is up to date")
            return

        if comparison.status == ComparisonStatus.MISMATCH:
            logger.info(
                f"Design '{metadata.design_name}' in '{metadata.database}' differs "
                f"in views {comparison.differing_views}, overwriting"
            )
        try:
            await self.client.write_design(metadata.database, expected)
        except StoreError as e:
            raise SchemaCreationError(
                SchemaFailureKind.DESIGN_WRITE_FAILED,
                metadata.entity_name,
                metadata.database,
                design=metadata.design_name,
                cause=e,
            ) from e
        result.actions.append("write_design")

    async def _drop(self, metadata: EntityMetadata, result: ReconciliationResult) -> None:
        try:
            if await self.client.database_exists(metadata):
                await self.client.delete_database(metadata)
                result.actions.append("delete_database")
        except StoreError as e:
            raise SchemaDropError(
                SchemaFailureKind.DELETE_FAILED,
                metadata.entity_name,
                metadata.database,
                cause=e,
            ) from e

        try:
            await self.client.create_database(metadata)
        except StoreError as e:
            raise SchemaDropError(
                SchemaFailureKind.RECREATE_FAILED,
                metadata.entity_name,
                metadata.database,
                cause=e,
            ) from e
        result.actions.append("create_database")

        # Freshly created database has no design documents
        try:
            await self.client.write_design(metadata.database, metadata.expected_design())
        except StoreError as e:
            raise SchemaDropError(
                SchemaFailureKind.DESIGN_WRITE_FAILED,
                metadata.entity_name,
                metadata.database,
                design=metadata.design_name,
                cause=e,
            ) from e
        result.actions.append("write_design")

"""
Entity metadata resolution for couchslacker.

Reads the mapping declarations of a document class once and caches the
result for the lifetime of the registry.
"""

import json
import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Type

from pydantic import BaseModel

from ..document import (
    DATABASE_ATTRIBUTE,
    ID_ALIAS,
    REVISION_ALIAS,
    VIEWS_ATTRIBUTE,
    DatabaseDeclaration,
)
from ..exceptions import MetadataResolutionError
from ..design import DesignDocument, View


logger = logging.getLogger(__name__)


DATA_VIEW = "data"
COUNT_REDUCE = "_count"


@dataclass(frozen=True)
class EntityMetadata:
    """Static description of one document class."""

    entity_type: type
    database: str
    id_field: str
    revision_field: str
    design_name: str
    views: Tuple[View, ...]
    shards: int
    replicas: int
    partitioned: bool
    type_field: Optional[str] = None
    type_value: Optional[str] = None

    @property
    def entity_name(self) -> str:
        """Name of the document class."""
        return self.entity_type.__name__

    def expected_design(self) -> DesignDocument:
        """Design document implied by the declarations."""
        return DesignDocument(self.design_name, self.views)


def data_view(type_field: Optional[str] = None, type_value: Optional[str] = None) -> View:
    """The implicit view listing and counting every document of an entity."""
    if type_field and type_value:
        map_function = (
            f"function(doc){{if(doc[{json.dumps(type_field)}] == {json.dumps(type_value)})"
            f"{{emit(null);}}}}"
        )
    else:
        map_function = "function(doc){emit(null);}"
    return View(DATA_VIEW, map_function, COUNT_REDUCE)


class MetadataRegistry:
    """
    Read-through cache of entity metadata keyed by document class.

    Creation parameters not given in a class declaration fall back to the
    registry defaults.
    """

    def __init__(
        self,
        default_shards: int = 8,
        default_replicas: int = 3,
        default_partitioned: bool = False,
    ):
        self.default_shards = default_shards
        self.default_replicas = default_replicas
        self.default_partitioned = default_partitioned

        self._cache: Dict[type, EntityMetadata] = {}
        self._lock = threading.Lock()

    def resolve(self, entity_type: Type) -> EntityMetadata:
        """
        Get metadata for a document class, resolving it on first use.

        Raises:
            MetadataResolutionError: If the class can't be mapped
        """
        metadata = self._cache.get(entity_type)
        if metadata is not None:
            return metadata

        with self._lock:
            metadata = self._cache.get(entity_type)
            if metadata is None:
                metadata = self._build(entity_type)
                self._cache[entity_type] = metadata
                logger.debug(
                    f"Resolved metadata for {metadata.entity_name}: "
                    f"database={metadata.database}, design={metadata.design_name}, "
                    f"views={[v.name for v in metadata.views]}"
                )
        return metadata

    def is_cached(self, entity_type: Type) -> bool:
        """Check if metadata for a class has been resolved already."""
        return entity_type in self._cache

    def clear(self) -> None:
        """Drop all cached metadata."""
        with self._lock:
            self._cache.clear()

    def _build(self, entity_type: Type) -> EntityMetadata:
        entity_name = getattr(entity_type, "__name__", repr(entity_type))

        if not isinstance(entity_type, type) or not issubclass(entity_type, BaseModel):
            raise MetadataResolutionError(entity_name, "not a pydantic model")

        declaration: Optional[DatabaseDeclaration] = getattr(
            entity_type, DATABASE_ATTRIBUTE, None
        )
        if declaration is None:
            raise MetadataResolutionError(entity_name, "missing @database declaration")
        if not declaration.name or not declaration.name.strip():
            raise MetadataResolutionError(entity_name, "database name is empty")
        if not declaration.design:
            raise MetadataResolutionError(entity_name, "design document name is empty")
        if bool(declaration.type_field) != bool(declaration.type_value):
            raise MetadataResolutionError(
                entity_name, "type_field and type_value must be declared together"
            )

        id_field = self._field_for_alias(entity_type, ID_ALIAS)
        if id_field is None:
            raise MetadataResolutionError(entity_name, f"no field aliased '{ID_ALIAS}'")
        revision_field = self._field_for_alias(entity_type, REVISION_ALIAS)
        if revision_field is None:
            raise MetadataResolutionError(
                entity_name, f"no field aliased '{REVISION_ALIAS}'"
            )

        views = (data_view(declaration.type_field, declaration.type_value),) + tuple(
            getattr(entity_type, VIEWS_ATTRIBUTE, ())
        )
        seen = set()
        for declared in views:
            if declared.name in seen:
                raise MetadataResolutionError(
                    entity_name, f"view '{declared.name}' declared more than once"
                )
            if not declared.map or not declared.map.strip():
                raise MetadataResolutionError(
                    entity_name, f"view '{declared.name}' has no map function"
                )
            seen.add(declared.name)

        return EntityMetadata(
            entity_type=entity_type,
            database=declaration.name,
            id_field=id_field,
            revision_field=revision_field,
            design_name=declaration.design,
            views=views,
            shards=self.default_shards if declaration.shards is None else declaration.shards,
            replicas=(
                self.default_replicas if declaration.replicas is None else declaration.replicas
            ),
            partitioned=(
                self.default_partitioned
                if declaration.partitioned is None
                else declaration.partitioned
            ),
            type_field=declaration.type_field,
            type_value=declaration.type_value,
        )

    @staticmethod
    def _field_for_alias(entity_type: Type[BaseModel], alias: str) -> Optional[str]:
        for name, field in entity_type.model_fields.items():
            if field.alias == alias:
                return name
        return None

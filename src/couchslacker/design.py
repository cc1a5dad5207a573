"""
Design document and view value types.

A design document groups named map/reduce views. Two design documents are
equal when they carry the same set of views, regardless of declaration order.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple


DESIGN_PREFIX = "_design/"


@dataclass(frozen=True)
class View:
    """A named map function with an optional reduce function."""

    name: str
    map: str
    reduce: Optional[str] = None

    def __post_init__(self):
        # "" and None both mean no reduction
        if not self.reduce:
            object.__setattr__(self, "reduce", None)

    def to_json(self) -> Dict[str, str]:
        """Convert to the CouchDB view definition."""
        definition = {"map": self.map}
        if self.reduce:
            definition["reduce"] = self.reduce
        return definition


@dataclass(frozen=True, eq=False, init=False)
class DesignDocument:
    """A design document scoped to one database."""

    name: str
    views: Tuple[View, ...] = ()

    def __init__(self, name: str, views: Iterable[View] = ()):
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "views", tuple(views))

    @property
    def doc_id(self) -> str:
        """Document id of the design document."""
        return f"{DESIGN_PREFIX}{self.name}"

    @property
    def view_map(self) -> Dict[str, View]:
        """Views keyed by name."""
        return {view.name: view for view in self.views}

    def get_view(self, name: str) -> Optional[View]:
        """Get a view by name."""
        return self.view_map.get(name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DesignDocument):
            return NotImplemented
        return self.name == other.name and frozenset(self.views) == frozenset(other.views)

    def __hash__(self) -> int:
        return hash((self.name, frozenset(self.views)))

    def to_json(self, revision: Optional[str] = None) -> Dict[str, Any]:
        """Convert to the CouchDB design document body."""
        body: Dict[str, Any] = {
            "_id": self.doc_id,
            "language": "javascript",
            "views": {view.name: view.to_json() for view in self.views},
        }
        if revision:
            body["_rev"] = revision
        return body

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "DesignDocument":
        """
        Create a design document from a CouchDB response body.

        Raises:
            ValueError: If the id or a view definition is malformed
        """
        doc_id = data.get("_id", "")
        if not isinstance(doc_id, str):
            raise ValueError(f"Design document id must be a string, got {doc_id!r}")
        name = doc_id[len(DESIGN_PREFIX):] if doc_id.startswith(DESIGN_PREFIX) else doc_id

        definitions = data.get("views") or {}
        if not isinstance(definitions, dict):
            raise ValueError(f"Views of '{doc_id}' must be an object")

        views = []
        for view_name, definition in definitions.items():
            if not isinstance(definition, dict):
                raise ValueError(f"View '{view_name}' of '{doc_id}' must be an object")
            views.append(
                View(
                    name=view_name,
                    map=definition.get("map", ""),
                    reduce=definition.get("reduce"),
                )
            )
        return cls(name, views)

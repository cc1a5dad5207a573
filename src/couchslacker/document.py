"""
Document base model and mapping declarations.

Document classes are pydantic models. The database a class lives in and the
views its design document carries are declared with class decorators::

    @database("widgets")
    @view("by_name", "function(doc){emit(doc.name, null);}")
    class Widget(Document):
        name: str
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .design import View


ID_ALIAS = "_id"
REVISION_ALIAS = "_rev"

DATABASE_ATTRIBUTE = "__couchdb_database__"
VIEWS_ATTRIBUTE = "__couchdb_views__"


class Document(BaseModel):
    """Base class for documents with CouchDB id and revision."""

    id: Optional[str] = Field(None, alias=ID_ALIAS)
    revision: Optional[str] = Field(None, alias=REVISION_ALIAS)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


@dataclass(frozen=True)
class DatabaseDeclaration:
    """Values given to the ``database`` decorator."""

    name: str
    shards: Optional[int] = None
    replicas: Optional[int] = None
    partitioned: Optional[bool] = None
    type_field: Optional[str] = None
    type_value: Optional[str] = None
    design: str = "all"


def database(
    name: str,
    *,
    shards: Optional[int] = None,
    replicas: Optional[int] = None,
    partitioned: Optional[bool] = None,
    type_field: Optional[str] = None,
    type_value: Optional[str] = None,
    design: str = "all",
):
    """
    Declare the database a document class is stored in.

    Args:
        name: Database name
        shards: Shard count used when the database is created
        replicas: Replica count used when the database is created
        partitioned: Whether the database is created partitioned
        type_field: Document field telling types apart in a shared database
        type_value: Value of ``type_field`` for this class
        design: Name of the design document holding the class views

    Creation parameters left as ``None`` fall back to configured defaults.
    """
    declaration = DatabaseDeclaration(
        name=name,
        shards=shards,
        replicas=replicas,
        partitioned=partitioned,
        type_field=type_field,
        type_value=type_value,
        design=design,
    )

    def decorator(cls):
        setattr(cls, DATABASE_ATTRIBUTE, declaration)
        return cls

    return decorator


def view(name: str, map: str, reduce: Optional[str] = None):
    """Declare a view in the design document of a document class."""
    declared = View(name=name, map=map, reduce=reduce)

    def decorator(cls):
        # Decorators apply bottom-up; prepend to keep top-down order
        existing: Tuple[View, ...] = getattr(cls, VIEWS_ATTRIBUTE, ())
        setattr(cls, VIEWS_ATTRIBUTE, (declared,) + tuple(existing))
        return cls

    return decorator

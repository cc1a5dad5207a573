"""
Request and response bodies of CouchDB document endpoints.
"""

from typing import Any, Dict, Iterator, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class DocumentFindRequest(BaseModel):
    """Body of a Mango ``_find`` request."""

    selector: Dict[str, Any] = Field(default_factory=dict, description="Mango selector")
    use_index: Optional[List[str]] = Field(None, description="Design document and index to use")
    limit: Optional[int] = Field(None, ge=0, description="Maximum number of documents")
    skip: Optional[int] = Field(None, ge=0, description="Number of documents to skip")
    sort: Optional[List[Dict[str, Literal["asc", "desc"]]]] = Field(
        None, description="Sort fields, one {field: direction} mapping per entry"
    )
    execution_stats: Optional[bool] = Field(None, description="Include execution stats")

    @field_validator("sort")
    @classmethod
    def validate_sort(cls, v):
        if v is not None:
            for entry in v:
                if len(entry) != 1:
                    raise ValueError("Each sort entry must name exactly one field")
        return v

    def with_type(self, type_field: Optional[str], type_value: Optional[str]) -> "DocumentFindRequest":
        """Restrict the selector to documents of one type."""
        if not type_field:
            return self
        type_selector = {type_field: type_value}
        if self.selector:
            selector = {"$and": [type_selector, self.selector]}
        else:
            selector = type_selector
        return self.model_copy(update={"selector": selector})

    def to_json(self) -> Dict[str, Any]:
        """Convert to the request body."""
        return self.model_dump(exclude_none=True)


class BulkGetError(BaseModel):
    """Error entry of a ``_bulk_get`` result."""

    id: Optional[str] = None
    rev: Optional[str] = None
    error: str
    reason: Optional[str] = None


class BulkGetDoc(BaseModel):
    """One revision entry of a ``_bulk_get`` result."""

    ok: Optional[Dict[str, Any]] = None
    error: Optional[BulkGetError] = None


class BulkGetResult(BaseModel):
    """Entry of a ``_bulk_get`` response for one requested id."""

    id: str
    docs: List[BulkGetDoc] = Field(default_factory=list)


class BulkGetResponse(BaseModel):
    """Body of a ``_bulk_get`` response."""

    results: List[BulkGetResult] = Field(default_factory=list)

    def documents(self) -> Iterator[Dict[str, Any]]:
        """Iterate found document bodies, skipping errors and deleted documents."""
        for result in self.results:
            for doc in result.docs:
                if doc.ok is not None and not doc.ok.get("_deleted", False):
                    yield doc.ok

    def errors(self) -> List[BulkGetError]:
        """Get error entries, such as ids that were not found."""
        return [doc.error for result in self.results for doc in result.docs if doc.error]

"""
Tests for couchslacker.exceptions module.
"""

import pytest

from couchslacker.exceptions import (
    CouchSlackerError,
    DocumentNotFoundError,
    MetadataResolutionError,
    SchemaCreationError,
    SchemaDropError,
    SchemaError,
    SchemaFailureKind,
    SchemaValidationError,
    StoreError,
    StoreResponseError,
    StoreTransportError,
)


class TestCouchSlackerError:
    """Test base exception formatting."""

    def test_message_only(self):
        """Test an error without details."""
        assert str(CouchSlackerError("broken")) == "broken"

    def test_details_and_cause(self):
        """Test that details and cause are appended."""
        error = CouchSlackerError("broken", {"database": "widgets"}, ValueError("bad"))

        assert str(error) == "broken [database=widgets] (caused by: bad)"

    def test_store_error_hierarchy(self):
        """Test that store errors share a base class."""
        for error_cls in (StoreTransportError, StoreResponseError):
            assert issubclass(error_cls, StoreError)
        assert isinstance(DocumentNotFoundError("widgets", "w1"), StoreError)

    def test_store_response_error_details(self):
        """Test status and body in response errors."""
        error = StoreResponseError("Unexpected", status_code=500, response_body="oops")

        assert error.details == {"status_code": 500, "response_body": "oops"}

    def test_metadata_resolution_error(self):
        """Test entity and reason of a metadata error."""
        error = MetadataResolutionError("Widget", "no field aliased '_id'")

        assert error.entity == "Widget"
        assert "no field aliased '_id'" in str(error)


class TestSchemaErrors:
    """Test schema error kinds."""

    def test_schema_error_fields(self):
        """Test attributes and message of a schema error."""
        error = SchemaValidationError(
            SchemaFailureKind.MISSING_OR_DIVERGENT_DESIGN,
            "Widget",
            "widgets",
            design="all",
            views=["by_name", "data"],
        )

        assert isinstance(error, SchemaError)
        assert error.design == "all"
        assert error.views == ["by_name", "data"]
        assert str(error) == (
            "Schema missing or divergent design for entity 'Widget' "
            "[entity=Widget, database=widgets, design=all, views=by_name,data]"
        )

    @pytest.mark.parametrize(
        "error_cls, kind",
        [
            (SchemaValidationError, SchemaFailureKind.DELETE_FAILED),
            (SchemaCreationError, SchemaFailureKind.MISSING_DATABASE),
            (SchemaDropError, SchemaFailureKind.DATABASE_CREATE_FAILED),
        ],
    )
    def test_kind_must_fit_error_class(self, error_cls, kind):
        """Test that each error class accepts only its own kinds."""
        with pytest.raises(ValueError):
            error_cls(kind, "Widget", "widgets")

    def test_design_write_failure_shared(self):
        """Test that creation and drop both report design write failures."""
        for error_cls in (SchemaCreationError, SchemaDropError):
            error = error_cls(SchemaFailureKind.DESIGN_WRITE_FAILED, "Widget", "widgets", design="all")
            assert error.kind == SchemaFailureKind.DESIGN_WRITE_FAILED

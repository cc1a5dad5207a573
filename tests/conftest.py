"""
Pytest configuration and shared fixtures for couchslacker tests.

This module provides shared fixtures and utilities for testing all couchslacker components.
"""

import tempfile
from typing import Any, Dict
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
import yaml

from couchslacker.config import ClientConfig, CouchSlackerConfig
from couchslacker.database.client import CouchDbClient
from couchslacker.design import DesignDocument, View
from couchslacker.schema.metadata import MetadataRegistry

from tests.entities import BY_NAME_MAP


COUCHDB_URL = "http://localhost:5984"


# ============================================================================
# Test Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config_data() -> Dict[str, Any]:
    """Sample couchslacker configuration data."""
    return {
        "client": {
            "url": COUCHDB_URL,
            "username": "admin",
            "password": "secret",
            "bulk_max_size": 10,
            "timeout": 5,
        },
        "schema_management": {
            "operation": "create",
            "entities": ["tests.entities:Widget", "tests.entities.Gadget"],
        },
        "logging": {"level": "DEBUG"},
    }


@pytest.fixture
def client_config(sample_config_data) -> ClientConfig:
    """CouchDB client configuration for testing."""
    return ClientConfig(**sample_config_data["client"])


@pytest.fixture
def sample_config(sample_config_data) -> CouchSlackerConfig:
    """Complete couchslacker configuration for testing."""
    return CouchSlackerConfig(**sample_config_data)


@pytest.fixture
def temp_config_file(sample_config_data) -> str:
    """Temporary configuration file for testing."""
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.dump(sample_config_data, f)
        return f.name


# ============================================================================
# Metadata and Design Fixtures
# ============================================================================

@pytest.fixture
def registry() -> MetadataRegistry:
    """Metadata registry with default creation parameters."""
    return MetadataRegistry()


@pytest.fixture
def widget_design() -> DesignDocument:
    """Design document matching the Widget declarations."""
    return DesignDocument(
        "all",
        [
            View("data", "function(doc){emit(null);}", "_count"),
            View("by_name", BY_NAME_MAP),
        ],
    )


# ============================================================================
# Client Fixtures
# ============================================================================

@pytest.fixture
def mock_client(registry) -> MagicMock:
    """
    Mock CouchDB client resolving real metadata.

    Remote operations are AsyncMocks; by default every database exists and
    no design document does.
    """
    client = MagicMock(spec=CouchDbClient)
    client.get_entity_metadata.side_effect = registry.resolve
    client.database_exists.return_value = True
    client.read_design_safely.return_value = None
    return client


@pytest_asyncio.fixture
async def couch_client(client_config, registry):
    """Real CouchDB client pointed at the mocked server URL."""
    client = CouchDbClient(client_config, registry, uid_generator=lambda: "generated-id")
    yield client
    await client.close()


def remote_calls(client: MagicMock) -> list:
    """Names of the remote operations called on a mock client, in order."""
    return [c[0] for c in client.mock_calls if c[0] and c[0] != "get_entity_metadata"]

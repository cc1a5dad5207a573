"""
CouchDB HTTP client for couchslacker.

Wraps an aiohttp session with basic authentication and exposes the database,
design document and document operations used by repositories and the
schema reconciler.
"""

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Type, TypeVar
from urllib.parse import quote

import aiohttp
from pydantic import BaseModel, ValidationError

from ..config import ClientConfig, CouchSlackerConfig
from ..design import DesignDocument
from ..document import ID_ALIAS
from ..exceptions import (
    DocumentConflictError,
    DocumentNotFoundError,
    StoreResponseError,
    StoreTransportError,
)
from ..schema.metadata import EntityMetadata, MetadataRegistry
from .structure import BulkGetResponse, DocumentFindRequest


logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", bound=BaseModel)


@dataclass
class StoreResponse:
    """Status, headers and decoded body of a CouchDB response."""

    status: int
    text: str
    headers: Dict[str, str]
    data: Any = None

    def json(self) -> Any:
        """Get the decoded body, failing if it was not JSON."""
        if self.data is None:
            raise StoreResponseError(
                "Malformed response from CouchDB", self.status, self.text or None
            )
        return self.data


class CouchDbClient:
    """
    Async CouchDB client.

    One client owns one aiohttp session and one metadata registry. Use it as
    an async context manager or call ``close()`` when done.
    """

    def __init__(
        self,
        config: ClientConfig,
        registry: Optional[MetadataRegistry] = None,
        uid_generator: Optional[Callable[[], str]] = None,
    ):
        self.config = config
        self.registry = registry or MetadataRegistry()
        self.uid_generator = uid_generator or (lambda: uuid.uuid4().hex)
        self.base_url = config.url.rstrip("/")

        # Session for connection reuse
        self._session: aiohttp.ClientSession | None = None

    @classmethod
    def from_config(
        cls,
        config: CouchSlackerConfig,
        uid_generator: Optional[Callable[[], str]] = None,
    ) -> "CouchDbClient":
        """Create a client and its metadata registry from full configuration."""
        schema = config.schema_management
        registry = MetadataRegistry(
            default_shards=schema.default_shards,
            default_replicas=schema.default_replicas,
            default_partitioned=schema.default_partitioned,
        )
        return cls(config.client, registry, uid_generator)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                auth=aiohttp.BasicAuth(self.config.username, self.config.password),
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                    "User-Agent": "couchslacker/1.0",
                },
            )
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ) -> StoreResponse:
        """Send a request and read the whole response."""
        session = await self._get_session()
        url = f"{self.base_url}/{path}"

        logger.debug(f"{method} {url} params={params}")
        try:
            async with session.request(method, url, params=params, json=body) as response:
                raw = await response.read()
                status = response.status
                headers = {k.lower(): v for k, v in response.headers.items()}
                charset = response.charset or "utf-8"
        except asyncio.TimeoutError as e:
            raise StoreTransportError(
                f"Request to CouchDB timed out: {method} {path}",
                {"timeout": self.config.timeout},
                e,
            ) from e
        except aiohttp.ClientError as e:
            raise StoreTransportError(
                f"Request to CouchDB failed: {method} {path}", cause=e
            ) from e

        try:
            text = raw.decode(charset)
        except (UnicodeDecodeError, LookupError) as e:
            raise StoreResponseError(
                f"Malformed response from CouchDB: {method} {path}",
                status,
                raw.decode("utf-8", errors="replace"),
            ) from e

        result = StoreResponse(status=status, text=text, headers=headers)
        if text:
            try:
                result.data = json.loads(text)
            except ValueError:
                logger.debug(f"Non-JSON response body for {method} {path}")
        return result

    @staticmethod
    def _unexpected(response: StoreResponse, action: str) -> StoreResponseError:
        reason = ""
        if isinstance(response.data, dict):
            reason = response.data.get("reason") or response.data.get("error") or ""
        message = f"Unexpected response while {action}: HTTP {response.status}"
        if reason:
            message += f" ({reason})"
        return StoreResponseError(message, response.status, response.text or None)

    @staticmethod
    def _db_path(database: str) -> str:
        return quote(database, safe="")

    def _doc_path(self, database: str, doc_id: str) -> str:
        if doc_id.startswith("_design/"):
            return f"{self._db_path(database)}/_design/{quote(doc_id[len('_design/'):], safe='')}"
        return f"{self._db_path(database)}/{quote(doc_id, safe='')}"

    # Entity metadata

    def get_entity_metadata(self, entity_type: Type) -> EntityMetadata:
        """Get cached metadata of a document class."""
        return self.registry.resolve(entity_type)

    # Databases

    async def database_exists(self, metadata: EntityMetadata) -> bool:
        """Check if the database of an entity exists."""
        response = await self._request("HEAD", self._db_path(metadata.database))
        if response.status == 200:
            return True
        if response.status == 404:
            return False
        raise self._unexpected(response, f"checking database '{metadata.database}'")

    async def create_database(self, metadata: EntityMetadata) -> None:
        """Create the database of an entity with its shard and replica settings."""
        params = {
            "q": metadata.shards,
            "n": metadata.replicas,
            "partitioned": "true" if metadata.partitioned else "false",
        }
        response = await self._request("PUT", self._db_path(metadata.database), params=params)
        if response.status not in (201, 202):
            raise self._unexpected(response, f"creating database '{metadata.database}'")

        logger.info(
            f"Created database '{metadata.database}' "
            f"(shards={metadata.shards}, replicas={metadata.replicas}, "
            f"partitioned={metadata.partitioned})"
        )

    async def delete_database(self, metadata: EntityMetadata) -> None:
        """Delete the database of an entity."""
        response = await self._request("DELETE", self._db_path(metadata.database))
        if response.status not in (200, 202):
            raise self._unexpected(response, f"deleting database '{metadata.database}'")

        logger.info(f"Deleted database '{metadata.database}'")

    # Design documents

    async def read_design(self, design_name: str, database: str) -> DesignDocument:
        """
        Read a design document.

        Raises:
            DocumentNotFoundError: If the design document does not exist
        """
        doc_id = f"_design/{design_name}"
        response = await self._request("GET", self._doc_path(database, doc_id))
        if response.status == 404:
            raise DocumentNotFoundError(database, doc_id)
        if response.status != 200:
            raise self._unexpected(response, f"reading '{doc_id}' from '{database}'")

        data = response.json()
        if not isinstance(data, dict):
            raise StoreResponseError(
                f"Malformed design document '{doc_id}'", response.status, response.text
            )
        try:
            return DesignDocument.from_json(data)
        except ValueError as e:
            raise StoreResponseError(
                f"Malformed design document '{doc_id}': {e}", response.status, response.text
            ) from e

    async def read_design_safely(
        self, design_name: str, database: str
    ) -> Optional[DesignDocument]:
        """Read a design document, returning None if it does not exist."""
        try:
            return await self.read_design(design_name, database)
        except DocumentNotFoundError:
            logger.debug(f"Design document '{design_name}' not found in '{database}'")
            return None

    async def write_design(self, database: str, design: DesignDocument) -> None:
        """Create or overwrite a design document."""
        revision = await self._get_revision(database, design.doc_id)
        response = await self._request(
            "PUT", self._doc_path(database, design.doc_id), body=design.to_json(revision)
        )
        if response.status == 409:
            raise DocumentConflictError(database, design.doc_id)
        if response.status not in (201, 202):
            raise self._unexpected(response, f"writing '{design.doc_id}' to '{database}'")

        logger.info(
            f"Wrote design document '{design.doc_id}' to '{database}' "
            f"(views={[v.name for v in design.views]})"
        )

    async def _get_revision(self, database: str, doc_id: str) -> Optional[str]:
        """Get the current revision of a document from its ETag."""
        response = await self._request("HEAD", self._doc_path(database, doc_id))
        if response.status == 404:
            return None
        if response.status != 200:
            raise self._unexpected(response, f"checking '{doc_id}' in '{database}'")
        etag = response.headers.get("etag")
        return etag.strip('"') if etag else None

    # Documents

    async def read(self, entity_type: Type[EntityT], doc_id: str) -> EntityT:
        """
        Read one document.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        metadata = self.get_entity_metadata(entity_type)
        response = await self._request("GET", self._doc_path(metadata.database, doc_id))
        if response.status == 404:
            raise DocumentNotFoundError(metadata.database, doc_id)
        if response.status != 200:
            raise self._unexpected(response, f"reading '{doc_id}' from '{metadata.database}'")
        return self._to_entity(entity_type, response.json())

    async def save(self, document: EntityT) -> EntityT:
        """
        Create or update a document.

        A document without id gets one from the uid generator. The id and the
        stored revision are written back to the document once CouchDB has
        accepted it.
        """
        metadata = self.get_entity_metadata(type(document))

        body = document.model_dump(mode="json", by_alias=True, exclude_none=True)
        doc_id = getattr(document, metadata.id_field)
        if not doc_id:
            doc_id = self.uid_generator()
            body[ID_ALIAS] = doc_id
        if metadata.type_field:
            body.setdefault(metadata.type_field, metadata.type_value)

        response = await self._request(
            "PUT", self._doc_path(metadata.database, doc_id), body=body
        )
        if response.status == 409:
            raise DocumentConflictError(metadata.database, doc_id)
        if response.status not in (201, 202):
            raise self._unexpected(response, f"saving '{doc_id}' to '{metadata.database}'")

        setattr(document, metadata.id_field, doc_id)
        setattr(document, metadata.revision_field, response.json().get("rev"))
        logger.debug(f"Saved '{doc_id}' to '{metadata.database}'")
        return document

    async def delete(self, document: BaseModel) -> None:
        """Delete a document at its current revision."""
        metadata = self.get_entity_metadata(type(document))
        doc_id = getattr(document, metadata.id_field)
        revision = getattr(document, metadata.revision_field)
        if not doc_id or not revision:
            raise ValueError("Only stored documents with id and revision can be deleted")

        response = await self._request(
            "DELETE", self._doc_path(metadata.database, doc_id), params={"rev": revision}
        )
        if response.status == 404:
            raise DocumentNotFoundError(metadata.database, doc_id)
        if response.status == 409:
            raise DocumentConflictError(metadata.database, doc_id)
        if response.status not in (200, 202):
            raise self._unexpected(response, f"deleting '{doc_id}' from '{metadata.database}'")

        logger.debug(f"Deleted '{doc_id}' from '{metadata.database}'")

    async def read_all(self, entity_type: Type[EntityT], ids: Iterable[str]) -> List[EntityT]:
        """Read documents by id in bulk, skipping ids that don't exist."""
        metadata = self.get_entity_metadata(entity_type)
        ids = list(ids)
        path = f"{self._db_path(metadata.database)}/_bulk_get"

        documents: List[EntityT] = []
        for start in range(0, len(ids), self.config.bulk_max_size):
            batch = ids[start:start + self.config.bulk_max_size]
            response = await self._request(
                "POST", path, body={"docs": [{"id": doc_id} for doc_id in batch]}
            )
            if response.status != 200:
                raise self._unexpected(response, f"bulk reading from '{metadata.database}'")

            bulk = self._parse(BulkGetResponse, response)
            for error in bulk.errors():
                logger.debug(f"Bulk read skipped '{error.id}': {error.error}")
            documents.extend(self._to_entity(entity_type, doc) for doc in bulk.documents())

        return documents

    async def find(
        self, entity_type: Type[EntityT], request: DocumentFindRequest
    ) -> List[EntityT]:
        """Run a Mango query against the database of an entity."""
        metadata = self.get_entity_metadata(entity_type)
        request = request.with_type(metadata.type_field, metadata.type_value)
        if self.config.find_execution_stats:
            request = request.model_copy(update={"execution_stats": True})

        response = await self._request(
            "POST", f"{self._db_path(metadata.database)}/_find", body=request.to_json()
        )
        if response.status != 200:
            raise self._unexpected(response, f"querying '{metadata.database}'")

        data = response.json()
        if "warning" in data:
            logger.warning(f"Query on '{metadata.database}': {data['warning']}")
        if "execution_stats" in data:
            logger.info(f"Query on '{metadata.database}' stats: {data['execution_stats']}")

        return [self._to_entity(entity_type, doc) for doc in data.get("docs", [])]

    @staticmethod
    def _to_entity(entity_type: Type[EntityT], data: Dict[str, Any]) -> EntityT:
        try:
            return entity_type.model_validate(data)
        except ValidationError as e:
            raise StoreResponseError(
                f"Document does not match {entity_type.__name__}: {e}"
            ) from e

    @staticmethod
    def _parse(model: Type[BaseModel], response: StoreResponse) -> Any:
        try:
            return model.model_validate(response.json())
        except ValidationError as e:
            raise StoreResponseError(
                f"Malformed {model.__name__}", response.status, response.text
            ) from e

    # Health

    async def health_check(self) -> Dict[str, Any]:
        """Check that CouchDB is reachable and up."""
        try:
            response = await self._request("GET", "_up")
        except StoreTransportError as e:
            return {"status": "unhealthy", "url": self.base_url, "error": str(e)}

        if response.status == 200:
            return {"status": "healthy", "url": self.base_url, "response": response.data}
        return {
            "status": "unhealthy",
            "url": self.base_url,
            "error": f"HTTP {response.status}",
            "response": response.data,
        }

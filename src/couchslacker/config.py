"""
Configuration system for couchslacker using Pydantic.
"""

import importlib
import logging
import logging.handlers
import os
from pathlib import Path
from typing import Any, List, Literal, Optional, Union
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError, CouchSlackerError
from .schema.metadata import MetadataRegistry
from .schema.operations import SchemaOperation


class ClientConfig(BaseModel):
    """CouchDB connection configuration."""

    url: str = Field(..., description="CouchDB URL, port is mandatory")
    username: str = Field(..., description="CouchDB user")
    password: str = Field(..., description="CouchDB password")
    bulk_max_size: int = Field(
        10000, ge=10, le=100000, description="Maximum documents processed in one bulk request"
    )
    find_execution_stats: bool = Field(
        False, description="Request and log execution stats of _find queries"
    )
    timeout: float = Field(30.0, gt=0, description="Request timeout in seconds")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if "://" not in v:
            v = f"http://{v}"
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https"):
            raise ValueError(f"Invalid CouchDB URL scheme: {parsed.scheme}")
        if not parsed.hostname:
            raise ValueError("CouchDB URL must contain a host")
        if parsed.port is None:
            raise ValueError("CouchDB URL must contain a port")
        return v.rstrip("/")

    @field_validator("username", "password")
    @classmethod
    def validate_credentials(cls, v: str) -> str:
        if not v:
            raise ValueError("Credentials must not be empty")
        return v


class SchemaManagementConfig(BaseModel):
    """Schema management configuration."""

    operation: SchemaOperation = Field(
        SchemaOperation.VALIDATE, description="Schema operation run at start-up"
    )
    default_shards: int = Field(8, ge=1, description="Shards of created databases")
    default_replicas: int = Field(3, ge=1, description="Replicas of created databases")
    default_partitioned: bool = Field(
        False, description="Whether created databases are partitioned"
    )
    entities: List[str] = Field(
        default_factory=list,
        description="Document classes to reconcile, as 'module:Class' or 'module.Class'",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "INFO", description="Log level"
    )
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )
    file: Optional[str] = Field(None, description="Log file path")
    max_size: int = Field(10485760, description="Max log file size in bytes")  # 10MB
    backup_count: int = Field(5, description="Number of backup log files")


class CouchSlackerConfig(BaseSettings):
    """Main couchslacker configuration."""

    client: ClientConfig = Field(..., description="CouchDB connection")
    schema_management: SchemaManagementConfig = Field(
        default_factory=SchemaManagementConfig,
        description="Schema management configuration",
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="COUCHSLACKER_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "CouchSlackerConfig":
        """Load configuration from a YAML file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

            data = cls._expand_env_vars(data)

            return cls(**data)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @classmethod
    def _expand_env_vars(cls, data: Any) -> Any:
        """Recursively expand environment variables in configuration data."""
        if isinstance(data, dict):
            return {k: cls._expand_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [cls._expand_env_vars(item) for item in data]
        elif isinstance(data, str):
            return os.path.expandvars(data)
        else:
            return data

    def load_entities(self) -> List[type]:
        """Import the configured document classes in declared order."""
        return [import_entity(path) for path in self.schema_management.entities]

    def validate_config(self) -> None:
        """Validate that every configured entity imports and maps cleanly."""
        registry = MetadataRegistry(
            self.schema_management.default_shards,
            self.schema_management.default_replicas,
            self.schema_management.default_partitioned,
        )
        seen = set()
        for path in self.schema_management.entities:
            if path in seen:
                raise ConfigurationError(f"Entity '{path}' is listed more than once")
            seen.add(path)
            try:
                registry.resolve(import_entity(path))
            except ConfigurationError:
                raise
            except CouchSlackerError as e:
                raise ConfigurationError(f"Entity '{path}' can't be mapped", cause=e)

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to a YAML file."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(mode="json", exclude_none=True),
                f,
                default_flow_style=False,
                indent=2,
                sort_keys=False,
            )


def import_entity(path: str) -> type:
    """Import a class given as 'package.module:Class' or 'package.module.Class'."""
    if ":" in path:
        module_name, _, class_name = path.partition(":")
    else:
        module_name, _, class_name = path.rpartition(".")

    if not module_name or not class_name:
        raise ConfigurationError(f"Invalid entity path: '{path}'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import module '{module_name}'", cause=e)

    entity = getattr(module, class_name, None)
    if not isinstance(entity, type):
        raise ConfigurationError(f"Module '{module_name}' has no class '{class_name}'")
    return entity


def configure_logging(config: LoggingConfig, debug: bool = False) -> None:
    """Apply logging configuration to the root logger."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if config.file:
        handlers.append(
            logging.handlers.RotatingFileHandler(
                config.file,
                maxBytes=config.max_size,
                backupCount=config.backup_count,
                encoding="utf-8",
            )
        )

    logging.basicConfig(
        level=logging.DEBUG if debug else getattr(logging, config.level),
        format=config.format,
        handlers=handlers,
        force=True,
    )

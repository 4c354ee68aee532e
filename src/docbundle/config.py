"""
Configuration management (SSOT).

This module defines ALL configuration for docbundle.
All config keys are defined here; no other module should invent config keys.

Key invariants:
- Credentials are never part of the config file; tokens are passed per call
- retrieval.concurrency is finite and >= 1
- Search pagination is a protocol constant and is not configurable
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .archive import ArchiveAssembler, CollisionPolicy
from .catalog_client import CatalogClient
from .catalog_client.client import DEFAULT_BASE_URL
from .retrieval import RetrievalOrchestrator
from .services import ExportPipeline


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class CatalogConfig:
    """Document catalog service configuration."""

    base_url: str = DEFAULT_BASE_URL
    # Request timeout (seconds)
    timeout_seconds: int = 30


@dataclass
class RetrievalConfig:
    """Bulk retrieval settings."""

    # Maximum simultaneous downloads
    concurrency: int = 4
    # Per-download timeout (seconds)
    timeout_seconds: int = 30
    # Attempts per document (1 = no retries)
    max_attempts: int = 1
    # urllib3 backoff factor: waits grow as factor * 2**(n-1)
    backoff_factor: float = 0.5
    chunk_size: int = 64 * 1024


@dataclass
class ArchiveConfig:
    """Export archive settings."""

    output_name: str = "documents.zip"
    # "suffix" renames duplicates, "overwrite" keeps the last one
    collision_policy: CollisionPolicy = CollisionPolicy.SUFFIX


@dataclass
class Config:
    """Application configuration (SSOT)."""

    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    archive: ArchiveConfig = field(default_factory=ArchiveConfig)
    # Parent directory for export staging (None = system temp dir)
    staging_root: Path | None = None

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if not self.catalog.base_url:
            errors.append("catalog.base_url is required")
        if self.catalog.timeout_seconds <= 0:
            errors.append("catalog.timeout_seconds must be > 0")

        if self.retrieval.concurrency < 1:
            errors.append("retrieval.concurrency must be >= 1")
        if self.retrieval.timeout_seconds <= 0:
            errors.append("retrieval.timeout_seconds must be > 0")
        if self.retrieval.max_attempts < 1:
            errors.append("retrieval.max_attempts must be >= 1")
        if self.retrieval.backoff_factor < 0:
            errors.append("retrieval.backoff_factor must be >= 0")
        if self.retrieval.chunk_size < 1:
            errors.append("retrieval.chunk_size must be >= 1")

        if not self.archive.output_name:
            errors.append("archive.output_name is required")

        return errors


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name, "")
    if not value:
        return int(default)
    try:
        return int(value)
    except ValueError:
        raise ConfigValidationError(f"{name} must be an integer, got {value!r}")


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - DOCBUNDLE_BASE_URL
    - DOCBUNDLE_TIMEOUT (catalog and download timeout, seconds)
    - DOCBUNDLE_CONCURRENCY
    - DOCBUNDLE_MAX_ATTEMPTS

    Raises:
        ConfigValidationError: on an unknown collision policy, a bad
            integer override or failed validation
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    catalog_data = data.get("catalog", {})
    catalog = CatalogConfig(
        base_url=os.environ.get(
            "DOCBUNDLE_BASE_URL", catalog_data.get("base_url", DEFAULT_BASE_URL)
        ),
        timeout_seconds=_env_int(
            "DOCBUNDLE_TIMEOUT", catalog_data.get("timeout_seconds", 30)
        ),
    )

    retrieval_data = data.get("retrieval", {})
    retrieval = RetrievalConfig(
        concurrency=_env_int(
            "DOCBUNDLE_CONCURRENCY", retrieval_data.get("concurrency", 4)
        ),
        timeout_seconds=_env_int(
            "DOCBUNDLE_TIMEOUT", retrieval_data.get("timeout_seconds", 30)
        ),
        max_attempts=_env_int(
            "DOCBUNDLE_MAX_ATTEMPTS", retrieval_data.get("max_attempts", 1)
        ),
        backoff_factor=float(retrieval_data.get("backoff_factor", 0.5)),
        chunk_size=int(retrieval_data.get("chunk_size", 64 * 1024)),
    )

    archive_data = data.get("archive", {})
    policy = archive_data.get("collision_policy", CollisionPolicy.SUFFIX.value)
    try:
        collision_policy = CollisionPolicy(str(policy).lower())
    except ValueError:
        raise ConfigValidationError(
            f"archive.collision_policy must be 'suffix' or 'overwrite', got {policy!r}"
        )
    archive = ArchiveConfig(
        output_name=archive_data.get("output_name", "documents.zip"),
        collision_policy=collision_policy,
    )

    staging_root = data.get("staging_root")

    config = Config(
        catalog=catalog,
        retrieval=retrieval,
        archive=archive,
        staging_root=Path(staging_root) if staging_root else None,
    )

    errors = config.validate()
    if errors:
        raise ConfigValidationError("; ".join(errors))
    return config


def build_catalog_client(config: Config) -> CatalogClient:
    """Create a catalog client from configuration."""
    return CatalogClient(
        base_url=config.catalog.base_url,
        timeout=config.catalog.timeout_seconds,
    )


def build_orchestrator(config: Config) -> RetrievalOrchestrator:
    """Create a retrieval orchestrator from configuration."""
    return RetrievalOrchestrator(
        concurrency=config.retrieval.concurrency,
        timeout=config.retrieval.timeout_seconds,
        max_attempts=config.retrieval.max_attempts,
        backoff_factor=config.retrieval.backoff_factor,
        chunk_size=config.retrieval.chunk_size,
    )


def build_export_pipeline(config: Config) -> ExportPipeline:
    """Wire catalog, orchestrator and assembler from configuration."""
    return ExportPipeline(
        catalog=build_catalog_client(config),
        orchestrator=build_orchestrator(config),
        assembler=ArchiveAssembler(
            output_name=config.archive.output_name,
            collision_policy=config.archive.collision_policy,
        ),
        staging_root=config.staging_root,
    )


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = f"""# docbundle configuration
#
# Tokens are NOT stored here. Pass --token or set DOCBUNDLE_TOKEN.

catalog:
  base_url: "{DEFAULT_BASE_URL}"
  timeout_seconds: 30

# Bulk download settings
retrieval:
  concurrency: 4            # Maximum simultaneous downloads
  timeout_seconds: 30       # Per-download timeout
  max_attempts: 1           # 1 = no retries
  backoff_factor: 0.5       # urllib3 backoff factor, doubled per retry
  chunk_size: 65536

# Export archive
archive:
  output_name: "documents.zip"
  collision_policy: "suffix"   # "suffix" -> "a (1).pdf", "overwrite" -> last wins

# Parent directory for temporary export staging (null = system temp dir)
staging_root: null
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)

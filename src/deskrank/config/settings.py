"""Centralized configuration for deskrank.

This module consolidates the configuration code in one place:
- Pydantic models for .deskrank/deskrank.toml
- Loading and saving functions

Strategy:
- Loads from .deskrank/deskrank.toml, searched upward from the site root
- Creates a default config if missing
- Environment variables (DESKRANK_SECTION__KEY) override the file
"""

from __future__ import annotations

import logging
import math
import os
import tomllib
from copy import deepcopy
from pathlib import Path
from typing import Any

import tomli_w
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from deskrank.exceptions import ConfigError
from deskrank.infra.retry import DEFAULT_ATTEMPTS, DEFAULT_WAIT_MAX, DEFAULT_WAIT_MIN
from deskrank.ranking.elo import DEFAULT_K_FACTOR, DEFAULT_RATING
from deskrank.ranking.pairing import DEFAULT_EXHAUSTIVE_THRESHOLD, DEFAULT_SAMPLE_RETRY_CAP

logger = logging.getLogger(__name__)

# ============================================================================
# Constants
# ============================================================================

CONFIG_DIR_NAME = ".deskrank"
CONFIG_FILE_NAME = "deskrank.toml"
ENV_PREFIX = "DESKRANK_"

DEFAULT_DATABASE_PATH = ".deskrank/deskrank.duckdb"
DEFAULT_LEADERBOARD_LIMIT = 5
DEFAULT_API_HOST = "127.0.0.1"
DEFAULT_API_PORT = 8000


class RankingSettings(BaseModel):
    """Elo rating parameters."""

    baseline_rating: float = Field(
        default=DEFAULT_RATING,
        description="Rating assigned to newly uploaded items",
    )
    k_factor: float = Field(
        default=DEFAULT_K_FACTOR,
        gt=0,
        le=128,
        description="Elo K-factor controlling rating volatility (16=stable, 64=volatile)",
    )

    @field_validator("baseline_rating")
    @classmethod
    def validate_finite(cls, v: float) -> float:
        """Ratings must be finite numbers."""
        if not math.isfinite(v):
            msg = f"baseline_rating must be finite, got {v!r}"
            raise ValueError(msg)
        return v


class PairingSettings(BaseModel):
    """Pair selection policy."""

    exclude_own_items: bool = Field(
        default=False,
        description="Never offer voters a pair containing one of their own items",
    )
    exhaustive_threshold: int = Field(
        default=DEFAULT_EXHAUSTIVE_THRESHOLD,
        ge=2,
        description="Populations up to this size enumerate all pairs instead of sampling",
    )
    sample_retry_cap: int = Field(
        default=DEFAULT_SAMPLE_RETRY_CAP,
        ge=1,
        le=1000,
        description="Anchor draws attempted before falling back to enumeration",
    )
    purge_history_on_delete: bool = Field(
        default=False,
        description="Delete an item's votes when the item is deleted (default keeps them for audit)",
    )


class DatabaseSettings(BaseModel):
    """Database configuration."""

    path: str = Field(
        default=DEFAULT_DATABASE_PATH,
        description="DuckDB database file, relative to the site root (':memory:' for a throwaway store)",
    )

    def resolve(self, site_root: Path) -> Path | None:
        """Absolute database path, or None for an in-memory database."""
        if self.path == ":memory:":
            return None
        path = Path(self.path).expanduser()
        return path if path.is_absolute() else site_root / path


class RetrySettings(BaseModel):
    """Retry policy for vote transactions that hit a store failure."""

    attempts: int = Field(default=DEFAULT_ATTEMPTS, ge=1, le=10, description="Total attempts per vote")
    wait_min: float = Field(default=DEFAULT_WAIT_MIN, ge=0, description="Minimum backoff in seconds")
    wait_max: float = Field(default=DEFAULT_WAIT_MAX, ge=0, description="Maximum backoff in seconds")


class ApiSettings(BaseModel):
    """HTTP API settings."""

    host: str = Field(default=DEFAULT_API_HOST, description="Interface to bind")
    port: int = Field(default=DEFAULT_API_PORT, ge=1, le=65535, description="Port to bind")
    leaderboard_limit: int = Field(
        default=DEFAULT_LEADERBOARD_LIMIT,
        ge=1,
        le=500,
        description="Number of items shown on the leaderboard when no limit is given",
    )


class DeskrankConfig(BaseSettings):
    """Root configuration for deskrank.

    This model defines the complete .deskrank/deskrank.toml schema.

    Supports environment variable overrides with the pattern:
    DESKRANK_SECTION__KEY (e.g., DESKRANK_RANKING__K_FACTOR)
    """

    ranking: RankingSettings = Field(default_factory=RankingSettings, description="Elo parameters")
    pairing: PairingSettings = Field(default_factory=PairingSettings, description="Pair selection policy")
    database: DatabaseSettings = Field(default_factory=DatabaseSettings, description="Database configuration")
    retry: RetrySettings = Field(default_factory=RetrySettings, description="Vote retry policy")
    api: ApiSettings = Field(default_factory=ApiSettings, description="HTTP API settings")

    model_config = SettingsConfigDict(
        extra="forbid",
        validate_assignment=True,
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
    )

    @model_validator(mode="after")
    def validate_cross_field(self) -> DeskrankConfig:
        """Validate cross-field dependencies."""
        if self.retry.wait_max < self.retry.wait_min:
            msg = "retry.wait_max must be greater than or equal to retry.wait_min"
            raise ValueError(msg)

        if self.ranking.k_factor > 64:  # noqa: PLR2004
            logger.warning("ranking.k_factor=%s is very volatile; ratings will swing widely", self.ranking.k_factor)

        return self


# ============================================================================
# Configuration Loading and Saving
# ============================================================================


def find_deskrank_config(start_dir: Path) -> Path | None:
    """Search upward for .deskrank/deskrank.toml.

    Args:
        start_dir: Starting directory for upward search

    Returns:
        Path to config file if found, else None

    """
    current = start_dir.expanduser().resolve()
    for candidate in (current, *current.parents):
        toml_path = candidate / CONFIG_DIR_NAME / CONFIG_FILE_NAME
        if toml_path.exists():
            return toml_path
    return None


def _collect_env_override_paths() -> set[tuple[str, ...]]:
    """Return the set of config paths defined via environment variables."""
    env_paths: set[tuple[str, ...]] = set()

    for key in os.environ:
        if not key.startswith(ENV_PREFIX):
            continue
        parts = [part.lower() for part in key[len(ENV_PREFIX) :].split("__") if part]
        if parts:
            env_paths.add(tuple(parts))

    return env_paths


def _merge_config(
    base: dict[str, Any],
    override: dict[str, Any],
    env_override_paths: set[tuple[str, ...]],
    current_path: tuple[str, ...] = (),
) -> dict[str, Any]:
    """Merge override into base, skipping keys provided via env vars."""
    merged = deepcopy(base)

    for key, value in override.items():
        path = (*current_path, str(key).lower())
        if path in env_override_paths:
            continue

        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge_config(merged[key], value, env_override_paths, path)
        else:
            merged[key] = value

    return merged


def load_deskrank_config(site_root: Path | None = None) -> DeskrankConfig:
    """Load deskrank configuration from .deskrank/deskrank.toml.

    Configuration priority (highest to lowest):
    1. Environment variables (DESKRANK_SECTION__KEY)
    2. Config file (.deskrank/deskrank.toml)
    3. Defaults

    Args:
        site_root: Root directory of the site. If None, uses current working directory.

    Returns:
        Validated DeskrankConfig instance

    Raises:
        ConfigError: If the config file cannot be parsed or contains invalid data

    """
    if site_root is None:
        site_root = Path.cwd()

    config_path = find_deskrank_config(site_root)

    if config_path is None:
        logger.info("No configuration found, creating default config in %s", site_root / CONFIG_DIR_NAME)
        return create_default_config(site_root)

    logger.info("Loading config from %s", config_path)

    try:
        file_data = tomllib.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.exception("Failed to read config from %s", config_path)
        msg = f"Cannot read {config_path}: {e}"
        raise ConfigError(msg) from e

    try:
        # Env vars are applied by the base model; the file only fills keys they don't set.
        base_dict = DeskrankConfig().model_dump(mode="json")
        merged = _merge_config(base_dict, file_data, _collect_env_override_paths())
        return DeskrankConfig.model_validate(merged)
    except ValidationError as e:
        for error in e.errors():
            loc = " -> ".join(str(location_part) for location_part in error["loc"])
            logger.error("  %s: %s", loc, error["msg"])  # noqa: TRY400
        msg = f"Invalid configuration in {config_path}"
        raise ConfigError(msg) from e


def create_default_config(site_root: Path) -> DeskrankConfig:
    """Create default .deskrank/deskrank.toml and return it."""
    config = DeskrankConfig()
    save_deskrank_config(config, site_root)
    logger.info("Created default config at %s", site_root / CONFIG_DIR_NAME / CONFIG_FILE_NAME)
    return config


def save_deskrank_config(config: DeskrankConfig, site_root: Path) -> Path:
    """Save DeskrankConfig to .deskrank/deskrank.toml.

    Creates .deskrank/ directory if it doesn't exist.

    Returns:
        Path to the saved config file

    """
    config_dir = site_root / CONFIG_DIR_NAME
    config_dir.mkdir(exist_ok=True, parents=True)

    config_path = config_dir / CONFIG_FILE_NAME
    data = config.model_dump(exclude_defaults=False, mode="json")
    config_path.write_text(tomli_w.dumps(data), encoding="utf-8")
    logger.debug("Saved config to %s", config_path)

    return config_path

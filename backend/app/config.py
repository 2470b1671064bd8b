"""Configuration loader for the account merge engine."""
from __future__ import annotations

import logging
import os
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from typing_extensions import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

LOGGER = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_ENV_FILE = REPO_ROOT / ".env"

DATABASE_URL_ENV_VAR = "MERGE_ENGINE_DATABASE_URL"
JWT_SECRET_ENV_VAR = "MERGE_ENGINE_JWT_SECRET"


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded."""


class _FrozenModel(BaseModel):
    """Base model enforcing immutability for config sections."""

    model_config = ConfigDict(frozen=True)


class ServiceConfig(_FrozenModel):
    """Service identity exposed through the health endpoint."""

    name: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)


class DatabaseConfig(_FrozenModel):
    """Async SQLAlchemy connection settings."""

    url: str = Field(..., min_length=1)
    echo: bool = False


class AuthJWTConfig(_FrozenModel):
    """JWT signing settings."""

    secret_key: str = Field(..., min_length=32)
    algorithm: str = Field("HS256", min_length=1)
    access_token_expires_minutes: int = Field(..., ge=1)

    @property
    def access_token_ttl(self) -> timedelta:
        """Return the configured access token lifetime."""

        return timedelta(minutes=self.access_token_expires_minutes)


class AuthConfig(_FrozenModel):
    """Top-level authentication configuration."""

    jwt: AuthJWTConfig
    merge_role: str = Field("super_admin", min_length=1)


class ClientRankingWeights(_FrozenModel):
    """Weights applied to client data signatures."""

    contacts: int = Field(1, ge=0)
    funds: int = Field(2, ge=0)
    posts: int = Field(1, ge=0)


class BusinessRankingWeights(_FrozenModel):
    """Weights applied to business data signatures."""

    products: int = Field(2, ge=0)
    orders: int = Field(1, ge=0)


class RankingConfig(_FrozenModel):
    """Primary-account ranking weights."""

    client: ClientRankingWeights = Field(default_factory=ClientRankingWeights)
    business: BusinessRankingWeights = Field(default_factory=BusinessRankingWeights)


class DedupeConfig(_FrozenModel):
    """Duplicate matching thresholds."""

    phone_key_length: int = Field(8, ge=4)
    min_business_name_length: int = Field(3, ge=1)
    business_name_only_confidence: Literal["high", "medium"] = "medium"


class MergeConfig(_FrozenModel):
    """Merge execution settings."""

    claim_secondary: bool = True
    merged_note_prefix: str = Field("[MERGED]", min_length=1)


class CorsConfig(_FrozenModel):
    """Cross-origin settings for the admin UI."""

    allowed_origins: List[str] = Field(default_factory=list)

    @field_validator("allowed_origins")
    @classmethod
    def _strip_origins(cls, value: List[str]) -> List[str]:
        return [item.strip() for item in value if isinstance(item, str) and item.strip()]


class AppConfig(_FrozenModel):
    """Top-level application configuration composed from config.yaml."""

    service: ServiceConfig
    database: DatabaseConfig
    auth: AuthConfig
    ranking: RankingConfig = Field(default_factory=RankingConfig)
    dedupe: DedupeConfig = Field(default_factory=DedupeConfig)
    merge: MergeConfig = Field(default_factory=MergeConfig)
    cors: CorsConfig = Field(default_factory=CorsConfig)

    @staticmethod
    def default_path() -> Path:
        """Return the default location of the configuration file.

        Returns:
            Path: Absolute path to config.yaml at the repository root.
        """
        return REPO_ROOT / "config.yaml"


def _determine_env_file_path() -> Optional[Path]:
    """Return the path to the environment file if one should be loaded."""

    override = os.getenv("MERGE_ENGINE_ENV_FILE")
    if override:
        candidate = Path(override).expanduser()
        if candidate.exists():
            return candidate
        LOGGER.warning("Configured environment file override does not exist: %s", candidate)
        return None
    if DEFAULT_ENV_FILE.exists():
        return DEFAULT_ENV_FILE
    return None


def _strip_inline_comment(value: str) -> str:
    """Remove inline comments from an environment value when unquoted."""

    comment_index = value.find("#")
    if comment_index == -1:
        return value
    return value[:comment_index].rstrip()


def _load_env_file(path: Path) -> None:
    """Populate ``os.environ`` with values read from a ``.env`` file.

    Values already present in the process environment win over the file.
    """

    try:
        with path.open("r", encoding="utf-8") as handle:
            for raw_line in handle:
                line = raw_line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                if line.lower().startswith("export "):
                    line = line[7:].lstrip()
                key, raw_value = (part.strip() for part in line.split("=", 1))
                if not key or os.environ.get(key, "").strip():
                    continue
                if raw_value and raw_value[0] in {'"', "'"} and raw_value[-1] == raw_value[0]:
                    os.environ[key] = raw_value[1:-1]
                else:
                    os.environ[key] = _strip_inline_comment(raw_value)
    except OSError:
        LOGGER.warning("Unable to read environment file at %s", path)


def _apply_environment_overrides(raw_content: Dict[str, Any]) -> Dict[str, Any]:
    """Merge environment-based overrides into the raw configuration mapping.

    Args:
        raw_content: Parsed YAML configuration prior to Pydantic validation.

    Returns:
        Dict[str, Any]: Configuration mapping with environment overrides applied.
    """

    env_file_path = _determine_env_file_path()
    if env_file_path is not None:
        _load_env_file(env_file_path)

    database_url = os.getenv(DATABASE_URL_ENV_VAR, "").strip()
    if database_url:
        raw_content.setdefault("database", {})["url"] = database_url
        LOGGER.info("Database URL overridden from environment")

    jwt_secret = os.getenv(JWT_SECRET_ENV_VAR, "").strip()
    if jwt_secret:
        auth_section = raw_content.setdefault("auth", {})
        auth_section.setdefault("jwt", {})["secret_key"] = jwt_secret
        LOGGER.info("JWT secret overridden from environment")
    return raw_content


def _read_yaml(path: Path) -> Dict[str, Any]:
    """Read YAML content from disk.

    Args:
        path: Location of the YAML file.

    Returns:
        Dict[str, Any]: Parsed YAML content.

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except FileNotFoundError as exc:
        LOGGER.error("Configuration file missing at %s", path)
        raise ConfigError("Configuration file not found") from exc
    except yaml.YAMLError as exc:
        LOGGER.error("Invalid YAML syntax in %s", path)
        raise ConfigError("Invalid YAML syntax") from exc
    if not isinstance(data, dict):
        LOGGER.error("Configuration root must be a mapping: %s", path)
        raise ConfigError("Configuration root must be a mapping")
    return data


@lru_cache(maxsize=1)
def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load application configuration from YAML.

    Args:
        path: Optional override path to the YAML file.

    Returns:
        AppConfig: Parsed configuration object.

    Raises:
        ConfigError: If the configuration cannot be loaded or validated.
    """
    config_path = path or AppConfig.default_path()
    raw_content = _read_yaml(config_path)
    raw_content = _apply_environment_overrides(raw_content)
    try:
        return AppConfig(**raw_content)
    except ValidationError as exc:
        LOGGER.error("Invalid configuration values: %s", exc)
        raise ConfigError("Configuration validation failed") from exc

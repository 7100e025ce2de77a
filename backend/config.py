import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Annotated, Any, Optional

import yaml
from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode

from utils.utcnow import ensure_utc

# Get the directory where this config file is located.
_BACKEND_DIR = Path(__file__).parent.resolve()
_PROJECT_ROOT = _BACKEND_DIR.parent.resolve()
_DEFAULT_SNAPSHOT_DIR = (_PROJECT_ROOT / "data" / "snapshots").resolve()
_DEFAULT_DB_PATH = (_PROJECT_ROOT / "data" / "leaderboard.db").resolve()
_SQLITE_ASYNC_PREFIX = "sqlite+aiosqlite:///"
_LOGGER = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}

# Competition-file keys that do not map onto a field by plain camelCase conversion.
_COMPETITION_FILE_ALIASES = {
    "starttime": "COMPETITION_START_TIME",
    "endtime": "COMPETITION_END_TIME",
    "vegapoll": "POLL_INTERVAL_SECONDS",
    "pollinterval": "POLL_INTERVAL_SECONDS",
    "socialurl": "SOCIAL_URL",
    "vegagraphqlurl": "DATA_NODE_GRAPHQL_URL",
    "graphqlurl": "DATA_NODE_GRAPHQL_URL",
    "vegaasset": "ASSET",
    "gracefulshutdowntimeout": "GRACEFUL_SHUTDOWN_TIMEOUT_SECONDS",
    "version": "LEADERBOARD_VERSION",
    "base": "BASE_ASSET",
    "quote": "QUOTE_ASSET",
    "loglevel": "LOG_LEVEL",
    "logformat": "LOG_JSON",
    "excludefile": "EXCLUDED_PARTIES_FILE",
}


def parse_duration_seconds(value: object) -> object:
    """Accept plain seconds or short duration strings such as ``30s``, ``5m``, ``1h``."""
    if value is None or isinstance(value, (int, float)):
        return value
    match = _DURATION_RE.match(str(value))
    if not match:
        return value
    number, unit = match.groups()
    return float(number) * _DURATION_UNITS[unit]


def _camel_to_upper_snake(name: str) -> str:
    snake = re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", name)
    return snake.replace("-", "_").upper()


def competition_file_overrides(path: str | Path) -> dict[str, Any]:
    """Read a YAML competition file and map its keys onto ``Settings`` field names."""
    with open(path, "r", encoding="utf-8") as handle:
        document = yaml.safe_load(handle) or {}
    if not isinstance(document, dict):
        raise ValueError(f"Competition file {path} must contain a mapping at the top level")

    field_names = set(Settings.model_fields)
    overrides: dict[str, Any] = {}
    for raw_key, value in document.items():
        key = str(raw_key)
        field_name = _COMPETITION_FILE_ALIASES.get(key.lower().replace("_", ""))
        if field_name is None:
            field_name = _camel_to_upper_snake(key)
        if field_name == "LOG_JSON" and isinstance(value, str):
            value = value.strip().lower() == "json"
        if field_name not in field_names:
            _LOGGER.warning("Ignoring unknown competition file key %s", key)
            continue
        overrides[field_name] = value
    return overrides


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Competition window
    COMPETITION_START_TIME: Optional[datetime] = None
    COMPETITION_END_TIME: Optional[datetime] = None
    POLL_INTERVAL_SECONDS: float = 60.0

    # Ranking
    ALGORITHM: str = ""
    ALGORITHM_CONFIG: dict[str, str] = {}

    # Display metadata, served verbatim
    LEADERBOARD_VERSION: int = 1
    DESCRIPTION: str = ""
    DEFAULT_DISPLAY: str = ""
    DEFAULT_SORT: str = ""
    HEADERS: Annotated[list[str], NoDecode] = []
    BASE_ASSET: str = ""
    QUOTE_ASSET: str = ""
    ASSET: str = ""

    # External services
    SOCIAL_URL: str = ""
    DATA_NODE_GRAPHQL_URL: str = ""
    API_TIMEOUT_SECONDS: float = 10.0
    MAX_RETRY_ATTEMPTS: int = 3
    RETRY_BASE_DELAY: float = 0.5

    # Verified numeric identity ids excluded from the public board
    BLACKLIST: Annotated[list[str], NoDecode] = []
    # Optional CSV of party ids to exclude, first column only
    EXCLUDED_PARTIES_FILE: Optional[str] = None

    # Snapshots
    SNAPSHOTS_ENABLED: bool = True
    SNAPSHOT_BACKEND: str = "file"
    SNAPSHOT_DIR: str = str(_DEFAULT_SNAPSHOT_DIR)
    DATABASE_URL: str = f"{_SQLITE_ASYNC_PREFIX}{_DEFAULT_DB_PATH}"

    # Keep re-ranking after the competition ended (false freezes the board at the end snapshot)
    REFRESH_AFTER_END: bool = True

    GRACEFUL_SHUTDOWN_TIMEOUT_SECONDS: float = 10.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    LOG_FILE: Optional[str] = None

    # API
    CORS_ORIGINS: Annotated[list[str], NoDecode] = ["*"]

    # Optional YAML competition file overriding the environment
    COMPETITION_CONFIG_FILE: Optional[str] = None

    @field_validator("COMPETITION_START_TIME", "COMPETITION_END_TIME", mode="after")
    @classmethod
    def _normalize_window(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Timestamps without an offset are UTC."""
        return ensure_utc(value) if value is not None else None

    @field_validator("POLL_INTERVAL_SECONDS", "GRACEFUL_SHUTDOWN_TIMEOUT_SECONDS", "API_TIMEOUT_SECONDS", mode="before")
    @classmethod
    def _parse_duration(cls, value: object) -> object:
        return parse_duration_seconds(value)

    @field_validator("ALGORITHM_CONFIG", mode="before")
    @classmethod
    def _coerce_algorithm_config(cls, value: object) -> object:
        if value is None or value == "":
            return {}
        if isinstance(value, str):
            value = json.loads(value)
        if isinstance(value, dict):
            return {
                str(k): ",".join(str(v) for v in item) if isinstance(item, (list, tuple)) else str(item)
                for k, item in value.items()
            }
        return value

    @field_validator("BLACKLIST", mode="before")
    @classmethod
    def _coerce_blacklist(cls, value: object) -> object:
        """Accept a list, a comma separated string, or a mapping keyed by id."""
        if value is None or value == "":
            return []
        if isinstance(value, str):
            text = value.strip()
            if text.startswith("["):
                value = json.loads(text)
            else:
                return [part.strip() for part in text.split(",") if part.strip()]
        if isinstance(value, dict):
            value = list(value.keys())
        if isinstance(value, (list, tuple, set)):
            return [str(item).strip() for item in value if str(item).strip()]
        return value

    @field_validator("HEADERS", "CORS_ORIGINS", mode="before")
    @classmethod
    def _coerce_string_list(cls, value: object) -> object:
        """Env values may be a JSON array or a comma separated string."""
        if not isinstance(value, str):
            return value
        text = value.strip()
        if text.startswith("["):
            return json.loads(text)
        return [part.strip() for part in text.split(",") if part.strip()]

    @field_validator("SOCIAL_URL", "DATA_NODE_GRAPHQL_URL", mode="before")
    @classmethod
    def _normalize_url_field(cls, value: object) -> object:
        """Trim accidental quotes/whitespace from URL env vars."""
        if value is None:
            return value
        return str(value).strip().strip('"').strip("'")

    @field_validator("SNAPSHOT_BACKEND", mode="before")
    @classmethod
    def _lower_backend(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _upper_level(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value

    class Config:
        # Load project-root .env first, then backend/.env as an override if present.
        env_file = (
            str(_PROJECT_ROOT / ".env"),
            str(_BACKEND_DIR / ".env"),
        )
        env_file_encoding = "utf-8"
        extra = "ignore"


def load_settings() -> Settings:
    """Build settings from the environment, then apply the competition file if one is set."""
    base = Settings()
    if not base.COMPETITION_CONFIG_FILE:
        return base
    overrides = competition_file_overrides(base.COMPETITION_CONFIG_FILE)
    # Init kwargs take priority over environment values.
    return Settings(**overrides)


settings = load_settings()

"""Utilities for loading and working with ticketvault configuration."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, MutableMapping, Optional

DEFAULT_CONFIG_NAME = "config.json"
CONFIG_ENV_VAR = "TICKETVAULT_CONFIG"
SECRET_KEY_ENV_VAR = "TICKETVAULT_SECRET_KEY"

DEFAULT_SECRET_KEY = "dev-secret-key-change-me"
DEFAULT_DATABASE_URI = "sqlite:///ticketvault.db"
DEFAULT_UPLOADS_DIRECTORY = "uploads"
DEFAULT_MAX_UPLOAD_MB = 25
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_ORPHAN_MIN_AGE_MINUTES = 60


DEFAULT_CONFIG: Dict[str, Any] = {
    "secret_key": DEFAULT_SECRET_KEY,
    "database": {"uri": DEFAULT_DATABASE_URI},
    "uploads": {
        "directory": DEFAULT_UPLOADS_DIRECTORY,
        "max_size_mb": DEFAULT_MAX_UPLOAD_MB,
    },
    "logging": {"level": DEFAULT_LOG_LEVEL},
    "orphans": {"min_age_minutes": DEFAULT_ORPHAN_MIN_AGE_MINUTES},
}


@dataclass
class AppConfig:
    """Runtime configuration for the ticketvault application."""

    secret_key: str
    database_uri: str
    uploads_directory: Path
    max_upload_mb: int = DEFAULT_MAX_UPLOAD_MB
    log_level: str = DEFAULT_LOG_LEVEL
    orphan_min_age_minutes: int = DEFAULT_ORPHAN_MIN_AGE_MINUTES
    source_path: Optional[Path] = None

    @property
    def uploads_path(self) -> Path:
        return self.uploads_directory

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


def _coerce_positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    if number <= 0:
        return None
    return number


def _coerce_non_negative_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    if number < 0:
        return None
    return number


def _coerce_log_level(value: Any) -> str:
    text = str(value or "").strip().upper()
    if isinstance(logging.getLevelName(text), int):
        return text
    return DEFAULT_LOG_LEVEL


def _section(merged: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = merged.get(key, {})
    if not isinstance(value, Mapping):
        return {}
    return value


def _merge_dict(base: MutableMapping[str, Any], overlay: Mapping[str, Any]) -> MutableMapping[str, Any]:
    for key, value in overlay.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), MutableMapping):
            base[key] = _merge_dict(base[key], value)
        else:
            base[key] = value
    return base


def _resolve_database_uri(raw_uri: str, base_path: Path) -> str:
    if raw_uri.startswith("sqlite:///") and not raw_uri.startswith("sqlite:////"):
        relative_path = raw_uri.replace("sqlite:///", "", 1)
        if relative_path == ":memory:":
            return raw_uri
        db_path = Path(relative_path)
        if not db_path.is_absolute():
            db_path = (base_path / db_path).resolve()
        return f"sqlite:///{db_path}"
    return raw_uri


def _resolve_upload_directory(raw_directory: str, base_path: Path) -> Path:
    upload_path = Path(raw_directory)
    if not upload_path.is_absolute():
        upload_path = (base_path / upload_path).resolve()
    return upload_path


def load_config(config_path: Optional[os.PathLike[str] | str] = None) -> AppConfig:
    """Load application configuration from JSON, applying defaults as needed."""

    provided_path = Path(config_path) if config_path else None
    env_path = Path(os.environ[CONFIG_ENV_VAR]) if os.environ.get(CONFIG_ENV_VAR) else None

    default_paths: List[Path] = []
    if provided_path is None and env_path is None:
        default_paths.append(Path.cwd() / DEFAULT_CONFIG_NAME)
        default_paths.append(Path(__file__).resolve().parent.parent / DEFAULT_CONFIG_NAME)

    search_paths = [provided_path, env_path, *default_paths]

    config_file: Optional[Path] = None
    for candidate in search_paths:
        if candidate and candidate.exists():
            config_file = candidate
            break

    if config_file:
        with config_file.open("r", encoding="utf-8") as fh:
            loaded_data = json.load(fh)
        if not isinstance(loaded_data, Mapping):
            raise ValueError(f"Configuration file {config_file} must contain a JSON object.")
        source_path = config_file
    else:
        loaded_data = {}
        source_path = provided_path or env_path or Path.cwd() / DEFAULT_CONFIG_NAME

    source_path = source_path.resolve()
    base_path = source_path.parent

    merged: Dict[str, Any] = json.loads(json.dumps(DEFAULT_CONFIG))  # deep copy
    _merge_dict(merged, loaded_data)

    database_config = _section(merged, "database")
    uploads_config = _section(merged, "uploads")
    logging_config = _section(merged, "logging")
    orphans_config = _section(merged, "orphans")

    database_uri = _resolve_database_uri(
        str(database_config.get("uri") or DEFAULT_DATABASE_URI), base_path
    )
    uploads_directory = _resolve_upload_directory(
        str(uploads_config.get("directory") or DEFAULT_UPLOADS_DIRECTORY), base_path
    )
    secret_key = os.environ.get(SECRET_KEY_ENV_VAR) or str(merged.get("secret_key") or DEFAULT_SECRET_KEY)

    max_upload_mb = _coerce_positive_int(uploads_config.get("max_size_mb"))
    if max_upload_mb is None:
        max_upload_mb = DEFAULT_MAX_UPLOAD_MB

    orphan_min_age = _coerce_non_negative_int(orphans_config.get("min_age_minutes"))
    if orphan_min_age is None:
        orphan_min_age = DEFAULT_ORPHAN_MIN_AGE_MINUTES

    return AppConfig(
        secret_key=secret_key,
        database_uri=database_uri,
        uploads_directory=uploads_directory,
        max_upload_mb=max_upload_mb,
        log_level=_coerce_log_level(logging_config.get("level")),
        orphan_min_age_minutes=orphan_min_age,
        source_path=source_path,
    )

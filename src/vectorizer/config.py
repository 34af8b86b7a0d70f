"""Configuration module for vectorizer.

Settings are layered, lowest precedence first:
1. Built-in defaults
2. Global settings file (<config dir>/settings.yaml)
3. Project settings file (<project>/.vectorizer)
4. Environment variables
5. Command-line overrides

The merged settings are frozen once reconciled and turned into a typed Config.
"""

import copy
import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from vectorizer.errors import ConfigurationError

SETTINGS_FILE = "settings.yaml"
PROJECT_FILE = ".vectorizer"
LOG_FILE = "vectorizer.log"

DEFAULT_SETTINGS_YAML = """\
indexer:
  log_level: warning
  project_file: false   # Create a project settings file when missing
  threads: 6            # Walker pool size
  extensions: []        # File extensions to index
  directories: []       # Directories to walk within the project root
  ignored: []           # Ignore rules (gitignore syntax)

database:
  url: ""               # Qdrant url, ex: http://localhost:6334
  collection: ""        # Collection to create/upload into
  max_tokens: 0         # Maximum tokens per fragment (0 = 256)
  metadata: ""          # Metadata added to every file, JSON object
  dimension: 384        # Embedding size

model:
  local: false
  location: L12         # L6, L12, a model name or a local path

server:
  port: 8080
"""

DEFAULT_PROJECT_YAML = """\
indexer:
  extensions: []
  directories: []
  ignored: []

database:
  collection: ""
  max_tokens: 0
  metadata: ""
"""

LOG_LEVELS = ("debug", "info", "warn", "warning", "error", "critical")

# Environment variable -> settings key
ENV_SETTINGS = {
    "VECTORIZER_PROJECT": "indexer.project",
    "VECTORIZER_URL": "database.url",
    "VECTORIZER_API_KEY": "database.api_key",
    "VECTORIZER_COLLECTION": "database.collection",
}


def _deep_merge(target: dict, source: Mapping) -> None:
    for key, value in source.items():
        if isinstance(value, Mapping) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


class Settings:
    """
    Process-wide settings addressed by dotted key paths ("database.url").

    Written while arguments and files are reconciled, then frozen.
    """

    def __init__(self, data: Mapping | None = None):
        self._data: dict[str, Any] = {}
        self._frozen = False
        if data:
            self.merge(data)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def _check_writable(self) -> None:
        if self._frozen:
            raise RuntimeError("Settings are frozen")

    def get(self, key: str, default: Any = None) -> Any:
        node: Any = self._data
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        self._check_writable()
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

    def merge(self, data: Mapping) -> None:
        self._check_writable()
        _deep_merge(self._data, data)

    def as_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)


def get_config_dir() -> Path:
    """Directory holding the global settings and the log file."""
    override = os.getenv("VECTORIZER_CONFIG_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "vectorizer"


def load_settings_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML settings file.

    Raises:
        ConfigurationError: If the file is not valid YAML or not a mapping.
    """
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid settings file {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read settings file {path}: {e}") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Settings file {path} must contain a mapping")
    return raw


def write_default_settings(config_dir: Path) -> Path:
    """Write the default global settings file and return its path."""
    config_dir.mkdir(parents=True, exist_ok=True)
    path = config_dir / SETTINGS_FILE
    path.write_text(DEFAULT_SETTINGS_YAML, encoding="utf-8")
    return path


def write_default_project_settings(project: Path) -> Path:
    """Write a project settings file with empty overrides."""
    path = project / PROJECT_FILE
    path.write_text(DEFAULT_PROJECT_YAML, encoding="utf-8")
    return path


def load_settings(
    overrides: Mapping[str, Any] | None = None,
    config_dir: Path | None = None,
) -> Settings:
    """
    Reconcile every settings layer into a frozen Settings store.

    Args:
        overrides: Dotted key -> value from the command line. None values are skipped.
        config_dir: Directory of the global settings file (default: get_config_dir()).
    """
    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
    config_dir = config_dir or get_config_dir()

    settings = Settings(yaml.safe_load(DEFAULT_SETTINGS_YAML))

    global_file = config_dir / SETTINGS_FILE
    if not global_file.exists():
        global_file = write_default_settings(config_dir)
    settings.merge(load_settings_file(global_file))

    env_values = {key: os.environ[name] for name, key in ENV_SETTINGS.items() if os.getenv(name)}

    # The project file location depends on the higher layers
    project = overrides.get("indexer.project") or env_values.get("indexer.project")
    project = project or settings.get("indexer.project")
    if project:
        project_dir = Path(project).expanduser()
        project_file = project_dir / PROJECT_FILE
        if project_dir.is_dir() and not project_file.exists() and settings.get("indexer.project_file"):
            write_default_project_settings(project_dir)
        if project_file.is_file():
            settings.merge(load_settings_file(project_file))

    for key, value in env_values.items():
        settings.set(key, value)
    for key, value in overrides.items():
        settings.set(key, value)

    settings.freeze()
    return settings


def _as_list(value: Any, key: str) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    raise ConfigurationError(f"Invalid {key} value {value!r}: expected a list")


def _as_int(value: Any, key: str, minimum: int | None = None) -> int:
    try:
        number = int(value)
        if minimum is not None and number < minimum:
            raise ValueError(f"must be >= {minimum}")
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid {key} value '{value}': {e}") from e
    return number


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() in ("1", "true", "yes")
    return bool(value)


def parse_log_level(value: Any) -> str:
    """Validate a log level name. VECTORIZER_LOG takes precedence over the setting."""
    level = str(os.getenv("VECTORIZER_LOG") or value or "warning").strip().lower()
    if level not in LOG_LEVELS:
        raise ConfigurationError(
            f"Invalid log level '{level}': expected one of {', '.join(LOG_LEVELS)}"
        )
    return level


def parse_metadata(value: Any) -> dict[str, Any]:
    """Parse base metadata given as a JSON object string or a mapping."""
    if value is None or value == "":
        return {}
    if isinstance(value, Mapping):
        return dict(value)
    try:
        parsed = json.loads(value)
    except (TypeError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Invalid metadata JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ConfigurationError("Metadata must be a JSON object")
    return parsed


@dataclass
class Config:
    """Application configuration."""

    project: Path
    collection: str
    extensions: list[str] = field(default_factory=list)
    directories: list[str] = field(default_factory=list)
    ignored: list[str] = field(default_factory=list)
    database_url: str | None = None
    api_key: str | None = None
    max_tokens: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
    model_local: bool = False
    model_location: str = "L12"
    dimension: int = 384
    log_level: str = "warning"
    threads: int = 6
    server_port: int = 8080

    @classmethod
    def from_settings(cls, settings: Settings) -> "Config":
        """Build the typed configuration.

        Raises:
            ConfigurationError: If a required setting is missing or a value is invalid.
        """
        project = settings.get("indexer.project")
        if not project:
            raise ConfigurationError("No project path provided")

        collection = settings.get("database.collection")
        if not collection:
            raise ConfigurationError("No collection name provided")

        model_local = _as_bool(settings.get("model.local", False))
        model_location = settings.get("model.location") or ""
        if model_local and not model_location:
            raise ConfigurationError("Local model requires a path")

        server_port = _as_int(settings.get("server.port", 8080), "server.port")
        if not 1 <= server_port <= 65535:
            raise ConfigurationError(f"Port must be between 1 and 65535, got {server_port}")

        return cls(
            project=Path(str(project)).expanduser(),
            collection=str(collection),
            extensions=_as_list(settings.get("indexer.extensions"), "indexer.extensions"),
            directories=_as_list(settings.get("indexer.directories"), "indexer.directories"),
            ignored=_as_list(settings.get("indexer.ignored"), "indexer.ignored"),
            database_url=settings.get("database.url") or None,
            api_key=settings.get("database.api_key") or None,
            max_tokens=_as_int(settings.get("database.max_tokens", 0), "database.max_tokens"),
            metadata=parse_metadata(settings.get("database.metadata")),
            model_local=model_local,
            model_location=model_location or "L12",
            dimension=_as_int(settings.get("database.dimension", 384), "database.dimension", 1),
            log_level=parse_log_level(settings.get("indexer.log_level")),
            threads=_as_int(settings.get("indexer.threads", 6), "indexer.threads", 1),
            server_port=server_port,
        )

    @classmethod
    def load(
        cls,
        overrides: Mapping[str, Any] | None = None,
        config_dir: Path | None = None,
    ) -> "Config":
        """Reconcile all settings layers and build the configuration."""
        global _settings
        _settings = load_settings(overrides, config_dir)
        return cls.from_settings(_settings)

    def require_database(self) -> str:
        """Return the database url, failing if it is not configured."""
        if not self.database_url:
            raise ConfigurationError("No database url provided")
        return self.database_url


# Global settings store and config (lazy loaded)
_settings: Settings | None = None
_config: Config | None = None


def get_settings() -> Settings:
    """Get the process-wide settings store."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.from_settings(get_settings())
    return _config


def set_config(config: Config) -> None:
    """Install a reconciled configuration as the global instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global settings and configuration (useful for testing)."""
    global _settings, _config
    _settings = None
    _config = None

"""Configuration management."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from platformdirs import user_config_dir
from pydantic import BaseModel, Field, ValidationError

from .editor.types import DocumentFilter
from .util.error import ConfigError
from .util.log import Log, LogLevel

DEFAULT_SERVER_COMMAND = "tjs-language-server"
SERVER_PATH_ENV = "SERVER_PATH"


class ClientOptions(BaseModel):
    """Everything that differs between deployments of the client."""

    client_id: str = "diagnostic-ls"
    name: str = "diagnostic language server"
    default_command: str = DEFAULT_SERVER_COMMAND
    command_env_var: str = SERVER_PATH_ENV
    args: List[str] = Field(default_factory=list)
    environment_overlay: Dict[str, str] = Field(default_factory=lambda: {"RUST_LOG": "debug"})
    document_selector: List[DocumentFilter] = Field(default_factory=lambda: [DocumentFilter()])
    watched_files: List[str] = Field(default_factory=lambda: ["**/.clientrc"])
    hints_method: str = "custom/hints"
    trace_channel: str = "Diagnostic Language Server trace"
    initialization_options: Dict[str, Any] = Field(default_factory=dict)
    shutdown_timeout: float = 5.0
    log_level: Optional[LogLevel] = None

    model_config = {"use_enum_values": True}


class Config:
    """Loads and caches ``ClientOptions`` from the user config directory."""

    _log = Log.create({"service": "config"})
    _config_path = Path(user_config_dir("inlay-client")) / "config.json"
    _cached_config: Optional[ClientOptions] = None

    @classmethod
    def path(cls) -> Path:
        return cls._config_path

    @classmethod
    def use_path(cls, path: Path) -> None:
        """Point the loader at another file and drop the cache."""
        cls._config_path = Path(path)
        cls.clear_cache()

    @classmethod
    def get(cls) -> ClientOptions:
        """Get current options; a missing file means defaults."""
        if cls._cached_config is not None:
            return cls._cached_config

        if not cls._config_path.exists():
            cls._cached_config = ClientOptions()
            return cls._cached_config

        try:
            with open(cls._config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            cls._cached_config = ClientOptions(**data)
        except (OSError, json.JSONDecodeError, ValidationError, TypeError) as e:
            cls._log.error("Failed to load config", {"path": str(cls._config_path), "error": str(e)})
            raise ConfigError({"path": str(cls._config_path)}, f"Invalid configuration file: {e}", e) from e

        cls._log.info("Loaded config", {"path": str(cls._config_path)})
        return cls._cached_config

    @classmethod
    def save(cls, options: ClientOptions) -> None:
        cls._config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(cls._config_path, 'w', encoding='utf-8') as f:
            json.dump(options.model_dump(mode="json", exclude_none=True), f, indent=2)
        cls._cached_config = options
        cls._log.info("Configuration saved", {"path": str(cls._config_path)})

    @classmethod
    def clear_cache(cls) -> None:
        cls._cached_config = None

"""Start the language server as a child process."""

import os
import shutil
import subprocess
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import ClientOptions
from ..util.error import StartupFailure
from ..util.log import Log

_log = Log.create({"service": "lsp.launcher"})


class ServerProcessConfig(BaseModel):
    """How to start the server. Built once per session."""
    model_config = ConfigDict(frozen=True)

    command: str
    args: List[str] = Field(default_factory=list)
    environment: Dict[str, str] = Field(default_factory=dict)
    cwd: Optional[str] = None

    @field_validator("command")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("server command must not be empty")
        return value

    @classmethod
    def from_options(
        cls,
        options: ClientOptions,
        environ: Optional[Mapping[str, str]] = None,
        cwd: Optional[str] = None,
    ) -> "ServerProcessConfig":
        environ = dict(os.environ if environ is None else environ)
        command = resolve_command(environ, options.command_env_var, options.default_command)
        return cls(
            command=command,
            args=list(options.args),
            environment={**environ, **options.environment_overlay},
            cwd=cwd,
        )

    @property
    def argv(self) -> List[str]:
        return [self.command, *self.args]


def resolve_command(environ: Mapping[str, str], env_var: str, default: str) -> str:
    """The override variable wins when set to something non-blank."""
    override = environ.get(env_var, "").strip()
    return override or default


def launch(config: ServerProcessConfig) -> subprocess.Popen:
    """Spawn the server with piped stdio.

    Raises ``StartupFailure`` when the executable is missing or cannot run.
    """
    executable = shutil.which(config.command, path=config.environment.get("PATH")) or config.command
    _log.info("Starting language server", {"command": " ".join(config.argv), "executable": executable})

    try:
        return subprocess.Popen(
            [executable, *config.args],
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=config.environment,
            cwd=config.cwd,
        )
    except FileNotFoundError as e:
        _log.error("Language server executable not found", {"command": config.command})
        raise StartupFailure(
            {"command": config.command}, f"Language server executable '{config.command}' was not found", e
        ) from e
    except PermissionError as e:
        _log.error("Language server executable is not runnable", {"command": config.command})
        raise StartupFailure(
            {"command": config.command}, f"Permission denied starting '{config.command}'", e
        ) from e
    except OSError as e:
        _log.error("Failed to start language server", {"command": config.command, "error": str(e)})
        raise StartupFailure({"command": config.command}, f"Failed to start '{config.command}': {e}", e) from e

#!/usr/bin/env python3
"""
ycmd-ide - Configuration

Module-level defaults, each overridable through a YCMD_IDE_* environment
variable. Settings.from_env() snapshots them into one object that the
supervisor and client share.
"""

import os
import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path

# Configuration
DEFAULT_HOST = "127.0.0.1"
DEFAULT_SCHEME = "http"
DEFAULT_YCMD_PATH = Path.home() / ".local/share/ycmd/ycmd"
DEFAULT_IDLE_SUICIDE_SECONDS = 10800
DEFAULT_STARTUP_DELAY = 5.0  # seconds before the first health check
DEFAULT_HEALTH_ATTEMPTS = 5
DEFAULT_HEALTH_INTERVAL = 1.0
DEFAULT_READ_TIMEOUT = 1.0
DEFAULT_INIT_RESTART_ATTEMPTS = 10
DEFAULT_VISIBLE_ROWS = 26
ENTROPY_SOURCE = "/dev/random"
SECRET_KEY_LENGTH = 16

ENV_PREFIX = "YCMD_IDE_"


def _env(name: str, default):
    value = os.environ.get(ENV_PREFIX + name)
    if value is None or value == "":
        return default
    if isinstance(default, bool):
        return value.lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return value


def _which(binary: str) -> str:
    return shutil.which(binary) or ""


@dataclass
class ToolPaths:
    """Absolute paths of helper binaries ycmd's language completers use."""
    gocode: str = ""
    godef: str = ""
    rust_src: str = ""
    racerd: str = ""
    python: str = ""

    @classmethod
    def from_env(cls) -> "ToolPaths":
        return cls(
            gocode=_env("GOCODE_PATH", _which("gocode")),
            godef=_env("GODEF_PATH", _which("godef")),
            rust_src=_env("RUST_SRC_PATH", os.environ.get("RUST_SRC_PATH", "")),
            racerd=_env("RACERD_PATH", _which("racerd")),
            python=_env("PYTHON_PATH", sys.executable),
        )


@dataclass
class Settings:
    """Everything needed to launch and talk to one ycmd server."""
    python_path: str = sys.executable
    ycmd_path: str = str(DEFAULT_YCMD_PATH)
    host: str = DEFAULT_HOST
    scheme: str = DEFAULT_SCHEME
    idle_suicide_seconds: int = DEFAULT_IDLE_SUICIDE_SECONDS
    startup_delay: float = DEFAULT_STARTUP_DELAY
    health_attempts: int = DEFAULT_HEALTH_ATTEMPTS
    health_interval: float = DEFAULT_HEALTH_INTERVAL
    read_timeout: float = DEFAULT_READ_TIMEOUT
    init_restart_attempts: int = DEFAULT_INIT_RESTART_ATTEMPTS
    visible_rows: int = DEFAULT_VISIBLE_ROWS
    entropy_source: str = ENTROPY_SOURCE
    tools: ToolPaths = field(default_factory=ToolPaths)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            python_path=_env("PYTHON", sys.executable),
            ycmd_path=_env("YCMD_PATH", str(DEFAULT_YCMD_PATH)),
            host=_env("HOST", DEFAULT_HOST),
            idle_suicide_seconds=_env("IDLE_SUICIDE_SECONDS", DEFAULT_IDLE_SUICIDE_SECONDS),
            startup_delay=_env("STARTUP_DELAY", DEFAULT_STARTUP_DELAY),
            health_attempts=_env("HEALTH_ATTEMPTS", DEFAULT_HEALTH_ATTEMPTS),
            health_interval=_env("HEALTH_INTERVAL", DEFAULT_HEALTH_INTERVAL),
            read_timeout=_env("READ_TIMEOUT", DEFAULT_READ_TIMEOUT),
            init_restart_attempts=_env("INIT_RESTART_ATTEMPTS", DEFAULT_INIT_RESTART_ATTEMPTS),
            visible_rows=_env("VISIBLE_ROWS", DEFAULT_VISIBLE_ROWS),
            entropy_source=_env("ENTROPY_SOURCE", ENTROPY_SOURCE),
            tools=ToolPaths.from_env(),
        )

    def server_command(self, port: int, options_path: str) -> list[str]:
        """Command line for the completion server child process."""
        return [
            self.python_path, self.ycmd_path,
            "--port", str(port),
            "--options_file", options_path,
            "--idle_suicide_seconds", str(self.idle_suicide_seconds),
            "--stdout", os.devnull,
            "--stderr", os.devnull,
        ]

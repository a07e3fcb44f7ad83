from __future__ import annotations

import json
import os
from pathlib import Path

from pydantic import BaseModel, Field

CONFIG_ENV = "INSTALLER_CONFIG"

DEFAULT_MIGRATIONS_PATH = "/run_migrations"
DEFAULT_SUCCESS_PATH = "/config"
DEFAULT_MIGRATIONS_TIMEOUT_SECONDS = 20.0


class ServerConfig(BaseModel):
    base_url: str = Field(
        default="http://127.0.0.1:4000",
        description="Base URL of the installer web service that serves /run_migrations.",
    )


class MigrationsConfig(BaseModel):
    """Contract of the one-shot migrations call.

    The server decides whether migrations are pending; the client only fires
    the request and reacts to the outcome.
    """

    path: str = Field(default=DEFAULT_MIGRATIONS_PATH)
    timeout_seconds: float = Field(
        default=DEFAULT_MIGRATIONS_TIMEOUT_SECONDS,
        gt=0,
        description="Bound on the wait before the call is treated as failed.",
    )
    success_path: str = Field(
        default=DEFAULT_SUCCESS_PATH,
        description="Page the installer navigates to once migrations report ok.",
    )


class LogSettings(BaseModel):
    file: str | None = Field(
        default=None,
        description="Rotating log file; relative to the config file. Unset logs to stderr only.",
    )
    level: str = Field(default="INFO")
    max_size_mb: int = Field(default=10, ge=1)
    backup_count: int = Field(default=5, ge=1)


class InstallerConfig(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    migrations: MigrationsConfig = Field(default_factory=MigrationsConfig)
    logging: LogSettings = Field(default_factory=LogSettings)


def config_path_from_env(environ: dict[str, str] | None = None) -> Path | None:
    env = os.environ if environ is None else environ
    raw = (env.get(CONFIG_ENV) or "").strip()
    return Path(raw).expanduser() if raw else None


def load_installer_config(path: Path | None) -> InstallerConfig:
    """Read the installer JSON config.

    No path means defaults. A path that does not exist is an error, so a typo
    in --config never silently falls back to defaults.
    """

    if path is None:
        return InstallerConfig()

    data = json.loads(path.read_text(encoding="utf-8"))
    config = InstallerConfig.model_validate(data)

    log_file = config.logging.file
    if log_file and not Path(log_file).expanduser().is_absolute():
        resolved = (path.parent / log_file).resolve()
        config = config.model_copy(
            update={"logging": config.logging.model_copy(update={"file": str(resolved)})}
        )
    return config


def with_overrides(
    config: InstallerConfig,
    *,
    base_url: str | None = None,
    timeout_seconds: float | None = None,
    log_file: str | None = None,
) -> InstallerConfig:
    """Apply command line overrides; values go through model validation again."""

    data = config.model_dump()
    if base_url:
        data["server"]["base_url"] = base_url
    if timeout_seconds is not None:
        data["migrations"]["timeout_seconds"] = timeout_seconds
    if log_file:
        data["logging"]["file"] = log_file
    return InstallerConfig.model_validate(data)

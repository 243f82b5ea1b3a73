# SPDX-License-Identifier: MIT
"""Centralised application configuration management.

This module exposes :class:`Settings`, a ``pydantic-settings`` model that
combines values sourced from a YAML configuration file and environment
variables. Environment variables take precedence over file-based values and
the merged configuration is validated before use.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from constants import DEFAULT_STORE_DIR, STORE_FILENAME
from io_utils.loader import load_app_config


class Settings(BaseSettings):
    """Application settings combining file-based and environment configuration."""

    log_level: str = Field("WARN", description="Logging verbosity level.")
    store_dir: Path = Field(
        DEFAULT_STORE_DIR, description="Directory holding the allocation store."
    )
    secret: SecretStr | None = Field(
        None, description="Default key material for reference derivation."
    )
    logfire_token: str | None = Field(
        None, description="Logfire authentication token, if available.", repr=False
    )

    model_config = SettingsConfigDict(env_prefix="HEXREF_", extra="ignore")

    @property
    def store_path(self) -> Path:
        """Return the allocation store document location."""
        return self.store_dir / STORE_FILENAME


def _resolve_store_dir(raw: str) -> Path:
    """Expand ``raw`` and verify the directory is writable.

    Unresolved ``$VARS`` fall back to :data:`DEFAULT_STORE_DIR`.

    Raises:
        RuntimeError: If the directory cannot be created or written.
    """
    expanded = os.path.expandvars(raw)
    if "$" in expanded:
        expanded = str(DEFAULT_STORE_DIR)
    store_dir = Path(expanded).expanduser()
    try:
        store_dir.mkdir(parents=True, exist_ok=True)
        test_file = store_dir / ".write_test"
        with test_file.open("w", encoding="utf-8"):
            pass
        test_file.unlink(missing_ok=True)
    except OSError as exc:
        raise RuntimeError(
            f"Cannot access store directory '{store_dir}': {exc}"
        ) from exc
    return store_dir


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load and validate application settings.

    Configuration values are read from the application configuration file and
    then merged with environment variables using ``pydantic-settings``. When a
    value is provided in both sources the environment variable wins. A ``.env``
    file in the working directory is loaded automatically when present. The
    optional ``config_path`` parameter allows overriding the default
    ``config/app.yaml`` location.

    Args:
        config_path: Optional path to a YAML configuration file.

    Returns:
        Settings: Fully validated application configuration.

    Raises:
        RuntimeError: If configuration values are invalid or the store
            directory is not writable.
    """
    if config_path:
        cfg_path = Path(config_path)
        config = load_app_config(cfg_path.parent, cfg_path.name)
    else:
        config = load_app_config()
    env_file_path = Path(".env")
    env_file = env_file_path if env_file_path.exists() else None
    raw_store_dir = os.getenv("HEXREF_STORE_DIR") or str(
        config.store_dir or DEFAULT_STORE_DIR
    )
    store_dir = _resolve_store_dir(raw_store_dir)
    try:
        # Secrets and tokens only ever come from the environment.
        return Settings(
            log_level=os.getenv("HEXREF_LOG_LEVEL") or config.log_level,
            store_dir=store_dir,
            _env_file=env_file,
        )
    except ValidationError as exc:
        # Summarise validation issues so the caller receives clear feedback.
        details = "; ".join(
            f"{'.'.join(map(str, error['loc']))}: {error['msg']}"
            for error in exc.errors()
        )
        raise RuntimeError(f"Invalid configuration: {details}") from exc


__all__ = ["Settings", "load_settings"]

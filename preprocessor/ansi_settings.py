"""Preprocessor settings from the ``[preprocessor.ansi]`` table of book.toml."""

from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ansi_errors import ConfigError

__version__ = "0.1.0"

PREPROCESSOR_NAME = "ansi"


def env_int(name: str, fallback: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return fallback
    try:
        return int(raw)
    except ValueError:
        return fallback


LOG_LEVEL = os.environ.get("MDBOOK_ANSI_LOG", "").strip().upper() or "WARNING"
SERVER_TOKEN = os.environ.get("MDBOOK_ANSI_TOKEN", "").strip()
SERVER_HOST = os.environ.get("MDBOOK_ANSI_HOST", "127.0.0.1")
SERVER_PORT = env_int("MDBOOK_ANSI_PORT", 8787)


class AnsiSettings(BaseModel):
    # mdbook's own keys (command, renderers, before, after) live in the same table
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    marker: str = "ansi"
    escape_html: bool = Field(default=False, alias="escape-html")

    @field_validator("marker")
    @classmethod
    def marker_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("marker must not be empty")
        return value


def load_settings(config: dict[str, Any] | None) -> AnsiSettings:
    """Read settings out of the full book configuration."""
    table = ((config or {}).get("preprocessor") or {}).get(PREPROCESSOR_NAME) or {}
    if not isinstance(table, dict):
        raise ConfigError(f"[preprocessor.{PREPROCESSOR_NAME}] must be a table")
    try:
        return AnsiSettings.model_validate(table)
    except ValidationError as exc:
        raise ConfigError(f"Invalid [preprocessor.{PREPROCESSOR_NAME}] settings: {exc}") from exc

"""
Runtime configuration models.

Parses the [render] section from a TOML file (json_render.toml by
convention) and provides typed configuration for the tree builder,
action dispatcher and logging setup.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from json_render.errors import ConfigError

DEFAULT_CONFIG_FILE = "json_render.toml"


class RuntimeConfig(BaseModel):
    """Complete runtime configuration."""

    model_config = ConfigDict(frozen=True)

    strict_catalog: bool = Field(
        default=False,
        description="Reject streamed elements whose type/props are not in the catalog",
    )
    data_sources: list[str] | None = Field(
        default=None,
        description="Closed vocabulary for DATA_SOURCE control lines (None accepts any)",
    )
    defer_orphan_patches: bool = Field(
        default=True,
        description="Defer field patches for unknown elements instead of dropping them",
    )
    confirm_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Seconds to wait for a confirmation prompt before cancelling",
    )
    log_level: str = Field(default="INFO", description="Level for setup_logging()")

    @field_validator("data_sources")
    @classmethod
    def _lowercase_sources(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        return [source.strip().lower() for source in value]

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    def accepts_data_source(self, token: str) -> bool:
        """Check a control-line token against the configured vocabulary."""
        if self.data_sources is None:
            return True
        return token.lower() in self.data_sources


def load_runtime_config(toml_path: Path | str = DEFAULT_CONFIG_FILE) -> RuntimeConfig:
    """
    Load runtime configuration from a TOML file.

    Args:
        toml_path: Path to the TOML file

    Returns:
        RuntimeConfig with parsed values or defaults

    Raises:
        ConfigError: If the file is not valid TOML or the section is invalid
    """
    toml_path = Path(toml_path)
    if not toml_path.exists():
        return RuntimeConfig()

    try:
        with open(toml_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {toml_path}: {e}") from e

    render_data: dict[str, Any] = data.get("render", {})
    if not render_data:
        return RuntimeConfig()

    try:
        return RuntimeConfig.model_validate(render_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid [render] section in {toml_path}: {e}") from e

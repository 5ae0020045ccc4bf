"""Pydantic models for command settings and config file loading."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from pocketbook.core.utils import console
from pocketbook.summarizer.client import DEFAULT_BASE_URL
from pocketbook.summarizer.models import DetailLevel, OutputFormat, ResponseFormat

DEFAULT_MODEL = "openai/gpt-4o-mini"

# --- Config File Loading ---

CONFIG_PATH = Path.home() / ".config" / "pocketbook" / "config.toml"
CONFIG_PATH_2 = Path("pocketbook-config.toml")


def _replace_dashed_keys(cfg: dict[str, Any]) -> dict[str, Any]:
    """Replace dashed keys with underscores in the config options."""
    return {k.replace("-", "_"): v for k, v in cfg.items()}


def load_config(config_path_str: str | None = None) -> dict[str, Any]:
    """Load the TOML configuration file as ``{table: {option: value}}``."""
    if config_path_str:
        config_path = Path(config_path_str).expanduser()
    elif CONFIG_PATH.exists():
        config_path = CONFIG_PATH
    elif CONFIG_PATH_2.exists():
        config_path = CONFIG_PATH_2
    else:
        return {}

    if config_path.exists():
        try:
            with config_path.open("rb") as f:
                cfg = tomllib.load(f)
                return {k: _replace_dashed_keys(v) for k, v in cfg.items() if isinstance(v, dict)}
        except tomllib.TOMLDecodeError as e:
            console.print(
                f"[bold red]Error parsing config file {config_path}: {e}[/bold red]",
            )
            return {}

    # Report error only if an explicit path was given
    if config_path_str:
        console.print(
            f"[bold red]Config file not found at {config_path_str}[/bold red]",
        )
    return {}


# --- Pydantic Models for Configuration ---


class LLMSettings(BaseModel):
    """Connection settings for the completion service."""

    api_key: str | None = None
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    max_attempts: int = Field(default=3, ge=1)
    max_elapsed: float = Field(default=300.0, gt=0)
    request_timeout: float = Field(default=120.0, gt=0)


class SummarySettings(BaseModel):
    """What to produce and how to split the work."""

    output_language: str = "en"
    detail_level: DetailLevel = "medium"
    output_format: OutputFormat = "markdown"
    response_format: ResponseFormat = "json"
    max_section_tokens: int = Field(default=2000, ge=1)
    section_attempts: int = Field(default=3, ge=1)
    max_concurrent_chapters: int = Field(default=4, ge=1)
    encoding_name: str = "cl100k_base"
    output_dir: Path = Path()
    chapter_limit: int | None = Field(default=None, ge=1)

    @field_validator("output_dir", mode="before")
    @classmethod
    def _expand_user_path(cls, v: str | Path | None) -> Path:
        if v:
            return Path(v).expanduser()
        return Path()


class General(BaseModel):
    """General configuration parameters for logging and I/O."""

    log_level: str
    log_file: str | None = None
    quiet: bool

"""Test the config loading."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from click import Command
from pydantic import ValidationError
from typer import Context

from pocketbook.cli import set_config_defaults
from pocketbook.config import LLMSettings, SummarySettings, load_config


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Provides a config file with dashed keys and a command table."""
    config_content = """
top-level = "ignored"

[defaults]
log-level = "INFO"
language = "de"
api-key = "default-key"

[process]
language = "fr"
chapter-limit = 5
quiet = true
"""
    config_path = tmp_path / "config.toml"
    config_path.write_text(config_content)
    return config_path


def test_config_loader_key_replacement(config_file: Path) -> None:
    """Dashed keys become underscores; only tables are kept."""
    config = load_config(str(config_file))
    assert config["defaults"]["log_level"] == "INFO"
    assert config["defaults"]["api_key"] == "default-key"
    assert config["process"]["chapter_limit"] == 5
    assert "top-level" not in config
    assert "top_level" not in config


def test_config_loader_missing_explicit_path(tmp_path: Path) -> None:
    """An explicit path that does not exist yields an empty config."""
    assert load_config(str(tmp_path / "nope.toml")) == {}


def test_config_loader_invalid_toml(tmp_path: Path) -> None:
    """A malformed config file is reported and ignored instead of crashing."""
    config_path = tmp_path / "broken.toml"
    config_path.write_text('[defaults]\nlanguage = "de\n')
    with patch("pocketbook.config.console") as mock_console:
        assert load_config(str(config_path)) == {}
    message = mock_console.print.call_args.args[0]
    assert "Error parsing config file" in message
    assert str(config_path) in message


def test_config_loader_default_locations(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    config_file: Path,
) -> None:
    """Without an explicit path the user config file is used when present."""
    monkeypatch.setattr("pocketbook.config.CONFIG_PATH", config_file)
    assert load_config()["defaults"]["language"] == "de"

    monkeypatch.setattr("pocketbook.config.CONFIG_PATH", tmp_path / "missing.toml")
    monkeypatch.chdir(tmp_path)
    assert load_config() == {}


def test_set_config_defaults(config_file: Path) -> None:
    """The command table overrides [defaults] for that command only."""
    ctx = Context(command=Command(name="process"))
    set_config_defaults(ctx, str(config_file))
    assert ctx.default_map == {
        "log_level": "INFO",
        "language": "fr",  # Overridden by [process]
        "api_key": "default-key",
        "chapter_limit": 5,
        "quiet": True,
    }

    ctx = Context(command=Command(name="other"))
    set_config_defaults(ctx, str(config_file))
    assert ctx.default_map == {
        "log_level": "INFO",
        "language": "de",
        "api_key": "default-key",
    }


class TestSettings:
    """Tests for the pydantic settings models."""

    def test_summary_defaults(self) -> None:
        """Defaults mirror the command-line defaults."""
        settings = SummarySettings()
        assert settings.max_section_tokens == 2000
        assert settings.max_concurrent_chapters == 4
        assert settings.output_dir == Path()

    def test_output_dir_expanded(self) -> None:
        """A home-relative output directory is expanded."""
        assert SummarySettings(output_dir="~/books").output_dir == Path.home() / "books"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"chapter_limit": 0},
            {"max_section_tokens": 0},
            {"detail_level": "huge"},
            {"output_format": "pdf"},
        ],
    )
    def test_summary_rejects_invalid(self, kwargs: dict[str, object]) -> None:
        """Out-of-range numbers and unknown choices are rejected."""
        with pytest.raises(ValidationError):
            SummarySettings(**kwargs)

    def test_llm_rejects_zero_attempts(self) -> None:
        """At least one attempt is required."""
        with pytest.raises(ValidationError):
            LLMSettings(max_attempts=0)

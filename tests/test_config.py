"""Tests for user configuration."""

import tempfile
from pathlib import Path

import pytest
import yaml

from skillc.config import (
    Settings,
    list_values,
    load_settings,
    mask_key,
    reset,
    resolve_settings,
    set_value,
)
from skillc.errors import ConfigError


def test_set_and_load():
    with tempfile.TemporaryDirectory() as tmpdir:
        config_dir = Path(tmpdir) / "sc"
        set_value("provider", "anthropic", config_dir)
        set_value("model", "some-model", config_dir)

        settings = load_settings(config_dir)
        assert settings.provider == "anthropic"
        assert settings.model == "some-model"

        data = yaml.safe_load((config_dir / "config.yaml").read_text())
        assert data == {"model": "some-model", "provider": "anthropic"}


def test_set_unknown_key_raises():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ConfigError) as exc:
            set_value("colour", "blue", Path(tmpdir))
        assert "api-key" in str(exc.value)


def test_list_masks_api_key():
    with tempfile.TemporaryDirectory() as tmpdir:
        set_value("api-key", "sk-1234567890abcdef", Path(tmpdir))
        values = list_values(Path(tmpdir))
        assert values["api-key"] == "sk-1***********cdef"
        assert values["provider"] == ""


def test_mask_key_short():
    assert mask_key("") == ""
    assert mask_key("abcd1234") == "********"


def test_reset():
    with tempfile.TemporaryDirectory() as tmpdir:
        set_value("model", "m", Path(tmpdir))
        reset(Path(tmpdir))
        assert load_settings(Path(tmpdir)) == Settings()
        # Resetting twice is fine
        reset(Path(tmpdir))


def test_malformed_config_raises():
    with tempfile.TemporaryDirectory() as tmpdir:
        (Path(tmpdir) / "config.yaml").write_text("provider: [oops\n")
        with pytest.raises(ConfigError):
            load_settings(Path(tmpdir))


def test_resolve_priority():
    with tempfile.TemporaryDirectory() as tmpdir:
        config_dir = Path(tmpdir)
        set_value("provider", "file-provider", config_dir)
        set_value("model", "file-model", config_dir)
        set_value("base-url", "https://file.example.com", config_dir)
        set_value("api-key", "file-key", config_dir)

        env = {"SC_MODEL": "env-model", "SC_API_KEY": "env-key"}
        frontmatter = Settings(model="fm-model")
        cli = Settings(provider="cli-provider")

        resolved = resolve_settings(cli=cli, frontmatter=frontmatter, env=env, config_dir=config_dir)
        assert resolved.provider == "cli-provider"
        assert resolved.model == "fm-model"
        assert resolved.api_key == "env-key"
        assert resolved.base_url == "https://file.example.com"


def test_resolve_provider_key_fallback():
    with tempfile.TemporaryDirectory() as tmpdir:
        resolved = resolve_settings(
            cli=Settings(provider="OpenAI"),
            env={"OPENAI_API_KEY": "sk-openai", "ANTHROPIC_API_KEY": "sk-ant"},
            config_dir=Path(tmpdir),
        )
        assert resolved.api_key == "sk-openai"


def test_resolve_explicit_key_beats_fallback():
    with tempfile.TemporaryDirectory() as tmpdir:
        resolved = resolve_settings(
            cli=Settings(provider="anthropic", api_key="explicit"),
            env={"ANTHROPIC_API_KEY": "sk-ant"},
            config_dir=Path(tmpdir),
        )
        assert resolved.api_key == "explicit"


def test_resolve_with_nothing_configured():
    with tempfile.TemporaryDirectory() as tmpdir:
        assert resolve_settings(env={}, config_dir=Path(tmpdir)) == Settings()

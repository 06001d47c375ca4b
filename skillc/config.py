"""User configuration — provider settings from ~/.config/sc/config.yaml.

Settings are layered, highest priority first: command-line flags, the
instructions frontmatter, ``SC_*`` environment variables, the config file.
When no API key is found anywhere, the provider's own variable
(``ANTHROPIC_API_KEY`` / ``OPENAI_API_KEY``) is used.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Mapping

import yaml

from skillc.errors import ConfigError
from skillc.utils.fs import atomic_write_text

logger = logging.getLogger(__name__)

CONFIG_FILE = "config.yaml"

# Config-file key -> Settings attribute
VALID_KEYS = {
    "provider": "provider",
    "api-key": "api_key",
    "model": "model",
    "base-url": "base_url",
}

PROVIDER_KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}


@dataclass
class Settings:
    provider: str = ""
    api_key: str = ""
    model: str = ""
    base_url: str = ""

    def overlay(self, other: Settings | None) -> Settings:
        """Return a copy where every non-empty field of ``other`` wins."""
        if other is None:
            return Settings(**{f.name: getattr(self, f.name) for f in fields(self)})
        return Settings(
            **{f.name: getattr(other, f.name) or getattr(self, f.name) for f in fields(self)}
        )


def default_config_dir() -> Path:
    return Path.home() / ".config" / "sc"


def _config_path(config_dir: Path | None) -> Path:
    return (config_dir or default_config_dir()) / CONFIG_FILE


def _check_key(key: str) -> str:
    if key not in VALID_KEYS:
        raise ConfigError(f"unknown config key '{key}' (valid keys: {', '.join(VALID_KEYS)})")
    return VALID_KEYS[key]


def _read_file(config_dir: Path | None) -> dict[str, str]:
    path = _config_path(config_dir)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as e:
        raise ConfigError(f"reading config {path}: {e}") from e

    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"parsing config {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"parsing config {path}: expected a mapping")
    return {str(k): "" if v is None else str(v) for k, v in data.items()}


def load_settings(config_dir: Path | None = None) -> Settings:
    """Settings from the config file alone."""
    data = _read_file(config_dir)
    return Settings(**{attr: data.get(key, "") for key, attr in VALID_KEYS.items()})


def env_settings(env: Mapping[str, str]) -> Settings:
    """Settings from ``SC_PROVIDER``, ``SC_API_KEY``, ``SC_MODEL``, ``SC_BASE_URL``."""
    return Settings(
        **{attr: env.get("SC_" + key.replace("-", "_").upper(), "") for key, attr in VALID_KEYS.items()}
    )


def resolve_settings(
    cli: Settings | None = None,
    frontmatter: Settings | None = None,
    env: Mapping[str, str] | None = None,
    config_dir: Path | None = None,
) -> Settings:
    """Resolve provider settings once, in priority CLI > frontmatter > env > file."""
    env = env or {}
    resolved = load_settings(config_dir).overlay(env_settings(env)).overlay(frontmatter).overlay(cli)

    if not resolved.api_key:
        fallback = PROVIDER_KEY_ENV.get(resolved.provider.lower())
        if fallback:
            resolved.api_key = env.get(fallback, "")
    logger.debug("resolved provider=%r model=%r", resolved.provider, resolved.model)
    return resolved


def set_value(key: str, value: str, config_dir: Path | None = None) -> None:
    """Persist a single key in the config file."""
    _check_key(key)
    data = _read_file(config_dir)
    data[key] = value
    path = _config_path(config_dir)
    try:
        atomic_write_text(path, yaml.safe_dump(data, default_flow_style=False, sort_keys=True))
    except OSError as e:
        raise ConfigError(f"writing config {path}: {e}") from e


def list_values(config_dir: Path | None = None) -> dict[str, str]:
    """Config-file values for display, with the API key masked."""
    settings = load_settings(config_dir)
    values = {key: getattr(settings, attr) for key, attr in VALID_KEYS.items()}
    values["api-key"] = mask_key(values["api-key"])
    return values


def reset(config_dir: Path | None = None) -> None:
    """Delete the config file; a missing file is not an error."""
    path = _config_path(config_dir)
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        raise ConfigError(f"removing config {path}: {e}") from e


def mask_key(key: str) -> str:
    if len(key) <= 8:
        return "*" * len(key)
    return key[:4] + "*" * (len(key) - 8) + key[-4:]

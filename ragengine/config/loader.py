"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers, later layers overriding earlier ones:

  1. ``config/config.yaml`` -- static defaults checked into the repo
  2. ``.env`` file          -- local developer overrides
  3. Environment variables  -- set at deploy time

YAML sections are flattened onto :class:`Settings` fields.  A key ``k``
inside section ``s`` maps to the field ``s_k`` when it exists, otherwise to
``k``; for example ``embedding.max_attempts`` -> ``embedding_max_attempts``
and ``chunking.chunk_size`` -> ``chunk_size``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ragengine.config.settings import Settings
from ragengine.utils.errors import ConfigurationError
from ragengine.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = "config/config.yaml"


def load_settings(path: str | Path | None = DEFAULT_CONFIG_PATH, **overrides: Any) -> Settings:
    """Build :class:`Settings` from YAML defaults, environment and *overrides*.

    Args:
        path: YAML file to read.  A missing file is not an error.
        overrides: Explicit field values that win over every other layer.

    Returns:
        The resolved, validated Settings.

    Raises:
        ConfigurationError: If the YAML is malformed or a value fails validation.
    """
    yaml_values = _flatten_sections(_read_yaml(path)) if path else {}

    try:
        # Fields set from the environment or .env must beat YAML defaults;
        # model_fields_set tells us which those were.
        env_settings = Settings()
        env_values = env_settings.model_dump(include=env_settings.model_fields_set)
        merged = {**yaml_values, **env_values, **overrides}
        return Settings(**merged)
    except ValidationError as exc:
        raise ConfigurationError(message=f"Invalid configuration: {exc}") from exc


def load_config(path: str | Path = DEFAULT_CONFIG_PATH) -> dict:
    """Return the fully resolved configuration as a plain dict."""
    return load_settings(path).model_dump()


def _read_yaml(path: str | Path) -> dict:
    config_path = Path(path)
    if not config_path.exists():
        logger.debug("config_file_missing", path=str(config_path))
        return {}
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(message=f"Malformed YAML in {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(message=f"Top level of {config_path} must be a mapping")
    return data


def _flatten_sections(data: dict) -> dict[str, Any]:
    fields = Settings.model_fields
    flat: dict[str, Any] = {}
    for section, body in data.items():
        if not isinstance(body, dict):
            if section in fields:
                flat[section] = body
            else:
                logger.warning("config_key_unknown", key=section)
            continue
        for key, value in body.items():
            qualified = f"{section}_{key}"
            if qualified in fields:
                flat[qualified] = value
            elif key in fields:
                flat[key] = value
            else:
                logger.warning("config_key_unknown", key=f"{section}.{key}")
    return flat

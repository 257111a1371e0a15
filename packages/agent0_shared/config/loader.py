"""Configuration loading utilities with deterministic precedence.

The cascade is always:
1) init params (``cli_params``)
2) Environment variables
3) ~/.config/agent0/agent0.yaml (or an explicit ``config_path``)
4) Model defaults

Environment variable format:
- Prefix: ``AGENT0_``
- Nested keys: ``__`` separator
- Example: ``AGENT0_STORAGE__ARWEAVE__ENABLED=true`` -> ``storage.arweave.enabled = True``
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, ClassVar, Mapping

from .models import Agent0Settings

ENV_PREFIX = "AGENT0_"


def load_settings(
    *,
    cli_params: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
    config_path: str | Path | None = None,
) -> Agent0Settings:
    """Load typed settings by applying the standard Agent0 precedence cascade.

    When ``environ`` is given it is used in place of the process environment
    for prefixed variables, which keeps tests hermetic.
    """
    init_data: dict[str, Any] = {}
    if environ is not None:
        init_data = _load_env_config(environ=environ, prefix=ENV_PREFIX)
    if cli_params is not None:
        init_data = _merge_dicts(init_data, cli_params)

    settings_type = Agent0Settings if config_path is None else _scoped_settings(Path(config_path))
    return settings_type(**init_data)


def _scoped_settings(config_path: Path) -> type[Agent0Settings]:
    """Return a settings subclass reading YAML from ``config_path``."""

    class _ScopedAgent0Settings(Agent0Settings):
        _config_path: ClassVar[Path] = config_path

    return _ScopedAgent0Settings


def _load_env_config(*, environ: Mapping[str, str], prefix: str) -> dict[str, Any]:
    """Extract and map prefixed environment variables into nested config."""
    output: dict[str, Any] = {}

    for key, raw_value in environ.items():
        if not key.startswith(prefix):
            continue

        remainder = key[len(prefix) :]
        path = [
            segment.strip().lower()
            for segment in remainder.split("__")
            if segment.strip()
        ]
        if not path:
            continue

        _set_nested(output, path, _coerce_scalar(raw_value))

    return output


def _set_nested(target: dict[str, Any], path: list[str], value: Any) -> None:
    """Set a nested mapping value by path, creating intermediate dicts."""
    cursor: dict[str, Any] = target
    for segment in path[:-1]:
        child = cursor.get(segment)
        if not isinstance(child, dict):
            child = {}
            cursor[segment] = child
        cursor = child
    cursor[path[-1]] = value


def _merge_dicts(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge mappings, with ``override`` taking precedence."""
    result = copy.deepcopy(dict(base))
    for key, override_value in override.items():
        base_value = result.get(key)
        if isinstance(base_value, dict) and isinstance(override_value, Mapping):
            result[key] = _merge_dicts(base_value, override_value)
            continue
        result[key] = copy.deepcopy(override_value)
    return result


def _coerce_scalar(raw: str) -> Any:
    """Coerce scalar env strings into bool/None/JSON when obvious.

    Numbers stay strings; pydantic coerces them against the field type so hex
    private keys are never mangled into integers.
    """
    value = raw.strip()
    lowered = value.lower()

    if lowered in {"true", "false"}:
        return lowered == "true"

    if lowered in {"null", "none"}:
        return None

    if value.startswith("{") or value.startswith("["):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return raw

    return raw

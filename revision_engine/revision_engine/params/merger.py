"""Merge parameters from system defaults, a parameter file and explicit overrides.

Precedence is fixed: explicit ``key=value`` overrides win over the parameter
file, which wins over system defaults.  Merging is pure; the result is an
immutable :class:`ParameterSet`.

Typical usage::

    params = merge_params(
        system_params_from_env(os.environ),
        Path("params.yml"),
        ["env=prod", "retries=3"],
    )
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from revision_engine.errors import ConfigParseError, MalformedParameterError
from revision_engine.params.parameter_set import ParameterSet
from revision_engine.yaml_loader import load_yaml

logger = logging.getLogger(__name__)

_YAML_SUFFIXES: frozenset[str] = frozenset({".yml", ".yaml"})

DEFAULT_PARAM_ENV_PREFIX = "REVKIT_PARAM_"


# ---------------------------------------------------------------------------
# Source readers
# ---------------------------------------------------------------------------


def parse_override(token: str) -> tuple[str, str]:
    """Split a single ``key=value`` override into its key and value.

    The value may itself contain ``=``; only the first one separates.

    Raises
    ------
    MalformedParameterError
        If there is no ``=`` or the key is empty.
    """
    key, sep, value = token.partition("=")
    key = key.strip()
    if not sep or not key:
        raise MalformedParameterError(token)
    return key, value


def load_params_file(path: Path) -> dict[str, Any]:
    """Read a YAML or JSON parameter file into a plain dict.

    Raises
    ------
    ConfigParseError
        If the file cannot be read, cannot be parsed, or is not a mapping.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigParseError(f"Cannot read parameter file '{path}': {exc}") from exc

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            if path.suffix.lower() not in _YAML_SUFFIXES:
                logger.debug("Parameter file '%s' has no YAML suffix; parsing as YAML.", path)
            data = load_yaml(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigParseError(f"Invalid parameter file '{path}': {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigParseError(f"Parameter file '{path}' must contain a mapping, got {type(data).__name__}.")
    return data


def system_params_from_env(
    environ: Mapping[str, str],
    prefix: str = DEFAULT_PARAM_ENV_PREFIX,
) -> dict[str, str]:
    """Collect system default parameters from prefixed environment variables.

    ``REVKIT_PARAM_TARGET_DB=warehouse`` becomes ``{"target_db": "warehouse"}``.
    Keys are returned sorted so the result does not depend on environment
    ordering.
    """
    params: dict[str, str] = {}
    for name in sorted(environ):
        if name.upper().startswith(prefix.upper()) and len(name) > len(prefix):
            params[name[len(prefix) :].lower()] = environ[name]
    return params


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def merge_params(
    system_defaults: Mapping[str, Any] | None = None,
    params_file: Path | None = None,
    overrides: Iterable[str | tuple[str, str]] = (),
) -> ParameterSet:
    """Merge all parameter sources into one :class:`ParameterSet`.

    Parameters
    ----------
    system_defaults:
        Lowest-precedence values (environment / system configuration).
    params_file:
        Optional YAML or JSON file; overrides *system_defaults*.
    overrides:
        Explicit ``key=value`` tokens or pre-split ``(key, value)`` pairs;
        highest precedence, applied in order so a later token wins.

    Raises
    ------
    MalformedParameterError
        If an override token is not of the form ``key=value``.
    ConfigParseError
        If *params_file* cannot be parsed, or a value is not JSON-compatible.
    """
    # Overrides are validated before the file is read.
    explicit: dict[str, str] = {}
    for item in overrides:
        if isinstance(item, str):
            key, value = parse_override(item)
        else:
            key, value = item
            if not key or not key.strip():
                raise MalformedParameterError(f"{key}={value}")
            key = key.strip()
        explicit[key] = value

    try:
        merged = ParameterSet(system_defaults or {})
    except (TypeError, ValueError) as exc:
        raise ConfigParseError(f"Invalid system default parameters: {exc}") from exc
    if params_file is not None:
        try:
            merged = merged.merged_with(load_params_file(params_file))
        except (TypeError, ValueError) as exc:
            raise ConfigParseError(f"Invalid parameter file '{params_file}': {exc}") from exc
    merged = merged.merged_with(explicit)

    logger.debug("Merged %d parameter(s) (%d explicit).", len(merged), len(explicit))
    return merged

"""
sonar-analyze — runtime config loader.

File: src/sonar_analyze/config/loader.py

Purpose
- Load the effective configuration from defaults, a TOML or YAML file, env vars,
  and CLI overrides.

What should be included in this file
- Precedence logic: CLI > env (SONAR_ANALYZE_) > file > defaults.
- TOML loading via ``tomllib``; YAML loading via ``yaml.safe_load``.
- Deterministic environment variable mapping and coercion.
- Path normalization relative to config file location.
- Redacted deterministic dump of effective config.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Final

import yaml

from sonar_analyze.config.schema import (
    PATH_FIELDS,
    PROJECT_PATH_FIELDS,
    SCALAR_FIELDS,
    ScalarKind,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
)
from sonar_analyze.constants import DEFAULT_CONFIG_FILE, ENV_PREFIX

_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})
_YAML_SUFFIXES: Final[frozenset[str]] = frozenset({".yaml", ".yml"})


class ConfigLoadError(ValueError):
    """Raised when config cannot be loaded or overrides cannot be coerced."""


def load_config(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Load effective config with deterministic precedence: CLI > env > file > defaults."""

    resolved_path = _resolve_config_path(config_path)
    explicit_path = config_path is not None
    env_map = dict(os.environ if environ is None else environ)

    file_payload = _load_file(resolved_path, required=explicit_path)
    merged = merge_config(default_config(), file_payload)
    merged = merge_config(merged, _collect_env_overrides(env_map))
    merged = merge_config(merged, _materialize_cli_overrides(dict(cli_overrides or {})))

    project = merged.get("project")
    if isinstance(project, dict) and "name" not in project:
        project["name"] = resolved_path.parent.name or "root"

    merged = assert_valid_config(merged)
    return normalize_paths(merged, base_dir=resolved_path.parent)


def normalize_paths(config: Mapping[str, object], *, base_dir: Path) -> dict[str, Any]:
    """Normalize configured path fields relative to ``base_dir``."""

    materialized = merge_config({}, config)
    for field_path in PATH_FIELDS:
        _normalize_path_field(materialized, field_path, base_dir)

    project = materialized.get("project")
    if isinstance(project, dict):
        _normalize_project_paths(project, base_dir)
    return materialized


def effective_config(config: Mapping[str, object]) -> dict[str, Any]:
    """Return a redacted effective config representation suitable for logging."""

    return redact_config(config)


def dump_effective_config(config: Mapping[str, object]) -> str:
    """Return deterministic JSON dump of redacted effective config."""

    return json.dumps(
        effective_config(config), sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


def env_name_for_path(path: tuple[str, ...]) -> str:
    return ENV_PREFIX + "_".join(part.upper() for part in path)


def _resolve_config_path(config_path: str | Path | None) -> Path:
    if config_path is None:
        return (Path.cwd() / DEFAULT_CONFIG_FILE).resolve()
    return Path(config_path).expanduser().resolve()


def _load_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}

    is_yaml = path.suffix.lower() in _YAML_SUFFIXES
    try:
        if is_yaml:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        else:
            parsed = tomllib.loads(path.read_text(encoding="utf-8"))
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as exc:
        raise ConfigLoadError(
            f"invalid {'YAML' if is_yaml else 'TOML'} in {path}: {exc}"
        ) from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc

    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ConfigLoadError(f"config root must be an object: {path}")
    return parsed


def _collect_env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for path, kind in sorted(SCALAR_FIELDS.items()):
        env_name = env_name_for_path(path)
        if env_name in environ:
            try:
                value = _ENV_COERCERS[kind](environ[env_name].strip())
            except ValueError as exc:
                raise ConfigLoadError(
                    f"{env_name} -> {'.'.join(path)} must be {_KIND_DESCRIPTIONS[kind]}"
                ) from exc
            _set_nested(overrides, path, value)
    return overrides


def _parse_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered in _BOOLEAN_TRUE:
        return True
    if lowered in _BOOLEAN_FALSE:
        return False
    raise ValueError(value)


_ENV_COERCERS: Final[dict[ScalarKind, Callable[[str], object]]] = {
    "str": str,
    "int": int,
    "float": float,
    "bool": _parse_bool,
}
_KIND_DESCRIPTIONS: Final[dict[ScalarKind, str]] = {
    "str": "a string",
    "int": "an integer",
    "float": "a number",
    "bool": "a boolean (true/false/1/0/yes/no/on/off)",
}


def _materialize_cli_overrides(cli_overrides: Mapping[str, object]) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for key in sorted(cli_overrides):
        value = cli_overrides[key]
        if value is None:
            continue
        path = tuple(part for part in key.split(".") if part)
        if not path:
            raise ConfigLoadError(f"invalid CLI override key {key!r}")
        _set_nested(payload, path, value)
    return payload


def _set_nested(target: dict[str, Any], path: tuple[str, ...], value: object) -> None:
    current = target
    for part in path[:-1]:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[path[-1]] = value


def _normalize_path_field(config: dict[str, Any], path: tuple[str, ...], base_dir: Path) -> None:
    current: object = config
    for part in path[:-1]:
        if not isinstance(current, dict):
            return
        current = current.get(part)
    if not isinstance(current, dict):
        return
    raw = current.get(path[-1])
    if isinstance(raw, str) and raw.strip():
        current[path[-1]] = _resolve_relative(raw, base_dir)


def _normalize_project_paths(project: dict[str, Any], base_dir: Path) -> None:
    for field_name in PROJECT_PATH_FIELDS:
        raw = project.get(field_name)
        if isinstance(raw, str) and raw.strip():
            project[field_name] = _resolve_relative(raw, base_dir)
    for module in project.get("modules", []):
        if isinstance(module, dict):
            _normalize_project_paths(module, base_dir)


def _resolve_relative(raw: str, base_dir: Path) -> str:
    candidate = Path(raw.strip()).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return candidate.resolve().as_posix()


__all__ = [
    "ConfigLoadError",
    "dump_effective_config",
    "effective_config",
    "env_name_for_path",
    "load_config",
    "normalize_paths",
]

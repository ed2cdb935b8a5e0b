"""
sonar-analyze — configuration schema and validation.

File: src/sonar_analyze/config/schema.py

Purpose
- Define configuration defaults and strict validation rules for the analysis task,
  the runner, logging, and the project tree.

What should be included in this file
- Validation rules for required fields, types, enums, and name constraints.
- Deterministic deep-merge helpers.
- Redaction rules for sensitive fields.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Module names must be unique among siblings and usable as property prefixes.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal

from sonar_analyze.constants import (
    DEFAULT_BOOTSTRAP_DIR,
    DEFAULT_RUNNER_EXECUTABLE,
    DEFAULT_RUNNER_TIMEOUT_SECONDS,
    MODULE_SEPARATOR,
    PROPERTY_SEPARATOR,
    REDACTED_VALUE,
)

ScalarKind = Literal["str", "int", "float", "bool"]

LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")

# Scalar leaves outside the project tree; these are the ones env vars may override.
SCALAR_FIELDS: Final[dict[tuple[str, ...], ScalarKind]] = {
    ("analysis", "bootstrap_dir"): "str",
    ("analysis", "show_sql"): "bool",
    ("analysis", "show_sql_results"): "bool",
    ("analysis", "verbose"): "bool",
    ("analysis", "force_analysis"): "bool",
    ("analysis", "server", "url"): "str",
    ("analysis", "database", "url"): "str",
    ("analysis", "database", "driver_class_name"): "str",
    ("analysis", "database", "username"): "str",
    ("analysis", "database", "password"): "str",
    ("runner", "executable"): "str",
    ("runner", "timeout_seconds"): "float",
    ("observability", "log_level"): "str",
    ("observability", "log_dir"): "str",
    ("observability", "log_to_stderr"): "bool",
    ("observability", "redact_secrets"): "bool",
}

# Config paths that should be normalized relative to config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("analysis", "bootstrap_dir"),
    ("observability", "log_dir"),
)
PROJECT_PATH_FIELDS: Final[tuple[str, ...]] = ("base_dir", "work_dir")

_PROJECT_TEXT_FIELDS: Final[tuple[str, ...]] = (
    "key",
    "display_name",
    "description",
    "version",
    "base_dir",
    "work_dir",
    "source_encoding",
    "language",
    "dynamic_analysis",
)
_PROJECT_LIST_FIELDS: Final[tuple[str, ...]] = (
    "source_dirs",
    "test_dirs",
    "binary_dirs",
    "libraries",
)
_PROJECT_KEYS: Final[frozenset[str]] = frozenset(
    {
        "name",
        "skip",
        "import_sources",
        "properties",
        "modules",
        *_PROJECT_TEXT_FIELDS,
        *_PROJECT_LIST_FIELDS,
    }
)
_SECTION_KEYS: Final[dict[str, frozenset[str]]] = {
    "analysis": frozenset(
        {
            "bootstrap_dir",
            "show_sql",
            "show_sql_results",
            "verbose",
            "force_analysis",
            "server",
            "database",
        }
    ),
    "runner": frozenset({"executable", "timeout_seconds", "extra_args"}),
    "observability": frozenset({"log_level", "log_dir", "log_to_stderr", "redact_secrets"}),
}
_NESTED_KEYS: Final[dict[tuple[str, str], frozenset[str]]] = {
    ("analysis", "server"): frozenset({"url"}),
    ("analysis", "database"): frozenset({"url", "driver_class_name", "username", "password"}),
}
_ROOT_KEYS: Final[frozenset[str]] = frozenset({*_SECTION_KEYS, "project"})

_SENSITIVE_KEY_TERMS: Final[tuple[str, ...]] = (
    "password",
    "passwd",
    "secret",
    "token",
    "credential",
    "login",
    "private_key",
)

DEFAULT_CONFIG: Final[dict[str, Any]] = {
    "analysis": {
        "bootstrap_dir": DEFAULT_BOOTSTRAP_DIR.as_posix(),
        "server": {},
        "database": {},
    },
    "runner": {
        "executable": DEFAULT_RUNNER_EXECUTABLE,
        "timeout_seconds": DEFAULT_RUNNER_TIMEOUT_SECONDS,
        "extra_args": [],
    },
    "observability": {
        "log_level": "INFO",
        "log_dir": "logs",
        "log_to_stderr": False,
        "redact_secrets": True,
    },
    "project": {},
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return not self.issues


class ConfigValidationError(ValueError):
    """Raised when a config payload fails validation."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        lines = [f"{issue.path}: {issue.message}" for issue in self.issues]
        super().__init__("invalid configuration:\n  " + "\n  ".join(lines))


class _IssueCollector:
    __slots__ = ("_issues",)

    def __init__(self) -> None:
        self._issues: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._issues.append(ConfigValidationIssue(path=path, message=message))

    def result(self) -> ConfigValidationResult:
        ordered = sorted(self._issues, key=lambda item: (item.path, item.message))
        return ConfigValidationResult(issues=tuple(ordered))


def default_config() -> dict[str, Any]:
    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto a copy of ``base``; mappings merge, everything else replaces."""

    merged = copy.deepcopy(dict(base))
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object]) -> ConfigValidationResult:
    issues = _IssueCollector()
    if not isinstance(config, Mapping):
        issues.add("<root>", "config root must be an object")
        return issues.result()

    _reject_unknown_keys(config, _ROOT_KEYS, "", issues)
    for section, allowed in _SECTION_KEYS.items():
        payload = config.get(section, {})
        if not isinstance(payload, Mapping):
            issues.add(section, "must be a table")
            continue
        _reject_unknown_keys(payload, allowed, section, issues)
        for (outer, inner), nested_allowed in _NESTED_KEYS.items():
            if outer != section or inner not in payload:
                continue
            nested = payload[inner]
            if not isinstance(nested, Mapping):
                issues.add(_join(section, inner), "must be a table")
                continue
            _reject_unknown_keys(nested, nested_allowed, _join(section, inner), issues)

    for path, kind in SCALAR_FIELDS.items():
        present, value = _lookup(config, path)
        if present and value is not None:
            _check_scalar(value, kind, ".".join(path), issues)

    _validate_runner(config.get("runner", {}), issues)
    _validate_observability(config.get("observability", {}), issues)

    project = config.get("project")
    if not isinstance(project, Mapping):
        issues.add("project", "must be a table")
    else:
        _validate_project(project, "project", issues)

    return issues.result()


def assert_valid_config(config: Mapping[str, object]) -> dict[str, Any]:
    result = validate_config(config)
    if not result.is_valid:
        raise ConfigValidationError(result.issues)
    return copy.deepcopy(dict(config))


def redact_config(config: Mapping[str, object]) -> dict[str, Any]:
    """Return a deep copy of ``config`` with sensitive values replaced."""

    redacted = _redact_value(config, parent_key=None)
    return redacted if isinstance(redacted, dict) else {}


def is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return any(term in lowered for term in _SENSITIVE_KEY_TERMS)


def _validate_runner(runner: object, issues: _IssueCollector) -> None:
    if not isinstance(runner, Mapping):
        return
    executable = runner.get("executable")
    if isinstance(executable, str) and not executable.strip():
        issues.add("runner.executable", "must not be empty")
    timeout = runner.get("timeout_seconds")
    if isinstance(timeout, (int, float)) and not isinstance(timeout, bool) and timeout <= 0:
        issues.add("runner.timeout_seconds", "must be > 0")
    extra_args = runner.get("extra_args", [])
    if not _is_str_list(extra_args):
        issues.add("runner.extra_args", "must be a list of strings")


def _validate_observability(observability: object, issues: _IssueCollector) -> None:
    if not isinstance(observability, Mapping):
        return
    level = observability.get("log_level")
    if isinstance(level, str) and level.strip().upper() not in LOG_LEVELS:
        issues.add("observability.log_level", f"must be one of {', '.join(LOG_LEVELS)}")


def _validate_project(project: Mapping[str, object], path: str, issues: _IssueCollector) -> None:
    _reject_unknown_keys(project, _PROJECT_KEYS, path, issues)

    name = project.get("name")
    if not isinstance(name, str) or not name.strip():
        issues.add(_join(path, "name"), "is required and must be a non-empty string")
    elif any(char in name for char in (PROPERTY_SEPARATOR, MODULE_SEPARATOR)):
        issues.add(_join(path, "name"), "must not contain '.' or ','")

    skip = project.get("skip", False)
    if not isinstance(skip, bool):
        issues.add(_join(path, "skip"), "must be a boolean")
    import_sources = project.get("import_sources")
    if import_sources is not None and not isinstance(import_sources, bool):
        issues.add(_join(path, "import_sources"), "must be a boolean")

    for field_name in _PROJECT_TEXT_FIELDS:
        value = project.get(field_name)
        if value is not None and not isinstance(value, str):
            issues.add(_join(path, field_name), "must be a string")
    for field_name in _PROJECT_LIST_FIELDS:
        value = project.get(field_name, [])
        if not _is_str_list(value):
            issues.add(_join(path, field_name), "must be a list of strings")

    properties = project.get("properties", {})
    if not isinstance(properties, Mapping):
        issues.add(_join(path, "properties"), "must be a table")
    else:
        for key in sorted(properties):
            value = properties[key]
            if not _is_property_value(value):
                issues.add(
                    f"{path}.properties[{key!r}]",
                    "must be a string, number, boolean, or list of those",
                )

    modules = project.get("modules", [])
    if not isinstance(modules, list):
        issues.add(_join(path, "modules"), "must be an array of tables")
        return
    seen: set[str] = set()
    for index, module in enumerate(modules):
        module_path = f"{path}.modules[{index}]"
        if not isinstance(module, Mapping):
            issues.add(module_path, "must be a table")
            continue
        module_name = module.get("name")
        if isinstance(module_name, str):
            if module_name in seen:
                issues.add(_join(module_path, "name"), f"duplicate module name {module_name!r}")
            seen.add(module_name)
        _validate_project(module, module_path, issues)


def _check_scalar(value: object, kind: ScalarKind, path: str, issues: _IssueCollector) -> None:
    if kind == "bool":
        if not isinstance(value, bool):
            issues.add(path, "must be a boolean")
    elif kind == "str":
        if not isinstance(value, str):
            issues.add(path, "must be a string")
    elif kind == "int":
        if isinstance(value, bool) or not isinstance(value, int):
            issues.add(path, "must be an integer")
    elif isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, "must be a number")


def _is_str_list(value: object) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def _is_property_value(value: object) -> bool:
    if isinstance(value, (str, int, float, bool)):
        return True
    if isinstance(value, list):
        return all(isinstance(item, (str, int, float, bool)) for item in value)
    return False


def _lookup(config: Mapping[str, object], path: tuple[str, ...]) -> tuple[bool, object]:
    current: object = config
    for part in path:
        if not isinstance(current, Mapping) or part not in current:
            return False, None
        current = current[part]
    return True, current


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: frozenset[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(str(item) for item in payload):
        if key not in allowed:
            issues.add(_join(path, key) if path else key, "unknown key")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key, value in overlay.items():
        existing = target.get(key)
        if isinstance(existing, dict) and isinstance(value, Mapping):
            _merge_into(existing, value)
        else:
            target[key] = copy.deepcopy(value)


def _redact_value(value: object, parent_key: str | None) -> object:
    if parent_key is not None and is_sensitive_key(parent_key) and value is not None:
        return REDACTED_VALUE
    if isinstance(value, Mapping):
        return {str(key): _redact_value(item, str(key)) for key, item in value.items()}
    if isinstance(value, list):
        return [_redact_value(item, None) for item in value]
    return value


__all__ = [
    "DEFAULT_CONFIG",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "PROJECT_PATH_FIELDS",
    "SCALAR_FIELDS",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "assert_valid_config",
    "default_config",
    "is_sensitive_key",
    "merge_config",
    "redact_config",
    "validate_config",
]

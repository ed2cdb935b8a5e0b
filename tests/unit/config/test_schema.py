"""
sonar-analyze — unit tests for config schema validation

File: tests/unit/config/test_schema.py

Purpose
- Validate structured issue reporting for the config payload.

What this test file should cover
- Defaults validate once a project name is present.
- Unknown keys, wrong scalar types, and enum violations.
- Project tree rules: names, duplicate siblings, nested modules.
- Deep merge and redaction helpers.
"""

from __future__ import annotations

from typing import Any

import pytest

from sonar_analyze.config.schema import (
    ConfigValidationError,
    assert_valid_config,
    default_config,
    is_sensitive_key,
    merge_config,
    redact_config,
    validate_config,
)


def _config(**project: Any) -> dict[str, Any]:
    config = default_config()
    config["project"] = {"name": "app", **project}
    return config


def _issue_paths(config: dict[str, Any]) -> list[str]:
    return [issue.path for issue in validate_config(config).issues]


def test_defaults_with_project_name_are_valid() -> None:
    assert validate_config(_config()).is_valid


def test_defaults_without_project_name_are_invalid() -> None:
    assert _issue_paths(default_config()) == ["project.name"]


def test_unknown_keys_are_reported_at_every_level() -> None:
    config = _config(colour="blue")
    config["extra"] = 1
    config["runner"]["shell"] = True
    config["analysis"]["server"]["port"] = 9000

    assert _issue_paths(config) == [
        "analysis.server.port",
        "extra",
        "project.colour",
        "runner.shell",
    ]


def test_scalar_types_and_enums_are_checked() -> None:
    config = _config()
    config["analysis"]["verbose"] = "yes"
    config["analysis"]["database"]["url"] = 5
    config["runner"]["timeout_seconds"] = 0
    config["runner"]["executable"] = " "
    config["runner"]["extra_args"] = ["-X", 3]
    config["observability"]["log_level"] = "TRACE"

    result = validate_config(config)

    assert [(issue.path, issue.message) for issue in result.issues] == [
        ("analysis.database.url", "must be a string"),
        ("analysis.verbose", "must be a boolean"),
        ("observability.log_level", "must be one of DEBUG, INFO, WARNING, ERROR"),
        ("runner.executable", "must not be empty"),
        ("runner.extra_args", "must be a list of strings"),
        ("runner.timeout_seconds", "must be > 0"),
    ]


@pytest.mark.parametrize("name", ["a.b", "a,b"])
def test_project_names_must_not_contain_separators(name: str) -> None:
    assert _issue_paths(_config(name=name)) == ["project.name"]


def test_duplicate_sibling_modules_are_reported() -> None:
    config = _config(modules=[{"name": "core"}, {"name": "web"}, {"name": "core"}])

    result = validate_config(config)

    assert [(issue.path, issue.message) for issue in result.issues] == [
        ("project.modules[2].name", "duplicate module name 'core'"),
    ]


def test_nested_modules_are_validated_recursively() -> None:
    config = _config(
        modules=[
            {"name": "core", "modules": [{"skip": "no"}, "not-a-table"]},
        ]
    )

    assert _issue_paths(config) == [
        "project.modules[0].modules[0].name",
        "project.modules[0].modules[0].skip",
        "project.modules[0].modules[1]",
    ]


def test_project_field_types_are_checked() -> None:
    config = _config(
        source_dirs="src",
        import_sources="true",
        version=1,
        properties={"sonar.ok": ["a", 1, True], "sonar.bad": {"nested": 1}},
    )

    assert _issue_paths(config) == [
        "project.import_sources",
        "project.properties['sonar.bad']",
        "project.source_dirs",
        "project.version",
    ]


def test_assert_valid_config_raises_with_all_issues() -> None:
    config = _config(name="")
    config["observability"]["log_level"] = "LOUD"

    with pytest.raises(ConfigValidationError) as excinfo:
        assert_valid_config(config)

    assert len(excinfo.value.issues) == 2
    assert "project.name" in str(excinfo.value)


def test_merge_config_merges_tables_and_replaces_lists() -> None:
    base = {"runner": {"executable": "sonar-scanner", "extra_args": ["-X"]}}
    overlay = {"runner": {"extra_args": ["-Dsonar.log.level=DEBUG"]}}

    merged = merge_config(base, overlay)

    assert merged == {
        "runner": {"executable": "sonar-scanner", "extra_args": ["-Dsonar.log.level=DEBUG"]}
    }
    assert base["runner"]["extra_args"] == ["-X"]


def test_redact_config_masks_sensitive_keys() -> None:
    config = _config(properties={"sonar.login.token": "sqp_abc"})
    config["analysis"]["database"]["password"] = "hunter2"

    redacted = redact_config(config)

    assert redacted["analysis"]["database"]["password"] == "***REDACTED***"
    assert redacted["project"]["properties"]["sonar.login.token"] == "***REDACTED***"
    assert config["analysis"]["database"]["password"] == "hunter2"


@pytest.mark.parametrize(
    ("key", "expected"),
    [
        ("sonar.jdbc.password", True),
        ("sonar.login.token", True),
        ("sonar.login", True),
        ("password", True),
        ("sonar.jdbc.username", False),
        ("sonar.host.url", False),
    ],
)
def test_is_sensitive_key(key: str, expected: bool) -> None:
    assert is_sensitive_key(key) is expected

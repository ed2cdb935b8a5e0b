"""Model-to-properties conversion for a single configuration node."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import PurePath
from typing import Final

from sonar_analyze.constants import MODULE_SEPARATOR, PROPERTY_SEPARATOR
from sonar_analyze.model.nodes import (
    ChildNode,
    ConfigNode,
    ProjectSettings,
    PropertyProcessor,
    PropertyValue,
    RootNode,
)

_PROJECT_FIELDS: Final[tuple[tuple[str, str], ...]] = (
    ("key", "sonar.projectKey"),
    ("display_name", "sonar.projectName"),
    ("description", "sonar.projectDescription"),
    ("version", "sonar.projectVersion"),
    ("base_dir", "sonar.projectBaseDir"),
    ("work_dir", "sonar.working.directory"),
    ("source_encoding", "sonar.sourceEncoding"),
    ("language", "sonar.language"),
    ("dynamic_analysis", "sonar.dynamicAnalysis"),
    ("source_dirs", "sonar.sources"),
    ("test_dirs", "sonar.tests"),
    ("binary_dirs", "sonar.binaries"),
    ("libraries", "sonar.libraries"),
    ("import_sources", "sonar.importSources"),
)


def join_key(prefix: str | None, key: str) -> str:
    """Scope ``key`` under ``prefix``; an empty prefix leaves the key unchanged."""

    return f"{prefix}{PROPERTY_SEPARATOR}{key}" if prefix else key


def convert(node: ConfigNode, prefix: str | None = None) -> dict[str, str]:
    """Return the node's own properties, rendered and scoped under ``prefix``.

    Root nodes contribute their global settings and run the root-level property
    processors ahead of the project's own. Exceptions raised by a processor
    propagate unchanged.
    """

    match node:
        case RootNode():
            raw = root_properties(node)
            raw.update(project_properties(node.project))
            processors = node.property_processors + node.project.property_processors
        case ChildNode():
            raw = project_properties(node.project)
            processors = node.project.property_processors
        case _:
            raise TypeError(f"unsupported configuration node: {type(node).__name__}")

    _run_processors(raw, processors)
    return {
        join_key(prefix, key): rendered
        for key, value in raw.items()
        if (rendered := render_value(value)) is not None
    }


def root_properties(node: RootNode) -> dict[str, PropertyValue]:
    """Global-only properties contributed by the root node."""

    return {
        "sonar.host.url": node.server.url,
        "sonar.jdbc.url": node.database.url,
        "sonar.jdbc.driverClassName": node.database.driver_class_name,
        "sonar.jdbc.username": node.database.username,
        "sonar.jdbc.password": node.database.password,
        "sonar.showSql": node.show_sql,
        "sonar.showSqlResults": node.show_sql_results,
        "sonar.verbose": node.verbose,
        "sonar.forceAnalysis": node.force_analysis,
    }


def project_properties(project: ProjectSettings) -> dict[str, PropertyValue]:
    """Unprefixed properties derived from project fields plus free-form extras."""

    properties: dict[str, PropertyValue] = {}
    for attr, key in _PROJECT_FIELDS:
        value = getattr(project, attr)
        # empty directory lists mean "not configured"
        if isinstance(value, tuple) and not value:
            continue
        properties[key] = value
    properties.update(project.properties)
    return properties


def render_value(value: PropertyValue) -> str | None:
    """Render a property value the way the analysis engine expects it."""

    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, PurePath):
        return value.as_posix()
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, Sequence):
        rendered = (render_value(item) for item in value)
        return MODULE_SEPARATOR.join(item for item in rendered if item is not None)
    raise TypeError(f"unsupported property value type: {type(value).__name__}")


def _run_processors(
    properties: dict[str, PropertyValue],
    processors: tuple[PropertyProcessor, ...],
) -> None:
    for processor in processors:
        processor(properties)


__all__ = [
    "convert",
    "join_key",
    "project_properties",
    "render_value",
    "root_properties",
]

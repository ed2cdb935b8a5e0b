"""Build the immutable analysis tree from a validated configuration payload."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from sonar_analyze.model.nodes import (
    ChildNode,
    DatabaseSettings,
    ProjectSettings,
    RootNode,
    ServerSettings,
)


def build_root_model(config: Mapping[str, Any]) -> RootNode:
    """Turn the ``analysis`` and ``project`` sections into a ``RootNode``."""

    analysis = config.get("analysis", {})
    server = analysis.get("server", {})
    database = analysis.get("database", {})
    project = config["project"]

    return RootNode(
        project=build_project_settings(project),
        children=tuple(build_child_node(module) for module in project.get("modules", [])),
        server=ServerSettings(url=server.get("url")),
        database=DatabaseSettings(
            url=database.get("url"),
            driver_class_name=database.get("driver_class_name"),
            username=database.get("username"),
            password=database.get("password"),
        ),
        bootstrap_dir=Path(analysis["bootstrap_dir"]),
        show_sql=analysis.get("show_sql"),
        show_sql_results=analysis.get("show_sql_results"),
        verbose=analysis.get("verbose"),
        force_analysis=analysis.get("force_analysis"),
    )


def build_child_node(module: Mapping[str, Any]) -> ChildNode:
    return ChildNode(
        project=build_project_settings(module),
        children=tuple(build_child_node(child) for child in module.get("modules", [])),
    )


def build_project_settings(project: Mapping[str, Any]) -> ProjectSettings:
    return ProjectSettings(
        name=project["name"],
        skip=project.get("skip", False),
        key=project.get("key"),
        display_name=project.get("display_name"),
        description=project.get("description"),
        version=project.get("version"),
        base_dir=project.get("base_dir"),
        work_dir=project.get("work_dir"),
        source_encoding=project.get("source_encoding"),
        language=project.get("language"),
        dynamic_analysis=project.get("dynamic_analysis"),
        source_dirs=tuple(project.get("source_dirs", ())),
        test_dirs=tuple(project.get("test_dirs", ())),
        binary_dirs=tuple(project.get("binary_dirs", ())),
        libraries=tuple(project.get("libraries", ())),
        import_sources=project.get("import_sources"),
        properties=dict(project.get("properties", {})),
    )


__all__ = ["build_child_node", "build_project_settings", "build_root_model"]

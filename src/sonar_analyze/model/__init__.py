"""Analysis configuration tree and its per-node conversion rule."""

from sonar_analyze.model.converter import (
    convert,
    join_key,
    project_properties,
    render_value,
    root_properties,
)
from sonar_analyze.model.nodes import (
    ChildNode,
    ConfigNode,
    DatabaseSettings,
    ModelError,
    ProjectSettings,
    PropertyProcessor,
    PropertyValue,
    RootNode,
    ServerSettings,
)

__all__ = [
    "ChildNode",
    "ConfigNode",
    "DatabaseSettings",
    "ModelError",
    "ProjectSettings",
    "PropertyProcessor",
    "PropertyValue",
    "RootNode",
    "ServerSettings",
    "convert",
    "join_key",
    "project_properties",
    "render_value",
    "root_properties",
]

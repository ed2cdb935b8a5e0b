"""
sonar-analyze — immutable analysis configuration tree.

File: src/sonar_analyze/model/nodes.py

Purpose
- Define the configuration tree handed to the property flattener: one ``RootNode``
  carrying server/database/runtime settings, and nested ``ChildNode`` sub-projects.

What should be included in this file
- Frozen dataclasses for project, server, and database settings.
- The ``ConfigNode`` tagged variant (``RootNode | ChildNode``).
- Construction-time validation of names and sibling uniqueness.

Non-functional requirements
- Nodes are values: updates go through ``dataclasses.replace`` and never mutate a
  live tree.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import NoReturn, TypeAlias

from sonar_analyze.constants import DEFAULT_BOOTSTRAP_DIR, MODULE_SEPARATOR, PROPERTY_SEPARATOR

PropertyScalar: TypeAlias = str | int | float | bool | PurePath | None
PropertyValue: TypeAlias = PropertyScalar | Sequence[PropertyScalar]
PropertyPairs: TypeAlias = tuple[tuple[str, PropertyValue], ...]
PropertyProcessor: TypeAlias = Callable[[dict[str, PropertyValue]], None]

_MAX_NAME_LENGTH = 256
_FORBIDDEN_NAME_CHARS = frozenset({PROPERTY_SEPARATOR, MODULE_SEPARATOR})


class ModelError(ValueError):
    """Raised when a configuration node is malformed."""


@dataclass(frozen=True, slots=True)
class ServerSettings:
    """Sonar web server connection."""

    url: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "url", _optional_text(self.url, "ServerSettings.url"))


@dataclass(frozen=True, slots=True)
class DatabaseSettings:
    """JDBC connection used by the analysis engine."""

    url: str | None = None
    driver_class_name: str | None = None
    username: str | None = None
    password: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "url", _optional_text(self.url, "DatabaseSettings.url"))
        object.__setattr__(
            self,
            "driver_class_name",
            _optional_text(self.driver_class_name, "DatabaseSettings.driver_class_name"),
        )
        object.__setattr__(
            self, "username", _optional_text(self.username, "DatabaseSettings.username")
        )
        if self.password is not None and not isinstance(self.password, str):
            _fail("DatabaseSettings.password", "must be a string")

    def __repr__(self) -> str:
        password = None if self.password is None else "***"
        return (
            f"DatabaseSettings(url={self.url!r}, driver_class_name={self.driver_class_name!r}, "
            f"username={self.username!r}, password={password!r})"
        )


@dataclass(frozen=True, slots=True)
class ProjectSettings:
    """Per-project analysis settings shared by root and child nodes."""

    name: str
    skip: bool = False
    key: str | None = None
    display_name: str | None = None
    description: str | None = None
    version: str | None = None
    base_dir: Path | None = None
    work_dir: Path | None = None
    source_encoding: str | None = None
    language: str | None = None
    dynamic_analysis: str | None = None
    source_dirs: tuple[str, ...] = ()
    test_dirs: tuple[str, ...] = ()
    binary_dirs: tuple[str, ...] = ()
    libraries: tuple[str, ...] = ()
    import_sources: bool | None = None
    properties: PropertyPairs = ()
    property_processors: tuple[PropertyProcessor, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", _node_name(self.name, "ProjectSettings.name"))
        if not isinstance(self.skip, bool):
            _fail("ProjectSettings.skip", "must be a boolean")
        for attr in (
            "key",
            "display_name",
            "description",
            "version",
            "source_encoding",
            "language",
            "dynamic_analysis",
        ):
            object.__setattr__(
                self, attr, _optional_text(getattr(self, attr), f"ProjectSettings.{attr}")
            )
        object.__setattr__(
            self, "base_dir", _optional_path(self.base_dir, "ProjectSettings.base_dir")
        )
        object.__setattr__(
            self, "work_dir", _optional_path(self.work_dir, "ProjectSettings.work_dir")
        )
        for attr in ("source_dirs", "test_dirs", "binary_dirs", "libraries"):
            object.__setattr__(
                self, attr, _path_strings(getattr(self, attr), f"ProjectSettings.{attr}")
            )
        if self.import_sources is not None and not isinstance(self.import_sources, bool):
            _fail("ProjectSettings.import_sources", "must be a boolean")
        object.__setattr__(
            self, "properties", _property_pairs(self.properties, "ProjectSettings.properties")
        )
        object.__setattr__(
            self,
            "property_processors",
            _processors(self.property_processors, "ProjectSettings.property_processors"),
        )


@dataclass(frozen=True, slots=True)
class ChildNode:
    """A sub-project in the analysis tree."""

    project: ProjectSettings
    children: tuple[ChildNode, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", _children(self.children, self.project.name))

    @property
    def name(self) -> str:
        return self.project.name

    @property
    def skip(self) -> bool:
        return self.project.skip


@dataclass(frozen=True, slots=True)
class RootNode:
    """Entry point to the analysis configuration; carries global-only settings."""

    project: ProjectSettings
    children: tuple[ChildNode, ...] = ()
    server: ServerSettings = field(default_factory=ServerSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    bootstrap_dir: Path = Path(DEFAULT_BOOTSTRAP_DIR)
    show_sql: bool | None = None
    show_sql_results: bool | None = None
    verbose: bool | None = None
    force_analysis: bool | None = None
    property_processors: tuple[PropertyProcessor, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", _children(self.children, self.project.name))
        if not isinstance(self.server, ServerSettings):
            _fail("RootNode.server", "must be ServerSettings")
        if not isinstance(self.database, DatabaseSettings):
            _fail("RootNode.database", "must be DatabaseSettings")
        bootstrap_dir = _optional_path(self.bootstrap_dir, "RootNode.bootstrap_dir")
        if bootstrap_dir is None:
            _fail("RootNode.bootstrap_dir", "is required")
        object.__setattr__(self, "bootstrap_dir", bootstrap_dir)
        for attr in ("show_sql", "show_sql_results", "verbose", "force_analysis"):
            value = getattr(self, attr)
            if value is not None and not isinstance(value, bool):
                _fail(f"RootNode.{attr}", "must be a boolean")
        object.__setattr__(
            self,
            "property_processors",
            _processors(self.property_processors, "RootNode.property_processors"),
        )

    @property
    def name(self) -> str:
        return self.project.name

    @property
    def skip(self) -> bool:
        return self.project.skip


ConfigNode: TypeAlias = RootNode | ChildNode


def _fail(path: str, message: str) -> NoReturn:
    raise ModelError(f"{path}: {message}")


def _optional_text(value: object, path: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    stripped = value.strip()
    return stripped or None


def _node_name(value: object, path: str) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    name = value.strip()
    if not name:
        _fail(path, "must not be empty")
    if len(name) > _MAX_NAME_LENGTH:
        _fail(path, f"must be <= {_MAX_NAME_LENGTH} characters")
    bad = sorted(char for char in _FORBIDDEN_NAME_CHARS if char in name)
    if bad:
        _fail(path, f"must not contain {', '.join(repr(char) for char in bad)}")
    return name


def _optional_path(value: object, path: str) -> Path | None:
    if value is None:
        return None
    if isinstance(value, str):
        if not value.strip():
            return None
        return Path(value.strip())
    if isinstance(value, PurePath):
        return Path(value)
    _fail(path, f"expected path, got {type(value).__name__}")


def _path_strings(value: object, path: str) -> tuple[str, ...]:
    if isinstance(value, (str, PurePath)):
        value = (value,)
    if not isinstance(value, Iterable):
        _fail(path, f"expected a sequence of paths, got {type(value).__name__}")
    items: list[str] = []
    for index, item in enumerate(value):
        if isinstance(item, PurePath):
            items.append(item.as_posix())
        elif isinstance(item, str) and item.strip():
            items.append(item.strip())
        else:
            _fail(f"{path}[{index}]", "must be a non-empty path")
    return tuple(items)


def _property_pairs(value: object, path: str) -> PropertyPairs:
    if isinstance(value, Mapping):
        raw_items: Iterable[object] = value.items()
    elif isinstance(value, Iterable) and not isinstance(value, (str, bytes)):
        raw_items = value
    else:
        _fail(path, f"expected mapping or key/value pairs, got {type(value).__name__}")

    pairs: dict[str, PropertyValue] = {}
    for item in raw_items:
        if not isinstance(item, tuple) or len(item) != 2:
            _fail(path, "entries must be (key, value) pairs")
        key, item_value = item
        if not isinstance(key, str) or not key.strip():
            _fail(path, "keys must be non-empty strings")
        pairs[key.strip()] = item_value
    return tuple(pairs.items())


def _processors(value: object, path: str) -> tuple[PropertyProcessor, ...]:
    if callable(value):
        return (value,)
    if not isinstance(value, Iterable):
        _fail(path, f"expected callables, got {type(value).__name__}")
    processors = tuple(value)
    for index, item in enumerate(processors):
        if not callable(item):
            _fail(f"{path}[{index}]", "must be callable")
    return processors


def _children(value: object, parent_name: str) -> tuple[ChildNode, ...]:
    if not isinstance(value, Iterable):
        _fail(f"{parent_name}.children", "expected a sequence of ChildNode")
    children = tuple(value)
    seen: set[str] = set()
    for child in children:
        if not isinstance(child, ChildNode):
            _fail(f"{parent_name}.children", f"expected ChildNode, got {type(child).__name__}")
        if child.name in seen:
            _fail(f"{parent_name}.children", f"duplicate module name {child.name!r}")
        seen.add(child.name)
    return children


__all__ = [
    "ChildNode",
    "ConfigNode",
    "DatabaseSettings",
    "ModelError",
    "ProjectSettings",
    "PropertyPairs",
    "PropertyProcessor",
    "PropertyScalar",
    "PropertyValue",
    "RootNode",
    "ServerSettings",
]

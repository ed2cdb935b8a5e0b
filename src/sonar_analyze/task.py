"""
sonar-analyze — analysis task.

File: src/sonar_analyze/task.py

Purpose
- Analyze a project hierarchy: flatten the configuration tree, hand the properties
  to the analysis runner, and let it write results to the Sonar database.
- Expose the command-line options that adjust the root configuration before a run.

Functional requirements
- A skipped root performs no work at all (no directories, no runner call).
- Options never mutate a live tree; each produces a new ``RootNode``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from typing import Final, Literal

from sonar_analyze.config.schema import is_sensitive_key
from sonar_analyze.constants import REDACTED_VALUE
from sonar_analyze.flattener import FlatPropertyMap, PropertyTreeFlattener
from sonar_analyze.model.nodes import RootNode
from sonar_analyze.runner import AnalysisRunner, RunnerResult, SonarScannerRunner
from sonar_analyze.utils.fs import ensure_directory

_LOGGER = logging.getLogger(__name__)

_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})

OptionKind = Literal["str", "bool"]


class UnknownOptionError(ValueError):
    """Raised for an option name the task does not declare."""


@dataclass(frozen=True, slots=True)
class CommandLineOption:
    """A task option settable from the command line."""

    name: str
    description: str
    kind: OptionKind
    apply: Callable[[RootNode, object], RootNode]

    def coerce(self, value: object) -> str | bool:
        if self.kind == "bool":
            return _coerce_bool(self.name, value)
        if not isinstance(value, str):
            raise ValueError(f"option {self.name!r} expects a string value")
        return value


def _server_url(root: RootNode, value: object) -> RootNode:
    return replace(root, server=replace(root.server, url=value))


def _database(attr: str) -> Callable[[RootNode, object], RootNode]:
    def apply(root: RootNode, value: object) -> RootNode:
        return replace(root, database=replace(root.database, **{attr: value}))

    return apply


def _root_flag(attr: str) -> Callable[[RootNode, object], RootNode]:
    def apply(root: RootNode, value: object) -> RootNode:
        return replace(root, **{attr: value})

    return apply


COMMAND_LINE_OPTIONS: Final[tuple[CommandLineOption, ...]] = (
    CommandLineOption(
        "server.url",
        "The URL for the Sonar web server.",
        "str",
        _server_url,
    ),
    CommandLineOption(
        "database.url",
        "The JDBC URL for the Sonar database.",
        "str",
        _database("url"),
    ),
    CommandLineOption(
        "database.driverClassName",
        "The JDBC driver class name for the Sonar database.",
        "str",
        _database("driver_class_name"),
    ),
    CommandLineOption(
        "database.username",
        "The JDBC username for the Sonar database.",
        "str",
        _database("username"),
    ),
    CommandLineOption(
        "database.password",
        "The JDBC password for the Sonar database.",
        "str",
        _database("password"),
    ),
    CommandLineOption(
        "showSql",
        "Whether to show SQL statements sent to the Sonar database.",
        "bool",
        _root_flag("show_sql"),
    ),
    CommandLineOption(
        "showSqlResults",
        "Whether to show results of SQL statements sent to the Sonar database.",
        "bool",
        _root_flag("show_sql_results"),
    ),
    CommandLineOption(
        "verbose",
        "Whether to activate debug logging for Sonar analysis.",
        "bool",
        _root_flag("verbose"),
    ),
    CommandLineOption(
        "forceAnalysis",
        "Whether to force re-running an analysis that appears to be running already.",
        "bool",
        _root_flag("force_analysis"),
    ),
)

_OPTIONS_BY_NAME: Final[dict[str, CommandLineOption]] = {
    option.name: option for option in COMMAND_LINE_OPTIONS
}


def get_option(name: str) -> CommandLineOption:
    try:
        return _OPTIONS_BY_NAME[name]
    except KeyError:
        known = ", ".join(sorted(_OPTIONS_BY_NAME))
        raise UnknownOptionError(f"unknown option {name!r} (known: {known})") from None


def apply_option(root: RootNode, name: str, value: object) -> RootNode:
    """Return a copy of ``root`` with option ``name`` set to ``value``."""

    option = get_option(name)
    return option.apply(root, option.coerce(value))


class SonarAnalyzeTask:
    """Analyzes a project hierarchy and writes the results to the Sonar database."""

    def __init__(
        self,
        root_model: RootNode,
        *,
        runner: AnalysisRunner | None = None,
        logger: logging.Logger | None = None,
        flattener: PropertyTreeFlattener | None = None,
    ) -> None:
        if not isinstance(root_model, RootNode):
            raise TypeError(f"root_model must be RootNode, got {type(root_model).__name__}")
        self._root_model = root_model
        self._runner = runner if runner is not None else SonarScannerRunner()
        self._logger = logger if logger is not None else _LOGGER
        self._flattener = (
            flattener if flattener is not None else PropertyTreeFlattener(logger=self._logger)
        )

    @property
    def root_model(self) -> RootNode:
        return self._root_model

    def apply_option(self, name: str, value: object) -> None:
        self._root_model = apply_option(self._root_model, name, value)

    def apply_options(self, options: Mapping[str, object]) -> None:
        """Apply several options in declaration order, ignoring ``None`` values."""

        unknown = sorted(set(options) - set(_OPTIONS_BY_NAME))
        if unknown:
            get_option(unknown[0])
        for option in COMMAND_LINE_OPTIONS:
            value = options.get(option.name)
            if value is not None:
                self.apply_option(option.name, value)

    def properties(self) -> FlatPropertyMap:
        """Flatten the current configuration without running the analysis."""

        return self._flattener.flatten(self._root_model)

    def analyze(self) -> RunnerResult | None:
        if self._flattener.is_skipped(self._root_model):
            return None

        bootstrap_dir = ensure_directory(self._root_model.bootstrap_dir)
        properties = self.properties()
        if self._logger.isEnabledFor(logging.INFO):
            lines = (
                f"{key}: {REDACTED_VALUE if is_sensitive_key(key) else properties[key]}"
                for key in sorted(properties)
            )
            self._logger.info("Properties to be passed to Sonar runner:\n%s", "\n".join(lines))
        return self._runner.execute(properties, bootstrap_dir)


def _coerce_bool(name: str, value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _BOOLEAN_TRUE:
            return True
        if lowered in _BOOLEAN_FALSE:
            return False
    raise ValueError(f"option {name!r} must be a boolean (true/false/1/0/yes/no/on/off)")


__all__ = [
    "COMMAND_LINE_OPTIONS",
    "CommandLineOption",
    "SonarAnalyzeTask",
    "UnknownOptionError",
    "apply_option",
    "get_option",
]

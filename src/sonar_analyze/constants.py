"""Stable constants shared across the analysis task, runner, and config layers."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Property keys the analysis engine requires at every module prefix.
SOURCES_KEY: Final[str] = "sonar.sources"
MODULES_KEY: Final[str] = "sonar.modules"
SKIP_PROPERTY: Final[str] = "sonar.project.skip"

PROPERTY_SEPARATOR: Final[str] = "."
MODULE_SEPARATOR: Final[str] = ","

# Config file and environment defaults.
DEFAULT_CONFIG_FILE: Final[str] = "sonar-analyze.toml"
ENV_PREFIX: Final[str] = "SONAR_ANALYZE_"

# Runner defaults.
DEFAULT_BOOTSTRAP_DIR: Final[PurePosixPath] = PurePosixPath("build/sonar")
DEFAULT_RUNNER_EXECUTABLE: Final[str] = "sonar-scanner"
DEFAULT_RUNNER_TIMEOUT_SECONDS: Final[float] = 3600.0
PROPERTIES_FILENAME: Final[str] = "sonar-project.properties"

REDACTED_VALUE: Final[str] = "***REDACTED***"

__all__ = [
    "DEFAULT_BOOTSTRAP_DIR",
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_RUNNER_EXECUTABLE",
    "DEFAULT_RUNNER_TIMEOUT_SECONDS",
    "ENV_PREFIX",
    "MODULES_KEY",
    "MODULE_SEPARATOR",
    "PROPERTIES_FILENAME",
    "PROPERTY_SEPARATOR",
    "REDACTED_VALUE",
    "SKIP_PROPERTY",
    "SOURCES_KEY",
]

"""
sonar-analyze config package public API.

File: src/sonar_analyze/config/__init__.py

Purpose
- Export config loading/validation entrypoints, public error types, and the
  config-to-model builder.

Functional requirements
- Support loading from ``sonar-analyze.toml`` (or YAML) + ``SONAR_ANALYZE_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from sonar_analyze.config.builder import build_root_model
from sonar_analyze.config.loader import (
    ConfigLoadError,
    dump_effective_config,
    effective_config,
    env_name_for_path,
    load_config,
    normalize_paths,
)
from sonar_analyze.config.schema import (
    DEFAULT_CONFIG,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
    validate_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "assert_valid_config",
    "build_root_model",
    "default_config",
    "dump_effective_config",
    "effective_config",
    "env_name_for_path",
    "load_config",
    "merge_config",
    "normalize_paths",
    "redact_config",
    "validate_config",
]

"""Command-line interface router for sonar-analyze."""

from __future__ import annotations

import argparse
import json
import sys
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Final

from sonar_analyze.config import (
    ConfigLoadError,
    ConfigValidationError,
    build_root_model,
    load_config,
)
from sonar_analyze.config.schema import is_sensitive_key
from sonar_analyze.constants import REDACTED_VALUE
from sonar_analyze.model.nodes import ModelError, RootNode
from sonar_analyze.observability.logging import (
    correlation_scope,
    setup_logging,
    shutdown_logging,
)
from sonar_analyze.runner import AnalysisCommandError, AnalysisRunnerError, SonarScannerRunner
from sonar_analyze.task import COMMAND_LINE_OPTIONS, CommandLineOption, SonarAnalyzeTask

_OPTION_DEST_PREFIX: Final[str] = "option__"


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="sonar-analyze",
        description=(
            "sonar-analyze — analyze a project hierarchy with the Sonar runner.\n\n"
            "Common workflows:\n"
            "  sonar-analyze analyze                       Run the analysis\n"
            "  sonar-analyze properties --json             Show the runner properties\n"
            "  sonar-analyze analyze --server.url URL      Override the server URL\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to a TOML or YAML config (default: ./sonar-analyze.toml if present).",
    )
    common.add_argument(
        "--log-level",
        default=None,
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Override observability.log_level.",
    )
    common.add_argument(
        "--log-dir",
        default=None,
        help="Override observability.log_dir.",
    )
    common.add_argument(
        "--run-id",
        default=None,
        help="Correlation id for this run (default: generated).",
    )
    _add_task_options(common)

    subparsers = parser.add_subparsers(dest="command", required=True)

    # analyze -------------------------------------------------------------
    analyze_parser = subparsers.add_parser(
        "analyze",
        parents=[common],
        help="Analyze the project hierarchy and write results to the Sonar database",
        description=(
            "Flatten the project configuration and run the Sonar runner.\n\n"
            "Examples:\n"
            "  sonar-analyze analyze\n"
            "  sonar-analyze analyze --config ci/sonar.yaml --verbose\n"
            "  sonar-analyze analyze --database.password \"$DB_PASSWORD\"\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    analyze_parser.set_defaults(handler=_cmd_analyze)

    # properties ----------------------------------------------------------
    properties_parser = subparsers.add_parser(
        "properties",
        parents=[common],
        help="Print the flattened runner properties without running the analysis",
        description=(
            "Flatten the project configuration and print the properties the runner would get.\n"
            "Secret values are always redacted.\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    properties_parser.add_argument(
        "--json", action="store_true", help="Emit deterministic JSON output"
    )
    properties_parser.set_defaults(handler=_cmd_properties)

    return parser


def _add_task_options(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("analysis options")
    for option in COMMAND_LINE_OPTIONS:
        flag = f"--{option.name}"
        dest = _option_dest(option)
        if option.kind == "bool":
            group.add_argument(
                flag,
                dest=dest,
                action="store_const",
                const=True,
                default=None,
                help=option.description,
            )
        else:
            group.add_argument(flag, dest=dest, default=None, help=option.description)


def _option_dest(option: CommandLineOption) -> str:
    return _OPTION_DEST_PREFIX + option.name.replace(".", "_")


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_analyze(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    task_runner = SonarScannerRunner(
        executable=config["runner"]["executable"],
        timeout_seconds=config["runner"]["timeout_seconds"],
        extra_args=tuple(config["runner"].get("extra_args", ())),
    )
    handle = setup_logging(config["observability"], run_id=_run_id(args))
    try:
        task = SonarAnalyzeTask(_build_model(config), runner=task_runner, logger=handle.logger)
        task.apply_options(_task_options(args))
        try:
            with correlation_scope(project=task.root_model.name):
                result = task.analyze()
        except AnalysisCommandError as exc:
            raise CLIError(str(exc), exit_code=1) from exc
        except AnalysisRunnerError as exc:
            raise CLIError(str(exc), exit_code=3) from exc
    finally:
        shutdown_logging(handle)

    if result is None:
        print(f"analysis skipped for project {task.root_model.name!r}")
    else:
        print(f"analysis completed in {result.duration_ms} ms ({result.properties_path})")
    return 0


def _cmd_properties(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    task = SonarAnalyzeTask(_build_model(config))
    task.apply_options(_task_options(args))

    properties = {
        key: REDACTED_VALUE if is_sensitive_key(key) else value
        for key, value in sorted(task.properties().items())
    }
    if getattr(args, "json", False):
        print(json.dumps(properties, sort_keys=True, indent=2, ensure_ascii=False))
    else:
        for key, value in properties.items():
            print(f"{key}={value}")
    return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, object] = {
        "observability.log_level": getattr(args, "log_level", None),
        "observability.log_dir": _absolute_or_none(getattr(args, "log_dir", None)),
    }
    try:
        return load_config(getattr(args, "config_path", None), cli_overrides=overrides)
    except ConfigValidationError as exc:
        raise CLIError(str(exc), exit_code=2) from exc
    except ConfigLoadError as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _build_model(config: dict[str, Any]) -> RootNode:
    try:
        return build_root_model(config)
    except ModelError as exc:
        raise CLIError(f"invalid project model: {exc}", exit_code=2) from exc


def _task_options(args: argparse.Namespace) -> dict[str, object]:
    return {option.name: getattr(args, _option_dest(option), None) for option in COMMAND_LINE_OPTIONS}


def _absolute_or_none(raw: str | None) -> str | None:
    if raw is None:
        return None
    return Path(raw).expanduser().resolve().as_posix()


def _run_id(args: argparse.Namespace) -> str:
    explicit = getattr(args, "run_id", None)
    if isinstance(explicit, str) and explicit.strip():
        return explicit.strip()
    stamp = datetime.now(tz=UTC).strftime("%Y%m%dT%H%M%SZ")
    return f"run-{stamp}-{uuid.uuid4().hex[:8]}"


__all__ = ["CLIError", "build_parser", "run_cli"]

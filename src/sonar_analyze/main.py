"""Process entrypoint: runs the CLI and maps failures onto exit codes."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

from sonar_analyze.config.loader import ConfigLoadError
from sonar_analyze.config.schema import ConfigValidationError
from sonar_analyze.model.nodes import ModelError
from sonar_analyze.runner import AnalysisCommandError, AnalysisRunnerError
from sonar_analyze.task import UnknownOptionError

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class ExitCode(IntEnum):
    """Exit codes of ``sonar-analyze``; stable across releases."""

    SUCCESS = 0
    ANALYSIS_FAILED = 1
    CONFIG_ERROR = 2
    RUNNER_ERROR = 3
    INTERNAL_ERROR = 4


# First match wins, checked against every exception in the cause chain.
_EXIT_CODE_ROUTES: tuple[tuple[tuple[type[BaseException], ...], ExitCode], ...] = (
    (
        (ConfigLoadError, ConfigValidationError, ModelError, UnknownOptionError),
        ExitCode.CONFIG_ERROR,
    ),
    ((AnalysisCommandError,), ExitCode.ANALYSIS_FAILED),
    ((AnalysisRunnerError,), ExitCode.RUNNER_ERROR),
)


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Run ``sonar-analyze`` and return its exit code instead of raising."""

    try:
        from sonar_analyze.ui.cli import run_cli

        return _normalize_exit_code(run_cli(argv))
    except SystemExit as exc:
        return _normalize_exit_code(exc.code)
    except Exception as exc:  # noqa: BLE001 - last-resort process boundary
        code = _route_exception(exc)
        _report(exc, code)
        return int(code)


def _normalize_exit_code(raw_code: object) -> int:
    if raw_code is None:
        return int(ExitCode.SUCCESS)
    if isinstance(raw_code, int) and raw_code in set(ExitCode):
        return raw_code
    if isinstance(raw_code, str) and raw_code.strip():
        print(raw_code.strip(), file=sys.stderr)
    return int(ExitCode.INTERNAL_ERROR)


def _route_exception(exc: BaseException) -> ExitCode:
    for link in _causes(exc):
        for types, code in _EXIT_CODE_ROUTES:
            if isinstance(link, types):
                return code
    return ExitCode.INTERNAL_ERROR


def _causes(exc: BaseException) -> Iterator[BaseException]:
    visited: set[int] = set()
    link: BaseException | None = exc
    while link is not None and id(link) not in visited:
        visited.add(id(link))
        yield link
        link = link.__cause__ or (None if link.__suppress_context__ else link.__context__)


def _report(exc: BaseException, code: ExitCode) -> None:
    if code is ExitCode.INTERNAL_ERROR:
        traceback.print_exception(exc, file=sys.stderr)
    else:
        print(f"error: {str(exc).strip() or type(exc).__name__}", file=sys.stderr)


__all__ = ["ExitCode", "cli_entrypoint"]

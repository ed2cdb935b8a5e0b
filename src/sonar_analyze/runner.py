"""Analysis-runner boundary: properties handoff file plus an external scanner process."""

from __future__ import annotations

import logging
import subprocess
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Protocol

from sonar_analyze.constants import (
    DEFAULT_RUNNER_EXECUTABLE,
    DEFAULT_RUNNER_TIMEOUT_SECONDS,
    PROPERTIES_FILENAME,
)
from sonar_analyze.utils.fs import atomic_write, ensure_directory

_LOGGER = logging.getLogger(__name__)

_KEY_SPECIALS: Final[frozenset[str]] = frozenset({"=", ":", "#", "!", " "})
_VALUE_SPECIALS: Final[frozenset[str]] = frozenset({"=", ":", "#", "!"})
_CONTROL_ESCAPES: Final[dict[str, str]] = {
    "\\": "\\\\",
    "\t": "\\t",
    "\n": "\\n",
    "\r": "\\r",
    "\f": "\\f",
}


class AnalysisRunnerError(RuntimeError):
    """Raised when the external analysis runner cannot complete."""


class AnalysisCommandError(AnalysisRunnerError):
    """Raised when the analysis process exits with a non-zero status."""

    def __init__(
        self,
        *,
        command: Sequence[str],
        returncode: int,
        stdout: str,
        stderr: str,
    ) -> None:
        self.command = tuple(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        detail = stderr.strip() or stdout.strip()
        message = f"analysis failed ({returncode}): {' '.join(command)}"
        if detail:
            message = f"{message}: {detail.splitlines()[-1]}"
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class CommandExecutionResult:
    """Captured outcome of one external command."""

    command: tuple[str, ...]
    cwd: Path
    returncode: int
    stdout: str
    stderr: str


@dataclass(frozen=True, slots=True)
class RunnerResult:
    """Outcome of a completed analysis run."""

    command: tuple[str, ...]
    working_dir: Path
    properties_path: Path
    returncode: int
    stdout: str
    stderr: str
    duration_ms: int


class CommandRunner(Protocol):
    """Injectable command runner used for deterministic/offline testing."""

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path,
        timeout_seconds: float,
    ) -> CommandExecutionResult: ...


class AnalysisRunner(Protocol):
    """Anything that can execute an analysis from a flat property map."""

    def execute(self, properties: Mapping[str, str], working_dir: Path) -> RunnerResult: ...


class SubprocessCommandRunner:
    """Default command runner backed by ``subprocess.run``."""

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path,
        timeout_seconds: float,
    ) -> CommandExecutionResult:
        try:
            completed = subprocess.run(
                list(command),
                cwd=cwd,
                check=False,
                capture_output=True,
                text=True,
                timeout=timeout_seconds,
            )
        except subprocess.TimeoutExpired as exc:
            raise AnalysisRunnerError(
                f"command timed out after {timeout_seconds} seconds: {' '.join(command)}"
            ) from exc
        except FileNotFoundError as exc:
            raise AnalysisRunnerError(f"analysis runner not found: {command[0]}") from exc

        return CommandExecutionResult(
            command=tuple(command),
            cwd=cwd,
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )


class SonarScannerRunner:
    """Run the ``sonar-scanner`` CLI against a generated properties file."""

    def __init__(
        self,
        *,
        executable: str = DEFAULT_RUNNER_EXECUTABLE,
        timeout_seconds: float = DEFAULT_RUNNER_TIMEOUT_SECONDS,
        extra_args: Sequence[str] = (),
        command_runner: CommandRunner | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if not isinstance(executable, str) or not executable.strip():
            raise ValueError("executable must be a non-empty string")
        if isinstance(timeout_seconds, bool) or timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self._executable = executable.strip()
        self._timeout_seconds = float(timeout_seconds)
        self._extra_args = tuple(extra_args)
        self._command_runner = command_runner or SubprocessCommandRunner()
        self._logger = logger if logger is not None else _LOGGER

    @property
    def executable(self) -> str:
        return self._executable

    def build_command(self, properties_path: Path) -> tuple[str, ...]:
        return (
            self._executable,
            f"-Dproject.settings={properties_path}",
            *self._extra_args,
        )

    def execute(self, properties: Mapping[str, str], working_dir: Path) -> RunnerResult:
        work_dir = ensure_directory(working_dir)
        properties_path = work_dir / PROPERTIES_FILENAME
        atomic_write(properties_path, render_properties(properties), encoding="latin-1")

        command = self.build_command(properties_path)
        self._logger.info("Running analysis: %s (cwd=%s)", " ".join(command), work_dir)
        started = time.monotonic()
        completed = self._command_runner.run(
            command,
            cwd=work_dir,
            timeout_seconds=self._timeout_seconds,
        )
        duration_ms = int((time.monotonic() - started) * 1000)

        if completed.returncode != 0:
            raise AnalysisCommandError(
                command=completed.command,
                returncode=completed.returncode,
                stdout=completed.stdout,
                stderr=completed.stderr,
            )

        self._logger.info("Analysis finished in %d ms", duration_ms)
        return RunnerResult(
            command=completed.command,
            working_dir=work_dir,
            properties_path=properties_path,
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
            duration_ms=duration_ms,
        )


def render_properties(properties: Mapping[str, str]) -> str:
    """Render ``properties`` in Java ``.properties`` syntax, sorted by key."""

    lines = [
        f"{_escape(key, specials=_KEY_SPECIALS)}={_escape(properties[key], specials=_VALUE_SPECIALS)}"
        for key in sorted(properties)
    ]
    return "".join(f"{line}\n" for line in lines)


def _escape(text: str, *, specials: frozenset[str]) -> str:
    out: list[str] = []
    for index, char in enumerate(text):
        if char in _CONTROL_ESCAPES:
            out.append(_CONTROL_ESCAPES[char])
        elif char in specials or (char == " " and index == 0):
            out.append(f"\\{char}")
        elif " " <= char <= "~":
            out.append(char)
        else:
            out.extend(f"\\u{unit:04x}" for unit in _utf16_units(char))
    return "".join(out)


def _utf16_units(char: str) -> tuple[int, ...]:
    encoded = char.encode("utf-16-be")
    return tuple(int.from_bytes(encoded[i : i + 2], "big") for i in range(0, len(encoded), 2))


__all__ = [
    "AnalysisCommandError",
    "AnalysisRunner",
    "AnalysisRunnerError",
    "CommandExecutionResult",
    "CommandRunner",
    "RunnerResult",
    "SonarScannerRunner",
    "SubprocessCommandRunner",
    "render_properties",
]

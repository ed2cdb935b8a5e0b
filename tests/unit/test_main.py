"""Unit tests for process exit-code routing at the CLI boundary."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from sonar_analyze import main as main_module
from sonar_analyze.main import ExitCode, cli_entrypoint
from sonar_analyze.model import ModelError
from sonar_analyze.runner import AnalysisCommandError, AnalysisRunnerError
from sonar_analyze.ui import cli as cli_module


def _raise(exc: BaseException) -> Callable[..., int]:
    def run_cli(argv: object = None) -> int:
        raise exc

    return run_cli


@pytest.mark.unit
@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (ModelError("bad name"), ExitCode.CONFIG_ERROR),
        (
            AnalysisCommandError(command=("sonar-scanner",), returncode=2, stdout="", stderr="x"),
            ExitCode.ANALYSIS_FAILED,
        ),
        (AnalysisRunnerError("timed out"), ExitCode.RUNNER_ERROR),
        (RuntimeError("processor exploded"), ExitCode.INTERNAL_ERROR),
    ],
)
def test_exceptions_map_to_exit_codes(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    exc: BaseException,
    expected: ExitCode,
) -> None:
    monkeypatch.setattr(cli_module, "run_cli", _raise(exc))

    assert cli_entrypoint([]) == int(expected)
    assert str(exc) in capsys.readouterr().err


@pytest.mark.unit
def test_wrapped_cause_is_used_for_routing(monkeypatch: pytest.MonkeyPatch) -> None:
    try:
        try:
            raise ModelError("duplicate module name 'core'")
        except ModelError as inner:
            raise RuntimeError("while building model") from inner
    except RuntimeError as outer:
        wrapped = outer

    monkeypatch.setattr(cli_module, "run_cli", _raise(wrapped))

    assert cli_entrypoint([]) == int(ExitCode.CONFIG_ERROR)


@pytest.mark.unit
def test_argparse_usage_error_is_config_error(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_entrypoint(["no-such-command"]) == 2
    assert "usage:" in capsys.readouterr().err


@pytest.mark.unit
def test_missing_config_returns_config_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code = cli_entrypoint(["properties", "--config", str(tmp_path / "absent.toml")])

    assert code == int(ExitCode.CONFIG_ERROR)
    assert "config file not found" in capsys.readouterr().err


@pytest.mark.unit
def test_unexpected_exit_code_is_normalized() -> None:
    assert main_module._normalize_exit_code(None) == 0
    assert main_module._normalize_exit_code(17) == int(ExitCode.INTERNAL_ERROR)

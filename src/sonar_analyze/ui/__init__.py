"""User-facing command-line surface."""

from __future__ import annotations

from sonar_analyze.ui.cli import CLIError, build_parser, run_cli

__all__ = ["CLIError", "build_parser", "run_cli"]

"""Module entrypoint for ``python -m sonar_analyze``."""

from __future__ import annotations

from sonar_analyze.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())

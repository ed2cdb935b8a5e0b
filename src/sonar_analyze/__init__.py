"""
sonar-analyze — package root.

File: src/sonar_analyze/__init__.py

Purpose
- Analyze a hierarchy of projects with the Sonar runner. A tree of per-project
  configuration is flattened into the single property map the runner consumes.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]

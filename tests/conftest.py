"""Pytest session setup: make the repo-root modules importable."""

from __future__ import annotations

import sys
from pathlib import Path

import matplotlib

matplotlib.use("Agg")


def pytest_sessionstart(session):
    sys.dont_write_bytecode = True
    repo_root = str(Path(__file__).resolve().parents[1])
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)

"""
backend/tests/conftest.py

Purpose:
    Shared pytest bootstrap: import paths for the backend package and an
    in-memory database fixture swapped in for app.database.db.
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

_THIS_FILE = Path(__file__).resolve()
_BACKEND_DIR = _THIS_FILE.parents[1]

for candidate in (str(_BACKEND_DIR), str(_THIS_FILE.parent)):
    if candidate not in sys.path:
        sys.path.insert(0, candidate)

import app.database as _db  # noqa: E402
from fake_mongo import make_db  # noqa: E402


@pytest.fixture
def fake_db(monkeypatch):
    db = make_db()
    monkeypatch.setattr(_db, "db", db)
    return db


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2025, 10, 12, 18, 0, tzinfo=timezone.utc)

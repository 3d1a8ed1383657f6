"""
Fixtures for multi-connection tests.

Each test gets a file-backed SQLite database under ``tmp_path`` (or the
database named by DATABASE_URL) so every thread can open its own
connection and session.
"""

import os

import pytest

from freight_kernel.db.engine import (
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from freight_modules._orm_registry import create_all_tables


@pytest.fixture
def threaded_session_factory(tmp_path):
    url = os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'ledger.db'}"
    init_engine_from_url(url, echo=False)
    create_all_tables()
    yield get_session_factory()
    drop_tables()
    reset_engine()

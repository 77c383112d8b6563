"""
tests/unit/conftest.py — Fixtures for DB-free unit tests.

Unit tests use MagicMock sessions. A Flask app is only created where
current_app is needed (config lookups, error handlers); no tables exist.
"""

from __future__ import annotations

import pytest

from expenseshare.app import create_app


@pytest.fixture
def app_factory():
    """Returns a callable building a fresh testing app each time it is called."""
    return lambda: create_app("testing")


@pytest.fixture
def app_context(app_factory):
    app = app_factory()
    with app.app_context():
        yield app

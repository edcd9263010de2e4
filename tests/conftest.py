"""
Pytest configuration and fixtures.

This file provides pytest-specific configuration and fixtures.
Fakes for the collaborator interfaces live in tests/mocks/fakes.py.
"""

import pytest

from database.database import configure_engine
from database.models import Base
from database.uow import pipeline_uow


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "db: marks tests as requiring database (deselect with '-m \"not db\"')"
    )


@pytest.fixture
def sqlite_engine(tmp_path):
    """
    Fresh file-backed SQLite database per test, bound to SessionLocal.

    A file (not :memory:) so worker threads share the same database.
    """
    engine = configure_engine(f"sqlite:///{tmp_path / 'talentradar_test.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def uow(sqlite_engine):
    """The pipeline_uow factory, backed by the per-test SQLite database."""
    return pipeline_uow

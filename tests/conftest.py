"""Pytest configuration and shared fixtures.

This module provides fixtures for testing the studytracker backup engine,
including an in-memory document store, a signed-in user, sample study
data and an in-memory cloud storage provider.
"""

from typing import Generator

import pytest

from studytracker.auth import UserSession
from studytracker.config import reset_config
from studytracker.db.sqlite import Database, reset_db

from .helpers.builders import (
    SETTINGS_DATA,
    USER_ID,
    make_progress,
    make_subjects,
    seed_collection,
)
from .helpers.fakes import FakeCloudProvider


# ============================================================================
# Document Store Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def db() -> Generator[Database, None, None]:
    """Create an in-memory document store."""
    reset_db()
    reset_config()

    database = Database(":memory:")
    database.create_tables()
    yield database

    reset_db()


@pytest.fixture
def session() -> UserSession:
    """The signed-in user."""
    return UserSession(USER_ID)


@pytest.fixture
def anonymous() -> UserSession:
    """No signed-in user."""
    return UserSession(None)


@pytest.fixture
def seeded_db(db: Database) -> Database:
    """Store holding 3 subjects, 25 progress records and settings for USER_ID."""
    seed_collection(db, USER_ID, "subjects", make_subjects(3))
    seed_collection(db, USER_ID, "progress", make_progress(25))
    db.set_document(USER_ID, "userSettings", USER_ID, dict(SETTINGS_DATA))
    return db


# ============================================================================
# Cloud Storage Fixtures
# ============================================================================


@pytest.fixture
def cloud_provider() -> FakeCloudProvider:
    """Signed-out in-memory cloud provider."""
    return FakeCloudProvider()

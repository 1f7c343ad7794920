"""
Shared fixtures for the replication tracker tests.

The database is configured to use an in‑memory SQLite instance for
isolation.  The environment variable has to be set before the
database module is first imported, so it is assigned at module level.
"""

from __future__ import annotations

import os
from datetime import timedelta

os.environ['DATABASE_URL'] = 'sqlite:///:memory:'

import pytest  # noqa: E402

from replication_app.backend import database as db  # noqa: E402
from replication_app.backend.models import Article, Study, utcnow  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_schema():
    """Recreate every table so each test starts from an empty database."""
    db.drop_db()
    db.init_db()
    yield


@pytest.fixture
def session():
    session = db.SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def article(session) -> Article:
    return db.save_or_raise(session, Article(
        title='Z Article',
        doi='http://dx.doi.org/10.6084/m9.figshare.949676',
        publication_date=utcnow() - timedelta(days=3),
        abstract='hello world',
    ))


@pytest.fixture
def study(session, article) -> Study:
    return db.create(session, Study, article_id=article.id)


@pytest.fixture
def replicating_study(session, article) -> Study:
    return db.create(session, Study, article_id=article.id)

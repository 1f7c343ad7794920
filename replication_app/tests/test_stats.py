"""Tests for the aggregate statistics report."""

from __future__ import annotations

from datetime import timedelta

from replication_app.backend import database as db
from replication_app.backend.models import REPORTED_MODELS, Article, Author, Invite, Study, User, utcnow
from replication_app.backend.stats import get_db_stats, get_stats, stats_to_frame


def test_empty_database_reports_zero_counts(session) -> None:
    stats = get_db_stats(session)
    assert set(stats) == {'articles', 'authors', 'invites', 'links', 'replications', 'studies', 'users'}
    for entry in stats.values():
        assert entry == {'total': 0, 'last_day': {'created': 0, 'updated': 0}}


def test_last_day_counts_use_timestamps(session) -> None:
    now = utcnow()
    old = now - timedelta(days=3)
    db.save_or_raise(session, Article(title='Fresh'))
    db.save_or_raise(session, Article(title='Old', created_at=old, updated_at=old))
    db.save_or_raise(session, Article(title='Touched', created_at=old, updated_at=now - timedelta(hours=2)))

    stats = get_stats(session, Article, now=now)
    assert stats == {'total': 3, 'last_day': {'created': 1, 'updated': 2}}


def test_window_boundary_is_exclusive(session) -> None:
    now = utcnow()
    edge = now - timedelta(days=1)
    db.save_or_raise(session, Author(last_name='Nosek', created_at=edge, updated_at=edge))

    stats = get_stats(session, Author, now=now)
    assert stats['total'] == 1
    assert stats['last_day'] == {'created': 0, 'updated': 0}


def test_report_covers_every_model(session, study, replicating_study) -> None:
    study.add_replication(replicating_study, 10)
    db.save_or_raise(session, User(email='admin@example.com', admin=True))
    db.save_or_raise(session, Invite(email='new@example.com'))

    stats = get_db_stats(session)
    assert stats['studies']['total'] == 2
    assert stats['replications']['total'] == 1
    assert stats['articles']['total'] == 1
    assert stats['users']['total'] == 1
    assert stats['invites']['total'] == 1
    assert stats['studies']['last_day']['created'] == 2


def test_report_can_be_limited_to_some_models(session) -> None:
    stats = get_db_stats(session, models={'studies': Study})
    assert list(stats) == ['studies']


def test_stats_to_frame_has_one_row_per_model(session) -> None:
    db.save_or_raise(session, Article(title='Fresh'))
    df = stats_to_frame(get_db_stats(session))

    assert list(df.index) == list(REPORTED_MODELS)
    assert list(df.columns) == ['total', 'created_last_day', 'updated_last_day']
    assert df.loc['articles', 'total'] == 1
    assert df.loc['studies', 'created_last_day'] == 0

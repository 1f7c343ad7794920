"""Tests for the validation helpers, date parsing, settings and error reporting."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from replication_app.backend import error_tracking
from replication_app.backend.config import get_queue_settings
from replication_app.backend.models import Article, Author, Invite, Replication, User
from replication_app.backend.parsers import parse_date
from replication_app.backend.validation import Errors, ValidationError, is_number, validate_numericality
from replication_app.frontend import main as cli


class _Record:
    def __init__(self, **values) -> None:
        self.errors = Errors()
        self.__dict__.update(values)


def test_errors_collection_accessors() -> None:
    errors = Errors()
    assert not errors
    assert errors.first() is None
    errors.add('n', 'must be greater than 0')
    errors.add('power', 'must be less than 1')

    assert errors.count == len(errors) == 2
    assert errors.first() == ValidationError('n', 'must be greater than 0')
    assert errors['power'] == ['must be less than 1']
    assert errors['missing'] == []
    assert errors.full_messages() == ['n must be greater than 0', 'power must be less than 1']
    assert errors.as_list()[0] == {'field': 'n', 'message': 'must be greater than 0'}


@pytest.mark.parametrize('value, expected', [
    (None, []),
    (5, []),
    ('7', []),
    (True, ['is not a number']),
    (float('nan'), ['is not a number']),
    (Decimal('2.5'), ['must be an integer']),
    ('2.5', ['must be an integer']),
    (-3, ['must be greater than 0']),
])
def test_numericality_rules(value, expected) -> None:
    record = _Record(n=value)
    validate_numericality(record, 'n', only_integer=True, greater_than=0)
    assert record.errors['n'] == expected


def test_other_models_validate_required_fields() -> None:
    for record, field in [
        (Article(), 'title'),
        (Author(first_name='Brian'), 'last_name'),
        (User(), 'email'),
        (Invite(), 'email'),
    ]:
        assert record.validate() is False
        assert record.errors[field] == ["can't be blank"]


def test_replication_requires_both_studies() -> None:
    replication = Replication()
    assert replication.validate() is False
    assert [error.field for error in replication.errors] == ['study_id', 'replicating_study_id']
    assert replication.closeness == 0


def test_invite_generates_a_code() -> None:
    first, second = Invite(email='a@example.com'), Invite(email='b@example.com')
    assert first.code and second.code
    assert first.code != second.code


def test_parse_date_handles_common_shapes() -> None:
    assert parse_date(None) is None
    assert parse_date('  ') is None
    assert parse_date('2014-03-02') == datetime(2014, 3, 2)
    assert parse_date('March 2014') == datetime(2014, 3, 1)
    assert parse_date('2014-03-02T10:00:00+02:00') == datetime(2014, 3, 2, 8, 0)
    assert parse_date(date(2015, 6, 1)) == datetime(2015, 6, 1)
    assert parse_date('published in 1998 (reprint)') == datetime(1998, 1, 1)


def test_parse_date_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        parse_date('unknown')


def test_queue_settings_from_environment(monkeypatch) -> None:
    monkeypatch.setenv('REDIS_URL', 'redis://:secret@queue.internal:6380/2')
    settings = get_queue_settings()
    assert (settings.host, settings.port, settings.password, settings.db) == ('queue.internal', 6380, 'secret', 2)


def test_queue_settings_defaults(monkeypatch) -> None:
    monkeypatch.delenv('REDIS_URL', raising=False)
    monkeypatch.delenv('REDISTOGO_URL', raising=False)
    settings = get_queue_settings()
    assert (settings.host, settings.port, settings.password) == ('127.0.0.1', 6379, None)


def test_capture_exception_uses_installed_reporter() -> None:
    seen = []
    error_tracking.set_reporter(seen.append)
    try:
        error = RuntimeError('boom')
        error_tracking.capture_exception(error)
    finally:
        error_tracking.set_reporter(None)
    assert seen == [error]


def test_default_reporter_logs(caplog) -> None:
    error_tracking.capture_exception(RuntimeError('boom'))
    assert 'boom' in caplog.text


def test_is_number() -> None:
    assert is_number(3) and is_number(0.5) and is_number('2.5')
    assert not is_number('not a number')
    assert not is_number(True)
    assert not is_number(float('nan'))


def test_cli_defaults_to_server(monkeypatch) -> None:
    calls = []
    monkeypatch.setitem(cli.COMMANDS, 'server', lambda: calls.append('server'))
    monkeypatch.setattr(cli.sys, 'argv', ['replication-tracker'])
    cli.main()
    assert calls == ['server']


def test_cli_rejects_unknown_command(monkeypatch, capsys) -> None:
    monkeypatch.setattr(cli.sys, 'argv', ['replication-tracker', 'deploy'])
    with pytest.raises(SystemExit) as exc_info:
        cli.main()
    assert exc_info.value.code == 1
    assert 'Unknown command: deploy' in capsys.readouterr().out

from datetime import datetime, timedelta

from portfolio_admin.session_state import (IS_ADMIN_KEY, LAST_LOGIN_KEY, UID_KEY,
                                           ElevatedSessionMarker, MarkerStore)


def test_round_trip_through_storage():
    storage = {}
    store = MarkerStore(storage)
    marker = ElevatedSessionMarker(is_admin=True, last_login_at=datetime(2026, 1, 2, 3, 4, 5),
                                   principal_uid='abc123')
    store.save(marker)
    assert storage == {IS_ADMIN_KEY: True, LAST_LOGIN_KEY: '2026-01-02T03:04:05',
                       UID_KEY: 'abc123'}
    assert store.load() == marker


def test_missing_key_reads_as_absent():
    assert MarkerStore({IS_ADMIN_KEY: True}).load() is None
    assert MarkerStore({LAST_LOGIN_KEY: '2026-01-02T03:04:05'}).load() is None
    assert MarkerStore({IS_ADMIN_KEY: True, LAST_LOGIN_KEY: '2026-01-02T03:04:05'}).load() is None


def test_string_flag_is_not_admin():
    store = MarkerStore({IS_ADMIN_KEY: 'true', LAST_LOGIN_KEY: '2026-01-02T03:04:05',
                         UID_KEY: 'abc123'})
    assert store.load().is_admin is False


def test_clear_removes_all_keys():
    storage = {IS_ADMIN_KEY: True, LAST_LOGIN_KEY: 'x', UID_KEY: 'abc123', 'other': 1}
    MarkerStore(storage).clear()
    assert storage == {'other': 1}


def test_belongs_to():
    marker = ElevatedSessionMarker(is_admin=True, last_login_at=datetime(2026, 1, 1),
                                   principal_uid='abc123')
    assert marker.belongs_to('abc123')
    assert not marker.belongs_to('other')
    assert not marker.belongs_to('')


def test_staleness():
    login = datetime(2026, 1, 1)
    marker = ElevatedSessionMarker(is_admin=True, last_login_at=login, principal_uid='abc123')
    day = timedelta(hours=24)
    assert not marker.is_stale(login + day, day)
    assert marker.is_stale(login + day + timedelta(seconds=1), day)

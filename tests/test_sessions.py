from datetime import datetime, timedelta, timezone

import pytest

from conftest import get_user
from profile_app.errors import SessionStoreError
from profile_app.sessions import SessionPayload, SessionStore, current_identity, destroy, establish


def session_token(client):
    cookie = client.get_cookie('session')
    return cookie.value if cookie else None


class TestSessionStore:

    def test_save_load_delete(self):
        store = SessionStore()
        token = store.new_token()
        store.save(token, {'user_id': 'abc'})
        assert store.load(token) == {'user_id': 'abc'}
        assert token in store
        store.delete(token)
        assert store.load(token) is None
        # deleting twice is fine
        store.delete(token)

    def test_tokens_are_unique_and_opaque(self):
        store = SessionStore()
        tokens = {store.new_token() for _ in range(100)}
        assert len(tokens) == 100
        assert all(len(t) >= 32 for t in tokens)

    def test_loaded_payload_is_a_copy(self):
        store = SessionStore()
        store.save('t', {'user_id': 'abc'})
        store.load('t')['user_id'] = 'mallory'
        assert store.load('t') == {'user_id': 'abc'}

    def test_expired_tokens_resolve_to_nothing(self):
        store = SessionStore(lifetime=timedelta(seconds=-1))
        store.save('t', {'user_id': 'abc'})
        assert store.load('t') is None
        assert len(store) == 0

    def test_save_sweeps_tokens_nobody_presents_again(self):
        now = [datetime(2026, 1, 1, tzinfo=timezone.utc)]
        store = SessionStore(lifetime=timedelta(hours=1), purge_interval=timedelta(minutes=5),
                             clock=lambda: now[0])
        for i in range(50):
            store.save(f'abandoned-{i}', {'_flashes': [('loginError', 'x')]})
        assert len(store) == 50

        now[0] += timedelta(hours=2)
        store.save('fresh', {'user_id': 'abc'})
        assert len(store) == 1
        assert store.load('fresh') == {'user_id': 'abc'}

    def test_bulk_sweep_runs_at_most_once_per_interval(self):
        now = [datetime(2026, 1, 1, tzinfo=timezone.utc)]
        store = SessionStore(lifetime=timedelta(seconds=30), purge_interval=timedelta(minutes=5),
                             clock=lambda: now[0])
        store.save('a', {})
        now[0] += timedelta(minutes=1)
        store.save('b', {})
        # a expired, but the interval has not elapsed yet
        assert len(store) == 2
        now[0] += timedelta(minutes=5)
        store.save('c', {})
        assert len(store) == 1

    def test_purge_expired(self):
        store = SessionStore(lifetime=timedelta(seconds=-1))
        store.save('a', {})
        store.save('b', {})
        store.lifetime = timedelta(hours=1)
        store.save('c', {'user_id': 'abc'})
        assert store.purge_expired() == 2
        assert len(store) == 1


def test_cookie_carries_only_an_opaque_token(app, client, auth):
    auth.register()
    user = get_user(app)
    token = session_token(client)
    assert token
    assert user['id'] not in token
    assert app.session_interface.store.load(token)['user_id'] == user['id']


def test_login_rotates_the_token(app, client, auth):
    auth.register()
    first = session_token(client)
    auth.login()
    second = session_token(client)
    assert first != second
    assert app.session_interface.store.load(first) is None
    assert app.session_interface.store.load(second)['user_id'] == get_user(app)['id']


def test_logout_invalidates_token_server_side(app, client, auth):
    auth.register()
    token = session_token(client)

    response = auth.logout()
    assert response.status_code == 302
    assert response.headers['Location'] == '/login'
    assert app.session_interface.store.load(token) is None
    assert client.get('/profile').headers['Location'] == '/login'

    # replaying the old cookie from another client does not work either
    other = app.test_client()
    other.set_cookie('session', token)
    response = other.get('/profile')
    assert response.status_code == 302
    assert response.headers['Location'] == '/login'


def test_logout_failure_redirects_to_profile(app, client, auth, monkeypatch):
    auth.register()

    def broken_delete(token):
        raise OSError('session backend unreachable')

    monkeypatch.setattr(app.session_interface.store, 'delete', broken_delete)
    response = auth.logout()
    assert response.status_code == 302
    assert response.headers['Location'] == '/profile'
    monkeypatch.undo()

    page = client.get('/profile')
    assert page.status_code == 200
    assert SessionStoreError.message.encode() in page.data


def test_logout_without_session_goes_to_login(client):
    response = client.get('/logout')
    assert response.headers['Location'] == '/login'


def test_current_identity(app):
    with app.test_request_context('/'):
        assert current_identity() is None
        establish('abc123')
        assert current_identity() == SessionPayload(user_id='abc123')


def test_abandoned_sessions_do_not_pile_up(app):
    now = [datetime(2026, 1, 1, tzinfo=timezone.utc)]
    store = SessionStore(lifetime=app.permanent_session_lifetime, clock=lambda: now[0])
    app.session_interface.store = store

    # cookie-less clients whose failed login leaves a flash behind
    for _ in range(200):
        app.test_client().post('/login', data={'username': 'bot', 'password': 'guess'})
    assert len(store) == 200

    now[0] += app.permanent_session_lifetime + timedelta(minutes=10)
    for _ in range(5):
        app.test_client().post('/login', data={'username': 'bot', 'password': 'guess'})
    assert len(store) == 5


def test_destroy_reports_store_failures(app, monkeypatch):
    def broken_delete(token):
        raise OSError('session backend unreachable')

    with app.test_request_context('/'):
        establish('abc123')
        monkeypatch.setattr(app.session_interface.store, 'delete', broken_delete)
        with pytest.raises(SessionStoreError):
            destroy()
        assert current_identity() == SessionPayload(user_id='abc123')

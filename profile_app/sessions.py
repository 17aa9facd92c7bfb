"""Server-side sessions.

The cookie only carries an opaque token; everything else (the authenticated
user's id and pending flash messages) lives in a ``SessionStore`` owned by
the application. Logging out removes the token from the store, so a copied
cookie is useless afterwards.
"""
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Optional

from flask import current_app, redirect, session, url_for
from flask.sessions import SessionInterface, SessionMixin
from werkzeug.datastructures import CallbackDict

from .errors import SessionStoreError

USER_ID_KEY = 'user_id'


@dataclass(frozen=True)
class SessionPayload:
    user_id: str


class SessionStore:
    """Process-local token -> payload mapping with per-token expiry.

    Expired records are dropped when their token is looked up and, at most
    once per ``purge_interval``, swept in bulk on save. Tokens nobody
    presents again are therefore still reclaimed.
    """

    def __init__(self, lifetime=timedelta(days=1), purge_interval=timedelta(minutes=5),
                 clock=None):
        self.lifetime = lifetime
        self.purge_interval = purge_interval
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._records = {}
        self._lock = threading.Lock()
        self._last_purge = self._clock()

    def new_token(self) -> str:
        return secrets.token_urlsafe(32)

    def load(self, token) -> Optional[dict]:
        now = self._clock()
        with self._lock:
            record = self._records.get(token)
            if record is None:
                return None
            expires, data = record
            if expires <= now:
                del self._records[token]
                return None
            return dict(data)

    def save(self, token, data):
        now = self._clock()
        with self._lock:
            self._records[token] = (now + self.lifetime, dict(data))
            if now - self._last_purge >= self.purge_interval:
                self._purge(now)

    def delete(self, token):
        with self._lock:
            self._records.pop(token, None)

    def _purge(self, now):
        stale = [t for t, (expires, _) in self._records.items() if expires <= now]
        for t in stale:
            del self._records[t]
        self._last_purge = now
        return len(stale)

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge(self._clock())

    def __contains__(self, token):
        return self.load(token) is not None

    def __len__(self):
        with self._lock:
            return len(self._records)


class ServerSideSession(CallbackDict, SessionMixin):

    def __init__(self, initial=None, sid=None, new=False):
        def on_update(self):
            self.modified = True
        super().__init__(initial, on_update)
        self.sid = sid
        self.new = new
        self.modified = False
        self.destroyed = False


class ServerSideSessionInterface(SessionInterface):

    def __init__(self, store):
        self.store = store

    def open_session(self, app, request):
        sid = request.cookies.get(self.get_cookie_name(app))
        if sid:
            data = self.store.load(sid)
            if data is not None:
                return ServerSideSession(data, sid=sid)
        return ServerSideSession(sid=self.store.new_token(), new=True)

    def save_session(self, app, session, response):
        name = self.get_cookie_name(app)
        domain = self.get_cookie_domain(app)
        path = self.get_cookie_path(app)

        if session.destroyed or not session:
            if session.destroyed or (session.modified and not session.new):
                if not session.destroyed:
                    self.store.delete(session.sid)
                response.delete_cookie(name, domain=domain, path=path)
            return

        if not self.should_set_cookie(app, session):
            return

        self.store.save(session.sid, dict(session))
        response.set_cookie(
            name,
            session.sid,
            expires=self.get_expiration_time(app, session),
            httponly=self.get_cookie_httponly(app),
            domain=domain,
            path=path,
            secure=self.get_cookie_secure(app),
            samesite=self.get_cookie_samesite(app),
        )


def _store():
    return current_app.session_interface.store


def authenticated_user_id() -> Optional[str]:
    return session.get(USER_ID_KEY) or None


def current_identity() -> Optional[SessionPayload]:
    user_id = authenticated_user_id()
    return SessionPayload(user_id=user_id) if user_id else None


def establish(user_id):
    """Bind a fresh token to ``user_id``; the old token, if any, stops working."""
    if not session.new:
        _store().delete(session.sid)
    session.sid = _store().new_token()
    session.new = True
    session.clear()
    session.permanent = True
    session[USER_ID_KEY] = user_id


def destroy():
    """Invalidate the current token server-side.

    Raises SessionStoreError if the store could not drop it; the session is
    left as it was in that case.
    """
    try:
        _store().delete(session.sid)
    except Exception as e:
        raise SessionStoreError() from e
    session.clear()
    session.destroyed = True


def login_required(view):
    """Decorator for route handlers that require an authenticated user."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        if current_identity() is None:
            return redirect(url_for('auth.login_form'))
        return view(*args, **kwargs)
    return wrapped


def forget_identity():
    """Drop a user id that no longer resolves to a user record."""
    session.pop(USER_ID_KEY, None)

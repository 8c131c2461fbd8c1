"""Session state and the guard that wraps every authenticated view."""

import functools
import logging

import bcrypt
from flask import g, redirect, request, session, url_for

from models import db, User

logger = logging.getLogger(__name__)

SIGNED_IN = 'SIGNED_IN'
SIGNED_OUT = 'SIGNED_OUT'

NAVIGATION = (
    ('Dashboard', 'dashboard'),
    ('Books', 'get_books'),
    ('Add Book', 'add_book'),
)


def hash_password(password):
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def check_password(password, hashed):
    return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))


class Subscription:
    def __init__(self, listeners, listener):
        self._listeners = listeners
        self._listener = listener

    def unsubscribe(self):
        if self._listener in self._listeners:
            self._listeners.remove(self._listener)


class SessionState:
    """Sign-in state for one client, with change listeners.

    ``store`` is the client's session mapping (Flask's ``session`` inside a
    request). Listeners are called as ``listener(event, user)`` after every
    sign-in or sign-out.
    """

    def __init__(self, store):
        self._store = store
        self._listeners = []

    def get_session(self):
        user_id = self._store.get('user_id')
        if user_id is None:
            return None
        user = db.session.get(User, user_id)
        if not user:
            logger.error(f"Session refers to missing user_id={user_id}")
            self._store.pop('user_id', None)
        return user

    def on_change(self, listener):
        self._listeners.append(listener)
        return Subscription(self._listeners, listener)

    def sign_in(self, user):
        self._store['user_id'] = user.id
        self._notify(SIGNED_IN, user)

    def sign_out(self):
        self._store.pop('user_id', None)
        self._notify(SIGNED_OUT, None)

    @property
    def listener_count(self):
        return len(self._listeners)

    def _notify(self, event, user):
        for listener in list(self._listeners):
            listener(event, user)


class Shell:
    """Guard around an authenticated view.

    Mounting reads the current session and subscribes to changes; the same
    redirect rule is applied on mount and on every change. Nothing is
    visible until a session is known.
    """

    def __init__(self, state, path, login_path):
        self.state = state
        self.path = path
        self.login_path = login_path
        self.session = None
        self.redirect_to = None
        self._subscription = None

    @property
    def visible(self):
        return self.session is not None

    def mount(self):
        self._subscription = self.state.on_change(self._on_change)
        self._apply(self.state.get_session())
        return self

    def unmount(self):
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def _on_change(self, event, user):
        logger.debug(f"Session change on {self.path}: {event}")
        self._apply(user)

    def _apply(self, user):
        self.session = user
        if user is None and self.path != self.login_path:
            self.redirect_to = self.login_path
        else:
            self.redirect_to = None

    def navigation(self, links):
        return [
            {'label': label, 'path': path, 'active': path == self.path}
            for label, path in links
        ]


def current_session_state():
    if 'session_state' not in g:
        g.session_state = SessionState(session)
    return g.session_state


def login_required(f):
    @functools.wraps(f)
    def wrapped(*args, **kwargs):
        shell = Shell(current_session_state(), request.path, url_for('auth_status')).mount()
        try:
            if shell.redirect_to:
                logger.error(f"Unauthorized access to {request.path}, redirecting to {shell.redirect_to}")
                return redirect(shell.redirect_to)
            g.shell = shell
            return f(*args, **kwargs)
        finally:
            shell.unmount()
    return wrapped


def navigation_links():
    return [(label, url_for(endpoint)) for label, endpoint in NAVIGATION]

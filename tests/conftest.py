import threading
from datetime import datetime, timedelta, timezone

import pytest
import requests

from app import create_app, db


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=None):
        self._payload = payload
        self.status_code = status_code
        self._text = text

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload

    @property
    def text(self):
        return self._text if self._text is not None else ""


class FakeSession:
    """
    Stand-in for requests.Session routing on the exact URL.
    A route may be a payload dict, a FakeResponse, an exception instance,
    or a callable taking (url, params).
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []
        self._lock = threading.Lock()

    def get(self, url, params=None, headers=None, timeout=None):
        with self._lock:
            self.calls.append((url, params, headers, timeout))
        route = self.routes.get(url)
        if callable(route) and not isinstance(route, FakeResponse):
            route = route(url, params)
        if route is None:
            return FakeResponse(status_code=404)
        if isinstance(route, Exception):
            raise route
        if isinstance(route, FakeResponse):
            return route
        return FakeResponse(route)

    def count(self, url):
        return sum(1 for call in self.calls if call[0] == url)


class Clock:
    """Settable clock for collectors and the scheduler"""

    def __init__(self, start=None):
        self.now = start or datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


def naive(value):
    """SQLite hands back timestamps without tzinfo"""
    return value.replace(tzinfo=None) if value is not None else None


@pytest.fixture
def app():
    app = create_app({'DATABASE_URL': 'sqlite://', 'TESTING': True})
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def clock():
    return Clock()

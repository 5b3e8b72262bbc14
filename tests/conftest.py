"""Shared fixtures: an in-memory stand-in for requests.Session."""

import threading

import pytest
import requests


def make_response(status_code: int) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    return response


class FakeSession:
    """Records every POST and answers from a script of outcomes.

    Each outcome is an int (HTTP status) or an exception instance to raise.
    Once the script runs out, ``default`` is used.
    """

    def __init__(self, outcomes=None, default=200):
        self.headers = {}
        self.calls = []
        self.closed = False
        self._outcomes = list(outcomes or [])
        self._default = default
        self._lock = threading.Lock()

    def post(self, url, data=None, timeout=None):
        with self._lock:
            self.calls.append({"url": url, "data": data, "timeout": timeout})
            outcome = self._outcomes.pop(0) if self._outcomes else self._default
        if isinstance(outcome, BaseException):
            raise outcome
        return make_response(outcome)

    def close(self):
        self.closed = True

    @property
    def bodies(self):
        with self._lock:
            return [c["data"] for c in self.calls]


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def make_session():
    """Factory for sessions with scripted outcomes."""
    return FakeSession

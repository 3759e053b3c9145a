"""Shared fixtures: a fake ``requests.get`` so no test touches the network."""

from pathlib import Path

import pytest

import base_fetcher


class FakeResponse:
    """Just enough of ``requests.Response`` for streamed downloads."""

    def __init__(self, body: bytes = b"", status_code: int = 200):
        self.body = body
        self.status_code = status_code

    def iter_content(self, chunk_size=1):
        for start in range(0, len(self.body), chunk_size):
            yield self.body[start:start + chunk_size]

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False


class FakeGet:
    """Callable replacing ``requests.get``; records every requested URL."""

    def __init__(self):
        self.calls = []
        self.response = FakeResponse(b"id,amount\n1,25.50\n")
        self.error = None

    def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response

    def respond(self, body, status_code=200):
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.response = FakeResponse(body, status_code)

    def fail(self, error: Exception):
        self.error = error


@pytest.fixture
def fake_get(monkeypatch):
    fake = FakeGet()
    monkeypatch.setattr(base_fetcher.requests, "get", fake)
    return fake


@pytest.fixture
def fixture_csv_path():
    """Return path to the mini donations fixture CSV."""
    return Path(__file__).parent / "fixtures" / "mini_donations.csv"

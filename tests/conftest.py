"""Shared pytest fixtures for Code Monk client tests."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest

from codemonk.auth.credentials import MemoryCredentialStore
from codemonk.auth.mock import MockApiClient
from codemonk.auth.session import RetryPolicy

BASE_URL = "http://api.test/api"

Responder = Callable[[httpx.Request], httpx.Response]


class FakeClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it answered."""

    def __init__(self, responder: Responder) -> None:
        self.requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return responder(request)

        super().__init__(handler)

    def bodies(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) if r.content else {} for r in self.requests]

    def paths(self) -> list[str]:
        return [r.url.path.removeprefix("/api") for r in self.requests]


def user_payload(**overrides: Any) -> dict[str, Any]:
    """Wire-format user object as the backend sends it."""
    user = {
        "id": 7,
        "fullName": "Asha Rao",
        "email": "asha@example.com",
        "usn": "NU25MCA042",
        "phone": "9876543210",
        "whatsappNumber": None,
        "role": "student",
    }
    user.update(overrides)
    return user


@pytest.fixture
def credentials() -> MemoryCredentialStore:
    return MemoryCredentialStore()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_api(credentials: MemoryCredentialStore, fake_clock: FakeClock) -> MockApiClient:
    """In-memory backend sharing the test's credential store and clock."""
    return MockApiClient(credentials, clock=fake_clock)


@pytest.fixture
def no_wait() -> RetryPolicy:
    """One retry, no pause."""
    return RetryPolicy(max_attempts=2, delay=0)


@pytest.fixture
def clean_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Drop every codemonk env var and reset cached settings and clients."""
    import os

    from codemonk.auth.factory import clear_config_cache

    for key in list(os.environ):
        if key.startswith(("API__", "SESSION__", "REGISTRATION__", "APP__", "DEV__")):
            monkeypatch.delenv(key, raising=False)
    clear_config_cache()
    yield
    clear_config_cache()

from __future__ import annotations

import os
from typing import FrozenSet

import httpx
import pytest

# Hosts tests may talk to; every PostHog fake is served from http://mock
OFFLINE_ALLOWED_HOSTS: FrozenSet[str] = frozenset({"mock", "localhost", "127.0.0.1"})


@pytest.fixture(autouse=True)
def _isolated_posthog_env(monkeypatch: pytest.MonkeyPatch):
    """Keep POSTHOG_* variables of the developer's shell out of the tests."""
    for key in list(os.environ):
        if key.startswith("POSTHOG_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def _offline_posthog_guard(monkeypatch: pytest.MonkeyPatch):
    """Fail any request that would leave the machine, e.g. to app.posthog.com."""
    orig_send = httpx.Client.send

    def offline_send(self: httpx.Client, request: httpx.Request, *args, **kwargs) -> httpx.Response:
        if request.url.host in OFFLINE_ALLOWED_HOSTS:
            return orig_send(self, request, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by offline guard: {request.method} {request.url}")

    monkeypatch.setattr(httpx.Client, "send", offline_send, raising=True)

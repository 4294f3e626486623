"""Shared pytest fixtures for the upload pipeline tests.

Provides a scriptable fake application server + object store served over
``httpx.MockTransport``, candidate-file factories, and zero-delay retry
policies so nothing in the suite actually sleeps.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx
import pytest

from directdrop.models import CandidateFile
from directdrop.upload.client import UploadApiClient
from directdrop.upload.retry import RetryPolicy
from directdrop.upload.storage import DirectUploader

BASE_URL = "https://app.test"
STORAGE_HOST = "https://storage.test"


@dataclass
class FakeServer:
    """Fake application server and object store.

    * ``presign_response`` / ``finalize_response``: ``(status, body)`` or a
      callable taking the decoded request JSON and returning one.
    * ``put_statuses``: per-URL list of statuses consumed one per attempt
      (default 200 once the list is exhausted).  ``"error"`` raises a
      transport error instead.
    * ``put_delay``: seconds each PUT takes, to make workers overlap.
    """

    presign_response: Any = (200, {"success": True, "targets": [], "skipped": []})
    finalize_response: Any = (200, {})
    put_statuses: dict[str, list[Any]] = field(default_factory=dict)
    put_delay: float = 0.0

    presign_requests: list[dict] = field(default_factory=list)
    finalize_requests: list[dict] = field(default_factory=list)
    put_requests: list[httpx.Request] = field(default_factory=list)
    auth_headers: list[str | None] = field(default_factory=list)
    in_flight: int = 0
    max_in_flight: int = 0

    def _respond(self, reply: Any, payload: dict) -> httpx.Response:
        if callable(reply):
            reply = reply(payload)
        status, body = reply
        return httpx.Response(status, json=body)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "PUT":
            return await self._handle_put(request)

        payload = json.loads(request.content or b"{}")
        self.auth_headers.append(request.headers.get("Authorization"))
        if request.url.path.endswith("/presign"):
            self.presign_requests.append(payload)
            return self._respond(self.presign_response, payload)
        if request.url.path.endswith("/finalize"):
            self.finalize_requests.append(payload)
            return self._respond(self.finalize_response, payload)
        return httpx.Response(404, json={"error": "not found"})

    async def _handle_put(self, request: httpx.Request) -> httpx.Response:
        self.put_requests.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.put_delay:
                await asyncio.sleep(self.put_delay)
            else:
                await asyncio.sleep(0)
            script = self.put_statuses.get(str(request.url))
            status = script.pop(0) if script else 200
            if status == "error":
                raise httpx.ConnectError("connection reset", request=request)
            return httpx.Response(status)
        finally:
            self.in_flight -= 1

    def puts_to(self, url: str) -> list[httpx.Request]:
        return [r for r in self.put_requests if str(r.url) == url]


def put_url(name: str) -> str:
    return f"{STORAGE_HOST}/put/{name}"


def target(
    name: str,
    *,
    final: str | None = None,
    key: str | None = None,
    url: str | None = None,
    kind: str | None = None,
    overwrote: bool = False,
) -> dict[str, Any]:
    """Build a canonical presign target dict."""
    item: dict[str, Any] = {
        "originalName": name,
        "finalFilename": final or name,
        "uploadKey": key or f"uploads/{final or name}",
        "url": url or put_url(final or name),
        "overwrote": overwrote,
    }
    if kind is not None:
        item["kind"] = kind
    return item


@pytest.fixture
def fake_server() -> FakeServer:
    return FakeServer()


@pytest.fixture
async def http(fake_server: FakeServer):
    transport = httpx.MockTransport(fake_server.handler)
    async with httpx.AsyncClient(transport=transport) as client:
        yield client


@pytest.fixture
def no_wait_policy() -> RetryPolicy:
    """Two retries with zero backoff and zero jitter."""
    return RetryPolicy(retries=2, base_delay=0.0, jitter=0.0)


@pytest.fixture
def api(http: httpx.AsyncClient, no_wait_policy: RetryPolicy) -> UploadApiClient:
    return UploadApiClient(http, BASE_URL, lambda: "test-token", no_wait_policy)


@pytest.fixture
def uploader(http: httpx.AsyncClient, no_wait_policy: RetryPolicy) -> DirectUploader:
    return DirectUploader(http, no_wait_policy)


@pytest.fixture
def make_candidate() -> Callable[..., CandidateFile]:
    """Factory for in-memory candidates; payload defaults to the name."""

    def _make(name: str, payload: bytes | None = None, declared_type: str = "") -> CandidateFile:
        data = payload if payload is not None else name.encode()
        return CandidateFile.from_bytes(name, data, declared_type)

    return _make

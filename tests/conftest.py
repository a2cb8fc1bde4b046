"""Shared fakes and fixtures for the test suite."""

from __future__ import annotations

import json
import threading
from collections.abc import Mapping
from typing import Any

import pytest


class FakeResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(
        self,
        status_code: int = 200,
        payload: object = None,
        *,
        text: str | None = None,
        reason: str = "OK",
    ) -> None:
        """Store the canned status and body."""
        self.status_code = status_code
        self.reason = reason
        self._text = text if text is not None else json.dumps(payload)

    def json(self) -> Any:
        """Decode the canned body the way ``requests`` does."""
        return json.loads(self._text)


class FakeHttpSession:
    """Record GET calls and answer them from a URL keyed table."""

    def __init__(self, responses: Mapping[str, FakeResponse | Exception] | None = None) -> None:
        """Serve *responses*; unknown URLs answer 404."""
        self.responses = dict(responses or {})
        self.calls: list[tuple[str, dict[str, str], float | None]] = []
        self._lock = threading.Lock()

    def get(self, url: str, *, headers: dict[str, str], timeout: float | None = None) -> FakeResponse:
        """Return the canned response for *url*."""
        with self._lock:
            self.calls.append((url, dict(headers), timeout))
        outcome = self.responses.get(url)
        if outcome is None:
            return FakeResponse(404, {"description": "not found"}, reason="Not Found")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    @property
    def urls(self) -> list[str]:
        """Return the requested URLs in call order."""
        return [url for url, _, _ in self.calls]


@pytest.fixture
def http_session() -> FakeHttpSession:
    """Return an empty fake HTTP session."""
    return FakeHttpSession()


def entity_response(**entity: object) -> FakeResponse:
    """Return a 200 response wrapping *entity*."""
    return FakeResponse(200, {"metadata": {"guid": "ignored"}, "entity": entity})


def listing_payload(*entities: Mapping[str, object], **envelope: object) -> str:
    """Return a service instance listing body for *entities*."""
    payload: dict[str, object] = {
        "total_results": len(entities),
        "total_pages": 1,
        "prev_url": None,
        "next_url": None,
        "resources": [{"metadata": {"guid": f"si-{i}"}, "entity": dict(e)}
                      for i, e in enumerate(entities)],
    }
    payload.update(envelope)
    return json.dumps(payload, indent=2)

"""HTTP client for single platform resources (services and service plans)."""
from __future__ import annotations

import logging
from collections.abc import Mapping

import requests
from requests.adapters import HTTPAdapter

from .models import LookupKind

LOGGER = logging.getLogger(__name__)


class ApiError(RuntimeError):
    """Raised when a platform resource cannot be fetched or decoded."""


def build_http_session(pool_size: int) -> requests.Session:
    """Return a session keeping up to *pool_size* connections per host alive."""
    session = requests.Session()
    adapter = HTTPAdapter(pool_maxsize=max(pool_size, 1))
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class ResourceClient:
    """Fetch catalog resources with the operator's bearer token.

    Requests are issued once; there is no retry and no caching. ``timeout`` is
    handed to ``requests`` unchanged, so ``None`` waits indefinitely.
    """

    def __init__(
        self,
        endpoint: str,
        token: str,
        *,
        api_version: str = "v2",
        session: requests.Session | None = None,
        timeout: float | None = None,
    ) -> None:
        """Bind the client to an API *endpoint* and access *token*."""
        self.endpoint = endpoint.rstrip("/")
        self.api_version = api_version.strip("/")
        self._token = token
        self._session = session or requests.Session()
        self._timeout = timeout

    def resource_url(self, kind: LookupKind, guid: str) -> str:
        """Return the URL of the *kind* resource identified by *guid*."""
        return f"{self.endpoint}/{self.api_version}/{kind.collection}/{guid}"

    def lookup_name(self, kind: LookupKind, guid: str) -> str:
        """Return the display name of the *kind* resource *guid*."""
        LOGGER.debug("Getting metadata for %s with GUID %s", kind.label, guid)
        name = self.fetch_name(self.resource_url(kind, guid))
        LOGGER.debug("Received metadata for %s with GUID %s", kind.label, guid)
        return name

    def fetch_name(self, url: str) -> str:
        """GET *url* and return the entity's label, else its name, else ``""``."""
        LOGGER.debug("Making request to %s", url)
        try:
            response = self._session.get(
                url,
                headers={"Authorization": self._token},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise ApiError(f"Request to {url} failed: {exc}") from exc

        if response.status_code != 200:
            status = f"{response.status_code} {response.reason or ''}".strip()
            LOGGER.debug("ERROR response from %s [%s]", url, status)
            raise ApiError(f"Response returned error {status}")
        LOGGER.debug("OK response from %s", url)

        try:
            payload = response.json()
        except ValueError as exc:
            raise ApiError(f"Invalid JSON in response from {url}: {exc}") from exc
        if not isinstance(payload, Mapping):
            raise ApiError(f"Unexpected response from {url}: expected a JSON object.")

        entity = payload.get("entity")
        if not isinstance(entity, Mapping):
            LOGGER.debug("Entity not found in response from %s", url)
            raise ApiError("Entity not found")

        label = entity.get("label")
        if label is not None:
            LOGGER.debug("Label '%s' found in response from %s", label, url)
            return str(label)
        name = entity.get("name")
        if name is not None:
            LOGGER.debug("Name '%s' found in response from %s", name, url)
            return str(name)
        LOGGER.debug("Neither name nor label found in response from %s", url)
        return ""


__all__ = ["ApiError", "ResourceClient", "build_http_session"]

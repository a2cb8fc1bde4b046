"""Fetch the service instances of a space and join in resolved names."""
from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from typing import Protocol

from .models import InstanceListing, InstanceRecord, RawInstance, Resolution

LOGGER = logging.getLogger(__name__)


class ListingError(RuntimeError):
    """Raised when the service instance listing cannot be decoded."""


class PlatformError(ListingError):
    """Raised when the platform answered the listing call with an error envelope."""


class CurlSession(Protocol):
    """Anything able to issue a raw authenticated API call."""

    def curl(self, path: str) -> list[str]:
        """Return the response body lines for *path*."""
        ...


def parse_instance_listing(text: str) -> InstanceListing:
    """Decode a service instance listing envelope."""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ListingError(f"invalid JSON: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise ListingError("expected a JSON object at the top level.")

    if "error_code" in payload:
        code = payload.get("error_code")
        description = payload.get("description") or "no description"
        raise PlatformError(f"{code}: {description}")

    resources = payload.get("resources")
    if not isinstance(resources, list):
        raise ListingError("response does not contain a resources list.")

    instances: list[RawInstance] = []
    for resource in resources:
        if not isinstance(resource, Mapping):
            continue
        entity = resource.get("entity")
        if not isinstance(entity, Mapping):
            continue
        instances.append(RawInstance.from_entity(entity))

    next_url = payload.get("next_url")
    return InstanceListing(
        instances=instances,
        total_results=_as_int(payload.get("total_results"), default=len(instances)),
        total_pages=_as_int(payload.get("total_pages"), default=1),
        next_url=str(next_url) if next_url else None,
    )


class InstanceLister:
    """List the service instances provisioned in a space."""

    def __init__(
        self,
        session: CurlSession,
        *,
        api_version: str = "v2",
        results_per_page: int = 99,
    ) -> None:
        """Use *session* for the single listing call."""
        self._session = session
        self.api_version = api_version.strip("/")
        self.results_per_page = results_per_page

    def listing_path(self, space_guid: str) -> str:
        """Return the API path listing the instances of *space_guid*."""
        return (
            f"/{self.api_version}/service_instances"
            f"?q=space_guid:{space_guid}&results-per-page={self.results_per_page}"
        )

    def fetch_lines(self, space_guid: str) -> list[str]:
        """Return the raw listing response lines; transport errors propagate."""
        LOGGER.debug("Getting service instances")
        return self._session.curl(self.listing_path(space_guid))

    def list_instances(self, space_guid: str) -> InstanceListing:
        """Fetch and decode the instance listing for *space_guid*."""
        return self.decode(self.fetch_lines(space_guid))

    def decode(self, lines: Sequence[str]) -> InstanceListing:
        """Decode listing response *lines* and warn when results were truncated."""
        listing = parse_instance_listing("".join(lines))
        if listing.truncated:
            LOGGER.warning(
                "Showing the first %d of %d service instances.",
                len(listing.instances),
                listing.total_results,
            )
        return listing


def build_records(
    instances: Sequence[RawInstance],
    resolution: Resolution,
) -> list[InstanceRecord]:
    """Join resolved names into records for every complete instance."""
    records: list[InstanceRecord] = []
    for instance in instances:
        name = instance.name
        service_guid = instance.service_guid
        plan_guid = instance.service_plan_guid
        if name is None or service_guid is None or plan_guid is None:
            continue
        records.append(
            InstanceRecord(
                name=name,
                service=resolution.service_name(service_guid),
                plan=resolution.plan_name(plan_guid),
            )
        )
    return records


def _as_int(value: object, *, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    return default


__all__ = [
    "CurlSession",
    "InstanceLister",
    "ListingError",
    "PlatformError",
    "build_records",
    "parse_instance_listing",
]

"""Tests for the service instance listing and record joining."""
from __future__ import annotations

import json
import logging

import pytest
from conftest import listing_payload

from space_services.lister import (
    InstanceLister,
    ListingError,
    PlatformError,
    build_records,
    parse_instance_listing,
)
from space_services.models import InstanceRecord, RawInstance, Resolution


class FakeCurlSession:
    """Answer ``curl`` calls with canned output lines."""

    def __init__(self, body: str) -> None:
        """Serve *body* split into lines, as ``cf curl`` prints it."""
        self.lines = body.splitlines()
        self.paths: list[str] = []

    def curl(self, path: str) -> list[str]:
        """Record *path* and return the canned lines."""
        self.paths.append(path)
        return list(self.lines)


def test_listing_path_is_scoped_to_space() -> None:
    """The listing is a single bounded page filtered by space."""
    lister = InstanceLister(FakeCurlSession("{}"))

    assert lister.listing_path("space-1") == (
        "/v2/service_instances?q=space_guid:space-1&results-per-page=99"
    )


def test_list_instances_decodes_multiline_output() -> None:
    """Output lines are joined before decoding."""
    session = FakeCurlSession(
        listing_payload(
            {"name": "db1", "service_guid": "svcA", "service_plan_guid": "planX"},
            {"name": "user-provided", "service_plan_guid": None},
        )
    )
    lister = InstanceLister(session, api_version="v2", results_per_page=50)

    listing = lister.list_instances("space-1")

    assert session.paths == ["/v2/service_instances?q=space_guid:space-1&results-per-page=50"]
    assert listing.instances == [
        RawInstance("db1", "svcA", "planX"),
        RawInstance("user-provided", None, None),
    ]
    assert listing.total_results == 2
    assert not listing.truncated


def test_resources_without_entity_are_skipped() -> None:
    """Resources lacking an entity section contribute nothing."""
    body = json.dumps({"resources": [{"metadata": {"guid": "x"}}, {"entity": {"name": "a"}}]})

    listing = parse_instance_listing(body)

    assert listing.instances == [RawInstance("a", None, None)]


def test_truncated_listing_logs_warning(
    caplog: pytest.LogCaptureFixture,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """More pages than fetched are reported, not followed."""
    body = listing_payload(
        {"name": "db1", "service_guid": "s", "service_plan_guid": "p"},
        total_results=150,
        total_pages=2,
        next_url="/v2/service_instances?page=2",
    )
    session = FakeCurlSession(body)

    monkeypatch.setattr(logging.getLogger("space_services"), "propagate", True)
    caplog.set_level(logging.WARNING, logger="space_services")

    listing = InstanceLister(session).list_instances("space-1")

    assert listing.truncated
    assert len(session.paths) == 1
    assert "first 1 of 150" in caplog.text


@pytest.mark.parametrize(
    ("body", "message"),
    [
        ("not json", "invalid JSON"),
        ("[]", "JSON object"),
        ('{"total_results": 0}', "resources list"),
        ('{"error_code": "CF-InvalidAuthToken", "description": "Invalid Auth Token"}',
         "CF-InvalidAuthToken: Invalid Auth Token"),
    ],
)
def test_undecodable_listing_raises(body: str, message: str) -> None:
    """Malformed envelopes raise a listing error."""
    with pytest.raises(ListingError, match=message):
        parse_instance_listing(body)


def test_error_envelope_raises_platform_error() -> None:
    """A platform error envelope is distinguished from an undecodable body."""
    body = json.dumps({"error_code": "CF-NotAuthorized", "description": "You are not authorized"})

    with pytest.raises(PlatformError, match="CF-NotAuthorized: You are not authorized"):
        parse_instance_listing(body)


def test_build_records_drops_incomplete_instances() -> None:
    """Only instances with name, service and plan become records."""
    resolution = Resolution(
        services={"svcA": "mysql", "svcB": "redis"},
        plans={"planX": "small"},
    )
    instances = [
        RawInstance("db1", "svcA", "planX"),
        RawInstance("no-plan", "svcB", None),
        RawInstance(None, "svcA", "planX"),
        RawInstance("no-service", None, "planX"),
    ]

    records = build_records(instances, resolution)

    assert records == [InstanceRecord("db1", "mysql", "small")]


def test_build_records_defaults_unknown_names_to_blank() -> None:
    """Identifiers without a resolved entry render empty."""
    records = build_records([RawInstance("db1", "svcZ", "planZ")], Resolution())

    assert records == [InstanceRecord("db1", "", "")]

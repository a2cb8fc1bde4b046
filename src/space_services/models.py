"""Data structures shared by the listing, resolution and rendering steps."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum


class LookupKind(Enum):
    """Catalog resources whose display names are resolved per instance."""

    SERVICE = "services"
    PLAN = "service_plans"

    @property
    def collection(self) -> str:
        """Return the API collection segment for this kind."""
        return self.value

    @property
    def label(self) -> str:
        """Return a human readable label used in messages."""
        return "service" if self is LookupKind.SERVICE else "service plan"


@dataclass(slots=True, frozen=True)
class RawInstance:
    """A service instance exactly as decoded from the listing response."""

    name: str | None
    service_guid: str | None
    service_plan_guid: str | None

    @classmethod
    def from_entity(cls, entity: Mapping[str, object]) -> RawInstance:
        """Build an instance from a resource ``entity`` mapping."""
        return cls(
            name=_optional_str(entity.get("name")),
            service_guid=_optional_str(entity.get("service_guid")),
            service_plan_guid=_optional_str(entity.get("service_plan_guid")),
        )


@dataclass(slots=True)
class InstanceListing:
    """Decoded envelope of a single service instance listing page."""

    instances: list[RawInstance]
    total_results: int = 0
    total_pages: int = 0
    next_url: str | None = None

    @property
    def truncated(self) -> bool:
        """Return True when the platform holds more pages than were fetched."""
        return self.next_url is not None or self.total_pages > 1


@dataclass(slots=True, frozen=True)
class LookupFailure:
    """A name lookup that did not produce a display name."""

    kind: LookupKind
    guid: str
    message: str

    def describe(self) -> str:
        """Return a one-line description of the failure."""
        return f"Failed to get {self.kind.label} metadata for {self.guid}: {self.message}"


@dataclass(slots=True)
class Resolution:
    """Display names resolved for every unique service and plan identifier."""

    services: dict[str, str] = field(default_factory=dict)
    plans: dict[str, str] = field(default_factory=dict)
    failures: list[LookupFailure] = field(default_factory=list)
    name_width: int = 0
    service_width: int = 0
    plan_width: int = 0
    dispatched: int = 0

    def names_for(self, kind: LookupKind) -> dict[str, str]:
        """Return the identifier to name mapping for *kind*."""
        return self.services if kind is LookupKind.SERVICE else self.plans

    def service_name(self, guid: str) -> str:
        """Return the resolved service name, or an empty string."""
        return self.services.get(guid, "")

    def plan_name(self, guid: str) -> str:
        """Return the resolved plan name, or an empty string."""
        return self.plans.get(guid, "")


@dataclass(slots=True, frozen=True)
class InstanceRecord:
    """A presentation row: instance name with its resolved service and plan."""

    name: str
    service: str
    plan: str

    def sort_key(self) -> tuple[str, str, str]:
        """Return the (service, plan, name) ordering key."""
        return (self.service, self.plan, self.name)

    def to_dict(self) -> dict[str, str]:
        """Return a serialisable representation."""
        return {"name": self.name, "service": self.service, "plan": self.plan}


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    return str(value)


__all__ = [
    "InstanceListing",
    "InstanceRecord",
    "LookupFailure",
    "LookupKind",
    "RawInstance",
    "Resolution",
]

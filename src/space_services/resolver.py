"""Concurrent, deduplicated resolution of service and plan display names.

Dispatch happens in a single sequential walk over the raw instances: the first
time an identifier is seen a placeholder is reserved and exactly one lookup is
submitted to a thread pool. Lookup tasks never touch shared state; they hand
their outcome back through a future and the coordinating thread is the only
writer of the name maps and width counters. :meth:`NameResolver.resolve`
returns only once every submitted lookup has finished, successfully or not.
"""
from __future__ import annotations

import concurrent.futures
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .api_client import ApiError
from .models import LookupFailure, LookupKind, RawInstance, Resolution

LOGGER = logging.getLogger(__name__)

LookupFn = Callable[[LookupKind, str], str]


@dataclass(slots=True, frozen=True)
class _LookupOutcome:
    kind: LookupKind
    guid: str
    name: str
    error: str | None = None


def _run_lookup(lookup: LookupFn, kind: LookupKind, guid: str) -> _LookupOutcome:
    try:
        name = lookup(kind, guid)
    except ApiError as exc:
        return _LookupOutcome(kind=kind, guid=guid, name="", error=str(exc))
    return _LookupOutcome(kind=kind, guid=guid, name=name)


def worker_count(instance_count: int, max_workers: int | None = None) -> int:
    """Return the number of lookup threads used for *instance_count* instances."""
    # Two lookups per instance bounds the unique identifiers; threads are
    # only spawned as work is submitted.
    return max_workers or 2 * instance_count


class NameResolver:
    """Resolve the service and plan names referenced by service instances."""

    def __init__(self, lookup: LookupFn, *, max_workers: int | None = None) -> None:
        """Use *lookup* for each unique identifier, at most *max_workers* at once."""
        self._lookup = lookup
        self._max_workers = max_workers

    def resolve(self, instances: Sequence[RawInstance]) -> Resolution:
        """Look up every unique identifier once and wait for all lookups."""
        resolution = Resolution()
        if not instances:
            return resolution

        workers = worker_count(len(instances), self._max_workers)
        pending: dict[concurrent.futures.Future[_LookupOutcome], tuple[LookupKind, str]] = {}

        with concurrent.futures.ThreadPoolExecutor(
            max_workers=workers,
            thread_name_prefix="space-services-lookup",
        ) as executor:
            for instance in instances:
                LOGGER.debug("Processing resource %s", instance.name)
                resolution.name_width = max(resolution.name_width, len(instance.name or ""))
                for kind, guid in (
                    (LookupKind.SERVICE, instance.service_guid),
                    (LookupKind.PLAN, instance.service_plan_guid),
                ):
                    if guid is None:
                        LOGGER.debug("No %s GUID in %s", kind.label, instance.name)
                        continue
                    names = resolution.names_for(kind)
                    if guid in names:
                        continue
                    names[guid] = ""
                    future = executor.submit(_run_lookup, self._lookup, kind, guid)
                    pending[future] = (kind, guid)

            resolution.dispatched = len(pending)
            remaining = len(pending)
            LOGGER.debug("Waiting for %d requests to finish", remaining)
            for future in concurrent.futures.as_completed(pending):
                self._apply(resolution, future.result())
                remaining -= 1
                LOGGER.debug("Waiting for %d requests to finish", remaining)

        return resolution

    @staticmethod
    def _apply(resolution: Resolution, outcome: _LookupOutcome) -> None:
        if outcome.error is not None:
            failure = LookupFailure(kind=outcome.kind, guid=outcome.guid, message=outcome.error)
            resolution.failures.append(failure)
            LOGGER.warning(failure.describe())
            return
        resolution.names_for(outcome.kind)[outcome.guid] = outcome.name
        if outcome.kind is LookupKind.SERVICE:
            resolution.service_width = max(resolution.service_width, len(outcome.name))
        else:
            resolution.plan_width = max(resolution.plan_width, len(outcome.name))


__all__ = ["LookupFn", "NameResolver", "worker_count"]

"""Sorting and column-aligned rendering of service instance records."""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from rich.console import Console
from rich.text import Text

from .models import InstanceRecord, Resolution

HEADERS = ("name", "service", "plan")
CELL_SPACING = 3
HEADER_STYLE = "bold white"


@dataclass(slots=True, frozen=True)
class ColumnWidths:
    """Padded widths of the name, service and plan columns."""

    name: int
    service: int
    plan: int

    def as_tuple(self) -> tuple[int, int, int]:
        """Return the widths in column order."""
        return (self.name, self.service, self.plan)


def sort_records(records: Iterable[InstanceRecord]) -> list[InstanceRecord]:
    """Return *records* ordered by service, then plan, then instance name."""
    return sorted(records, key=InstanceRecord.sort_key)


def compute_widths(
    records: Sequence[InstanceRecord],
    *,
    spacing: int = CELL_SPACING,
    hints: Resolution | None = None,
) -> ColumnWidths:
    """Size each column to its longest value (header included) plus *spacing*."""
    name = max([len(HEADERS[0]), *(len(record.name) for record in records)])
    service = max([len(HEADERS[1]), *(len(record.service) for record in records)])
    plan = max([len(HEADERS[2]), *(len(record.plan) for record in records)])
    if hints is not None:
        name = max(name, hints.name_width)
        service = max(service, hints.service_width)
        plan = max(plan, hints.plan_width)
    return ColumnWidths(name=name + spacing, service=service + spacing, plan=plan + spacing)


def format_row(values: Sequence[str], widths: ColumnWidths) -> str:
    """Left-align each of *values* within its column width."""
    return "".join(value.ljust(width) for value, width in zip(values, widths.as_tuple()))


def format_table(records: Sequence[InstanceRecord], widths: ColumnWidths) -> list[str]:
    """Return the header line followed by one line per record."""
    lines = [format_row(HEADERS, widths)]
    lines.extend(format_row((r.name, r.service, r.plan), widths) for r in records)
    return lines


def render_table(
    console: Console,
    records: Sequence[InstanceRecord],
    *,
    spacing: int = CELL_SPACING,
    hints: Resolution | None = None,
) -> None:
    """Sort *records* and print them as an aligned table on *console*."""
    ordered = sort_records(records)
    widths = compute_widths(ordered, spacing=spacing, hints=hints)
    header, *rows = format_table(ordered, widths)
    console.print(Text(header, style=HEADER_STYLE), soft_wrap=True)
    for row in rows:
        console.print(Text(row), soft_wrap=True)


def records_payload(records: Iterable[InstanceRecord]) -> list[dict[str, str]]:
    """Return sorted records as JSON-serialisable mappings."""
    return [record.to_dict() for record in sort_records(records)]


__all__ = [
    "CELL_SPACING",
    "ColumnWidths",
    "HEADERS",
    "compute_widths",
    "format_row",
    "format_table",
    "records_payload",
    "render_table",
    "sort_records",
]

"""Filtering, sorting and pagination over a process snapshot."""

from collections.abc import Callable, Iterable
from functools import cmp_to_key
from typing import Any

from procpanel.models import ProcessRecord, QueryResult, QuerySpec

SORT_FIELDS: dict[str, Callable[[ProcessRecord], Any]] = {
    "pid": lambda r: r.pid,
    "cpu": lambda r: r.cpu_percent,
    "memory": lambda r: r.rss,
    "start_time": lambda r: r.create_time,
    "name": lambda r: r.name.lower(),
}


def matches(record: ProcessRecord, spec: QuerySpec) -> bool:
    """Check a record against every active filter in the spec."""
    if spec.status and record.status != spec.status:
        return False
    if spec.username and record.username != spec.username:
        return False
    if spec.search:
        needle = spec.search.lower()
        return (
            needle in record.name.lower()
            or needle in record.cmd_line.lower()
            or needle in str(record.pid)
        )
    return True


def sort_records(
    records: Iterable[ProcessRecord], sort_by: str = "pid", sort_dir: str = "asc"
) -> list[ProcessRecord]:
    """
    Sort records by a named key. Unknown keys sort by PID.

    Descending order negates the ascending "less than" test instead of
    reversing the result, so records with equal keys are not guaranteed to
    come out in mirrored order between the two directions.
    """
    key = SORT_FIELDS.get(sort_by, SORT_FIELDS["pid"])
    descending = sort_dir == "desc"

    def compare(a: ProcessRecord, b: ProcessRecord) -> int:
        less = key(a) < key(b)
        if descending:
            less = not less
        return -1 if less else 1

    return sorted(records, key=cmp_to_key(compare))


def paginate(items: list[ProcessRecord], page: int, limit: int) -> list[ProcessRecord]:
    """Return the 1-based page of items; pages past the end are empty."""
    total = len(items)
    start = min(max((page - 1) * limit, 0), total)
    end = min(max(start + limit, 0), total)
    return items[start:end]


def query(snapshot: Iterable[ProcessRecord], spec: QuerySpec | None = None) -> QueryResult:
    """
    Filter, sort and paginate a snapshot.

    ``total`` counts every record that passed the filters, before pagination.
    """
    spec = spec or QuerySpec()
    filtered = [record for record in snapshot if matches(record, spec)]
    ordered = sort_records(filtered, spec.sort_by, spec.sort_dir)
    return QueryResult(
        items=tuple(paginate(ordered, spec.page, spec.limit)), total=len(filtered)
    )

"""Process management operations: list, tree, detail, kill, signal."""

from __future__ import annotations

import structlog

from procpanel.collector import MetricsCollector
from procpanel.config import Config
from procpanel.control import ControlDispatcher, validate_pid
from procpanel.errors import AccessDeniedError, NotFoundError
from procpanel.models import ProcessDetail, ProcessRecord, ProcessTreeNode, QueryResult, QuerySpec
from procpanel.query import query
from procpanel.snapshot import SnapshotBuilder
from procpanel.tree import build_tree

log = structlog.get_logger()


class ProcessService:
    """
    Entry point for every process operation.

    List, tree and detail each take a fresh snapshot; nothing is cached
    between calls. Kill and signal go straight to the dispatcher.
    """

    def __init__(
        self,
        builder: SnapshotBuilder | None = None,
        dispatcher: ControlDispatcher | None = None,
    ) -> None:
        self._builder = builder or SnapshotBuilder()
        self._dispatcher = dispatcher or ControlDispatcher()

    @classmethod
    def from_config(cls, config: Config) -> "ProcessService":
        """Create a service against the live OS using config settings."""
        return cls(builder=SnapshotBuilder(MetricsCollector(), workers=config.collector.workers))

    def list(self, spec: QuerySpec | None = None) -> QueryResult:
        """Return one page of filtered, sorted processes and the filtered total."""
        return query(self._builder.build(), spec or QuerySpec())

    def tree(self) -> list[ProcessTreeNode]:
        """Return the root nodes of the process forest."""
        return build_tree(self._builder.build())

    def detail(self, pid: int) -> ProcessDetail:
        """
        Return a process with its full argv, parent record and child records.

        Raises:
            ValidationError: pid is not a positive integer.
            NotFoundError: The process doesn't exist.
            AccessDeniedError: The process can't be opened.
        """
        pid = validate_pid(pid)
        record = self._builder.build_single(pid)

        parent = None
        if record.ppid > 0 and record.ppid != record.pid:
            parent = self._collect_optional(record.ppid)

        children: list[ProcessRecord] = []
        for child_pid in record.children:
            child = self._collect_optional(child_pid)
            if child is not None:
                children.append(child)

        return ProcessDetail(
            record=record,
            command_line=record.cmdline_args,
            parent=parent,
            children_detail=tuple(children),
        )

    def kill(self, pid: int) -> None:
        """Kill a process. See ControlDispatcher.kill."""
        self._dispatcher.kill(pid)

    def signal(self, pid: int, name: str) -> None:
        """Send a named signal. See ControlDispatcher.signal."""
        self._dispatcher.signal(pid, name)

    def _collect_optional(self, pid: int) -> ProcessRecord | None:
        try:
            return self._builder.build_single(pid)
        except (NotFoundError, AccessDeniedError) as e:
            log.debug("related_process_unavailable", pid=pid, reason=type(e).__name__)
            return None

"""Snapshot construction over the live process table."""

import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor

import psutil
import structlog

from procpanel.collector import MetricsCollector
from procpanel.errors import AccessDeniedError, CollectionError, NotFoundError
from procpanel.models import ProcessRecord, Snapshot

log = structlog.get_logger()


class SnapshotBuilder:
    """
    Builds a fresh Snapshot of every visible process.

    Processes that exit or deny access between enumeration and collection are
    dropped from the snapshot; only a failure to enumerate PIDs at all fails
    the build.
    """

    def __init__(
        self,
        collector: MetricsCollector | None = None,
        list_pids: Callable[[], Iterable[int]] = psutil.pids,
        workers: int = 1,
    ) -> None:
        """
        Initialize the SnapshotBuilder.

        Args:
            collector: Per-PID collector. Default collects from the live OS.
            list_pids: Enumerates visible PIDs. Default psutil.pids.
            workers: Number of threads used to collect PIDs. 1 collects sequentially.
        """
        self._collector = collector or MetricsCollector()
        self._list_pids = list_pids
        self._workers = max(1, workers)

    @property
    def workers(self) -> int:
        """Get the number of collection threads."""
        return self._workers

    def build(self) -> Snapshot:
        """
        Enumerate all PIDs and collect a record for each.

        Raises:
            CollectionError: The PID list could not be read.
        """
        try:
            pids = list(self._list_pids())
        except (psutil.Error, OSError) as e:
            raise CollectionError(f"cannot enumerate processes: {e}") from e

        taken_at = time.time()
        if self._workers > 1 and len(pids) > 1:
            with ThreadPoolExecutor(max_workers=self._workers) as pool:
                # map() yields in submission order, so the result doesn't
                # depend on which PID finishes first
                results = list(pool.map(self._try_collect, pids))
        else:
            results = [self._try_collect(pid) for pid in pids]

        records = tuple(record for record in results if record is not None)
        log.debug("snapshot_built", pids=len(pids), records=len(records))
        return Snapshot(records=records, taken_at=taken_at)

    def build_single(self, pid: int) -> ProcessRecord:
        """
        Collect one PID.

        Raises:
            NotFoundError: The process no longer exists.
            AccessDeniedError: The process handle cannot be opened.
        """
        return self._collector.collect(pid)

    def _try_collect(self, pid: int) -> ProcessRecord | None:
        try:
            return self._collector.collect(pid)
        except (NotFoundError, AccessDeniedError) as e:
            # Process died mid-enumeration or is off limits: skip it
            log.debug("process_skipped", pid=pid, reason=type(e).__name__)
            return None

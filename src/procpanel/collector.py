"""Per-process metrics collection on top of psutil."""

import time
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

import psutil
import structlog

from procpanel.errors import AccessDeniedError, NotFoundError
from procpanel.models import UNKNOWN_NAME, Connection, NetIOCounter, OpenFile, ProcessRecord

log = structlog.get_logger()

T = TypeVar("T")

# Errors that make a single field unreadable without invalidating the process
FIELD_ERRORS = (
    psutil.Error,
    OSError,
    NotImplementedError,
    AttributeError,
    ValueError,
    IndexError,
)

START_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def compact(items: Iterable[T]) -> list[T]:
    """
    Drop consecutive duplicates, keeping the first of each run.

    Only adjacent repeats are removed; equal items separated by a different
    item are all kept.
    """
    result: list[T] = []
    for item in items:
        if not result or result[-1] != item:
            result.append(item)
    return result


def _format_addr(addr: Any) -> str:
    if not addr:
        return ""
    if isinstance(addr, str):  # AF_UNIX path
        return addr
    return f"{addr[0]}:{addr[1]}"


def _enum_name(value: Any) -> str:
    return getattr(value, "name", str(value))


class MetricsCollector:
    """
    Collects a normalized ProcessRecord for a single PID.

    Only opening the process handle can fail the whole collection. Every
    other field group is fetched on its own; a failure leaves that group at
    its zero value and records the group name in ``ProcessRecord.unavailable``.
    """

    def __init__(
        self,
        process_factory: Callable[[int], Any] = psutil.Process,
        proc_root: Path = Path("/proc"),
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the MetricsCollector.

        Args:
            process_factory: Opens a process handle for a PID. Default psutil.Process.
            proc_root: Mount point of procfs, used for fields psutil doesn't expose.
            clock: Returns the current epoch time, used for lifetime CPU percent.
        """
        self._process_factory = process_factory
        self._proc_root = proc_root
        self._clock = clock

    def open(self, pid: int) -> Any:
        """Open a process handle, translating psutil errors."""
        try:
            return self._process_factory(pid)
        except psutil.NoSuchProcess as e:
            raise NotFoundError(pid) from e
        except psutil.AccessDenied as e:
            raise AccessDeniedError(pid, "open") from e

    def collect(self, pid: int) -> ProcessRecord:
        """
        Collect every available field for one PID.

        Raises:
            NotFoundError: The process no longer exists.
            AccessDeniedError: The process handle cannot be opened.
        """
        return self.collect_from(self.open(pid))

    def collect_from(self, proc: Any) -> ProcessRecord:
        """Collect every available field from an already opened handle."""
        pid = proc.pid
        unavailable: set[str] = set()

        def fetch(group: str, getter: Callable[[], T], default: T) -> T:
            try:
                return getter()
            except FIELD_ERRORS as e:
                log.debug("field_unavailable", pid=pid, field=group, error=type(e).__name__)
                unavailable.add(group)
                return default

        values: dict[str, Any] = {"pid": pid}

        with proc.oneshot():
            values["name"] = fetch("name", proc.name, "") or UNKNOWN_NAME
            values["username"] = fetch("username", proc.username, "") or ""
            values["ppid"] = fetch("ppid", proc.ppid, 0) or 0
            values["status"] = fetch("status", proc.status, "") or ""
            values["background"] = fetch("background", lambda: self._is_background(pid), False)

            create_time = fetch("create_time", proc.create_time, 0.0) or 0.0
            values["create_time"] = create_time
            if create_time:
                values["start_time"] = datetime.fromtimestamp(create_time).strftime(
                    START_TIME_FORMAT
                )

            values["num_threads"] = fetch("num_threads", proc.num_threads, 0) or 0

            cpu_times = fetch("cpu_times", proc.cpu_times, None)
            if cpu_times is not None:
                values["cpu_user"] = cpu_times.user
                values["cpu_system"] = cpu_times.system
            values["cpu_percent"] = self._lifetime_cpu_percent(cpu_times, create_time)
            if cpu_times is None or not create_time:
                unavailable.add("cpu_percent")

            mem = fetch("memory_info", proc.memory_info, None)
            if mem is not None:
                values["rss"] = mem.rss
                values["vms"] = mem.vms
                values["data"] = getattr(mem, "data", 0)
            values.update(fetch("memory_status", lambda: self._read_memory_status(pid), {}))
            values["memory_percent"] = fetch("memory_percent", proc.memory_percent, 0.0) or 0.0

            io = fetch("io_counters", proc.io_counters, None)
            if io is not None:
                values["disk_read"] = io.read_bytes
                values["disk_write"] = io.write_bytes

            values["exe"] = fetch("exe", proc.exe, "") or ""
            values["cwd"] = fetch("cwd", proc.cwd, "") or ""
            values["terminal"] = fetch("terminal", proc.terminal, "") or ""
            values["nice"] = fetch("nice", proc.nice, 0) or 0

            args = fetch("cmdline", proc.cmdline, []) or []
            values["cmdline_args"] = tuple(args)
            values["cmd_line"] = " ".join(args)

            values["envs"] = tuple(compact(fetch("environ", lambda: self._read_environ(pid), [])))

            files = fetch("open_files", proc.open_files, []) or []
            values["open_files"] = tuple(compact(OpenFile(path=f.path, fd=f.fd) for f in files))

            values["connections"] = tuple(
                Connection(
                    fd=conn.fd,
                    family=_enum_name(conn.family),
                    type=_enum_name(conn.type),
                    laddr=_format_addr(conn.laddr),
                    raddr=_format_addr(conn.raddr),
                    status=conn.status or "",
                )
                for conn in fetch("connections", lambda: proc.net_connections(kind="all"), [])
            )
            values["nets"] = fetch("nets", lambda: self._read_net_io(pid), ())

            values["thread_ids"] = tuple(
                thread.id for thread in fetch("threads", proc.threads, [])
            )
            values["gids"] = tuple(fetch("gids", proc.gids, ()))
            values["uids"] = tuple(fetch("uids", proc.uids, ()))
            values["num_fds"] = fetch("num_fds", proc.num_fds, 0) or 0
            values["children"] = tuple(child.pid for child in fetch("children", proc.children, []))

        values["unavailable"] = frozenset(unavailable)
        return ProcessRecord(**values)

    def _lifetime_cpu_percent(self, cpu_times: Any, create_time: float) -> float:
        """CPU usage averaged over the process lifetime, like `ps` reports it."""
        if cpu_times is None or not create_time:
            return 0.0
        elapsed = self._clock() - create_time
        if elapsed <= 0:
            return 0.0
        return 100.0 * (cpu_times.user + cpu_times.system) / elapsed

    def _is_background(self, pid: int) -> bool:
        """A process is in the background unless its group owns its terminal."""
        stat = (self._proc_root / str(pid) / "stat").read_text()
        # The comm field may contain spaces and parentheses
        fields = stat[stat.rfind(")") + 2 :].split()
        pgrp, tpgid = int(fields[2]), int(fields[5])
        return pgrp != tpgid

    def _read_memory_status(self, pid: int) -> dict[str, int]:
        """Read memory segments psutil doesn't expose from /proc/<pid>/status."""
        keys = {"VmHWM": "hwm", "VmStk": "stack", "VmLck": "locked", "VmSwap": "swap"}
        result: dict[str, int] = {}
        for line in (self._proc_root / str(pid) / "status").read_text().splitlines():
            label, _, rest = line.partition(":")
            if label in keys:
                # Values are reported in kB
                result[keys[label]] = int(rest.split()[0]) * 1024
        return result

    def _read_environ(self, pid: int) -> list[str]:
        """Raw KEY=VALUE entries in the order the process was started with."""
        data = (self._proc_root / str(pid) / "environ").read_bytes()
        # psutil.Process.environ() folds repeated keys into a dict
        return [entry.decode(errors="replace") for entry in data.split(b"\0") if entry]

    def _read_net_io(self, pid: int) -> tuple[NetIOCounter, ...]:
        """Sum the interface counters of the process's network namespace."""
        lines = (self._proc_root / str(pid) / "net" / "dev").read_text().splitlines()
        bytes_recv = packets_recv = bytes_sent = packets_sent = 0
        # First two lines are headers
        for line in lines[2:]:
            _, _, counters = line.partition(":")
            parts = counters.split()
            if len(parts) < 10:
                continue
            bytes_recv += int(parts[0])
            packets_recv += int(parts[1])
            bytes_sent += int(parts[8])
            packets_sent += int(parts[9])
        return (
            NetIOCounter(
                name="all",
                bytes_sent=bytes_sent,
                bytes_recv=bytes_recv,
                packets_sent=packets_sent,
                packets_recv=packets_recv,
            ),
        )

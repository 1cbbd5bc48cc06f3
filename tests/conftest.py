"""Shared test fixtures for procpanel."""

import contextlib
from pathlib import Path
from types import SimpleNamespace

import psutil
import pytest

from procpanel.collector import MetricsCollector
from procpanel.control import ControlDispatcher
from procpanel.models import ProcessRecord
from procpanel.snapshot import SnapshotBuilder

CREATE_TIME = 1_700_000_000.0


class FakeProcess:
    """Stand-in for psutil.Process with per-method failure injection."""

    def __init__(
        self,
        pid: int,
        ppid: int = 1,
        name: str = "proc",
        username: str = "user",
        status: str = "sleeping",
        cmdline: list[str] | None = None,
        create_time: float = CREATE_TIME,
        rss: int = 4096,
        cpu_user: float = 1.0,
        cpu_system: float = 1.0,
        open_files: list[tuple[str, int]] | None = None,
        children: list[int] | None = None,
        fail: set[str] | None = None,
        table: "FakeProcessTable | None" = None,
    ) -> None:
        self.pid = pid
        self._ppid = ppid
        self._name = name
        self._username = username
        self._status = status
        self._cmdline = cmdline if cmdline is not None else [f"/usr/bin/{name}"]
        self._create_time = create_time
        self._rss = rss
        self._cpu = (cpu_user, cpu_system)
        self._open_files = open_files or []
        self._children = children or []
        self.fail = fail or set()
        self.table = table
        self.signals: list[int] = []
        self.killed = False

    def _get(self, method: str, value):
        if method in self.fail:
            raise psutil.AccessDenied(self.pid)
        return value

    def oneshot(self):
        return contextlib.nullcontext()

    def name(self):
        return self._get("name", self._name)

    def username(self):
        return self._get("username", self._username)

    def ppid(self):
        return self._get("ppid", self._ppid)

    def status(self):
        return self._get("status", self._status)

    def create_time(self):
        return self._get("create_time", self._create_time)

    def num_threads(self):
        return self._get("num_threads", 3)

    def cpu_times(self):
        return self._get("cpu_times", SimpleNamespace(user=self._cpu[0], system=self._cpu[1]))

    def memory_info(self):
        return self._get("memory_info", SimpleNamespace(rss=self._rss, vms=self._rss * 4, data=512))

    def memory_percent(self):
        return self._get("memory_percent", 1.5)

    def io_counters(self):
        return self._get("io_counters", SimpleNamespace(read_bytes=100, write_bytes=200))

    def exe(self):
        return self._get("exe", f"/usr/bin/{self._name}")

    def cwd(self):
        return self._get("cwd", "/")

    def terminal(self):
        return self._get("terminal", None)

    def nice(self):
        return self._get("nice", 0)

    def cmdline(self):
        return self._get("cmdline", list(self._cmdline))

    def open_files(self):
        files = [SimpleNamespace(path=path, fd=fd) for path, fd in self._open_files]
        return self._get("open_files", files)

    def net_connections(self, kind="inet"):
        conn = SimpleNamespace(
            fd=7,
            family=SimpleNamespace(name="AF_INET"),
            type=SimpleNamespace(name="SOCK_STREAM"),
            laddr=("127.0.0.1", 8080),
            raddr=(),
            status="LISTEN",
        )
        return self._get("connections", [conn])

    def threads(self):
        return self._get("threads", [SimpleNamespace(id=self.pid)])

    def gids(self):
        return self._get("gids", (1000, 1000, 1000))

    def uids(self):
        return self._get("uids", (1000, 1000, 1000))

    def num_fds(self):
        return self._get("num_fds", 5)

    def children(self):
        return self._get("children", [SimpleNamespace(pid=pid) for pid in self._children])

    def kill(self):
        self._get("kill", None)
        if self.table is not None and self.pid in self.table.gone_on_delivery:
            raise psutil.NoSuchProcess(self.pid)
        self.killed = True

    def send_signal(self, sig):
        self._get("send_signal", None)
        if self.table is not None and self.pid in self.table.gone_on_delivery:
            raise psutil.NoSuchProcess(self.pid)
        self.signals.append(sig)


class FakeProcessTable:
    """A fake process table that opens FakeProcess handles by PID."""

    def __init__(self, *procs: FakeProcess) -> None:
        self.procs: dict[int, FakeProcess] = {}
        self.denied: set[int] = set()
        self.gone_on_delivery: set[int] = set()
        self.opened: list[int] = []
        for proc in procs:
            self.add(proc)

    def add(self, proc: FakeProcess) -> FakeProcess:
        proc.table = self
        self.procs[proc.pid] = proc
        return proc

    def open(self, pid: int) -> FakeProcess:
        self.opened.append(pid)
        if pid in self.denied:
            raise psutil.AccessDenied(pid)
        if pid not in self.procs:
            raise psutil.NoSuchProcess(pid)
        return self.procs[pid]

    def pids(self) -> list[int]:
        return list(self.procs)


def make_record(pid: int = 100, **overrides) -> ProcessRecord:
    """Create a ProcessRecord for testing with sensible defaults."""
    values = {
        "ppid": 1,
        "name": f"proc{pid}",
        "username": "user",
        "status": "sleeping",
        "cmd_line": f"/usr/bin/proc{pid}",
    }
    values.update(overrides)
    return ProcessRecord(pid=pid, **values)


@pytest.fixture
def proc_root(tmp_path: Path) -> Path:
    """An empty procfs root: every /proc-backed field is unavailable."""
    root = tmp_path / "proc"
    root.mkdir()
    return root


@pytest.fixture
def table() -> FakeProcessTable:
    """A small process family: init(1) -> shell(10) -> worker(20), plus a stray(30)."""
    return FakeProcessTable(
        FakeProcess(1, ppid=0, name="init", username="root", children=[10]),
        FakeProcess(10, ppid=1, name="bash", children=[20]),
        FakeProcess(20, ppid=10, name="worker", cmdline=["python", "worker.py"]),
        FakeProcess(30, ppid=999, name="stray"),
    )


@pytest.fixture
def collector(table: FakeProcessTable, proc_root: Path) -> MetricsCollector:
    """A collector over the fake table, with a fixed clock 100s after creation."""
    return MetricsCollector(
        process_factory=table.open,
        proc_root=proc_root,
        clock=lambda: CREATE_TIME + 100.0,
    )


@pytest.fixture
def builder(collector: MetricsCollector, table: FakeProcessTable) -> SnapshotBuilder:
    """A snapshot builder over the fake table."""
    return SnapshotBuilder(collector, list_pids=table.pids)


@pytest.fixture
def dispatcher(table: FakeProcessTable) -> ControlDispatcher:
    """A control dispatcher over the fake table."""
    return ControlDispatcher(process_factory=table.open)

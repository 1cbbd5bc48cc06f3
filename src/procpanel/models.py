"""Data models for procpanel."""

from dataclasses import asdict, dataclass, field
from typing import Any

UNKNOWN_NAME = "<UNKNOWN>"

SORT_KEYS = ("pid", "cpu", "memory", "start_time", "name")
SORT_DIRECTIONS = ("asc", "desc")
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20


@dataclass(slots=True, frozen=True)
class OpenFile:
    """A file held open by a process."""

    path: str
    fd: int


@dataclass(slots=True, frozen=True)
class Connection:
    """A socket owned by a process."""

    fd: int
    family: str
    type: str
    laddr: str
    raddr: str
    status: str


@dataclass(slots=True, frozen=True)
class NetIOCounter:
    """Network I/O counters as seen from a process's network namespace."""

    name: str
    bytes_sent: int
    bytes_recv: int
    packets_sent: int
    packets_recv: int


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """
    Immutable record of one process at snapshot time.

    Every field is independently optional: a field whose fetch failed keeps
    its zero value and its group name is listed in ``unavailable``.
    """

    pid: int
    ppid: int = 0
    name: str = UNKNOWN_NAME
    username: str = ""
    status: str = ""  # 'running', 'sleeping', 'zombie', etc.
    background: bool = False
    create_time: float = 0.0  # Epoch seconds
    start_time: str = ""
    num_threads: int = 0
    cpu_percent: float = 0.0  # Lifetime average, 0.0 - 100.0 * core_count
    cpu_user: float = 0.0
    cpu_system: float = 0.0
    # Memory, bytes
    rss: int = 0
    vms: int = 0
    hwm: int = 0
    data: int = 0
    stack: int = 0
    locked: int = 0
    swap: int = 0
    memory_percent: float = 0.0
    # Disk I/O, bytes
    disk_read: int = 0
    disk_write: int = 0
    exe: str = ""
    cwd: str = ""
    terminal: str = ""
    nice: int = 0
    cmd_line: str = ""
    cmdline_args: tuple[str, ...] = ()
    envs: tuple[str, ...] = ()
    open_files: tuple[OpenFile, ...] = ()
    connections: tuple[Connection, ...] = ()
    nets: tuple[NetIOCounter, ...] = ()
    thread_ids: tuple[int, ...] = ()
    gids: tuple[int, ...] = ()
    uids: tuple[int, ...] = ()
    num_fds: int = 0
    children: tuple[int, ...] = ()
    unavailable: frozenset[str] = frozenset()

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable dict."""
        data = asdict(self)
        data["unavailable"] = sorted(self.unavailable)
        for key in ("cmdline_args", "envs", "thread_ids", "gids", "uids", "children"):
            data[key] = list(data[key])
        for key in ("open_files", "connections", "nets"):
            data[key] = [dict(item) for item in data[key]]
        return data


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Point-in-time collection of process records, one per live PID."""

    records: tuple[ProcessRecord, ...]
    taken_at: float

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)

    def by_pid(self) -> dict[int, ProcessRecord]:
        """Index the records by PID."""
        return {record.pid: record for record in self.records}


def _positive_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return number if number >= 1 else default


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


@dataclass(slots=True, frozen=True)
class QuerySpec:
    """Filter, sort and pagination parameters for a process listing."""

    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    sort_by: str = "pid"
    sort_dir: str = "asc"
    status: str = ""
    username: str = ""
    search: str = ""

    def __post_init__(self) -> None:
        # Frozen: normalize in place so an invalid value can never reach a query
        sort_by = _text(self.sort_by)
        sort_dir = _text(self.sort_dir)
        object.__setattr__(self, "page", _positive_int(self.page, DEFAULT_PAGE))
        object.__setattr__(self, "limit", _positive_int(self.limit, DEFAULT_LIMIT))
        object.__setattr__(self, "sort_by", sort_by if sort_by in SORT_KEYS else "pid")
        object.__setattr__(self, "sort_dir", sort_dir if sort_dir in SORT_DIRECTIONS else "asc")
        object.__setattr__(self, "status", _text(self.status))
        object.__setattr__(self, "username", _text(self.username))
        object.__setattr__(self, "search", _text(self.search))

    @classmethod
    def from_params(
        cls,
        page: Any = None,
        limit: Any = None,
        sort_by: Any = None,
        sort_dir: Any = None,
        status: Any = None,
        username: Any = None,
        search: Any = None,
        default_limit: int = DEFAULT_LIMIT,
    ) -> "QuerySpec":
        """
        Build a QuerySpec from loosely typed caller input.

        Never raises: invalid or unknown values fall back to their defaults.
        """
        return cls(
            page=page,
            limit=_positive_int(limit, _positive_int(default_limit, DEFAULT_LIMIT)),
            sort_by=sort_by,
            sort_dir=sort_dir,
            status=status,
            username=username,
            search=search,
        )


@dataclass(slots=True, frozen=True)
class QueryResult:
    """One page of a process listing plus the post-filter total."""

    items: tuple[ProcessRecord, ...]
    total: int

    def to_dict(self) -> dict[str, Any]:
        return {"total": self.total, "items": [item.to_dict() for item in self.items]}


@dataclass(slots=True)
class ProcessTreeNode:
    """A process in the parent-child hierarchy. A node owns its children."""

    record: ProcessRecord
    children: list["ProcessTreeNode"] = field(default_factory=list)
    level: int = 0

    @property
    def pid(self) -> int:
        return self.record.pid

    @property
    def ppid(self) -> int:
        return self.record.ppid

    def to_dict(self) -> dict[str, Any]:
        data = self.record.to_dict()
        data["children"] = [child.to_dict() for child in self.children]
        data["level"] = self.level
        return data


@dataclass(slots=True, frozen=True)
class ProcessDetail:
    """A process record enriched with its parent and fully populated children."""

    record: ProcessRecord
    command_line: tuple[str, ...] = ()
    parent: ProcessRecord | None = None
    children_detail: tuple[ProcessRecord, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data = self.record.to_dict()
        data["command_line"] = list(self.command_line)
        data["parent"] = self.parent.to_dict() if self.parent is not None else None
        data["children_detail"] = [child.to_dict() for child in self.children_detail]
        return data

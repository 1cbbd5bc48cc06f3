"""procpanel - Interactive Textual dashboard."""

from dataclasses import replace
from enum import Enum

from rich.markup import escape
from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Input, Static, Tree

from procpanel.config import Config
from procpanel.errors import ProcessPanelError
from procpanel.formatting import describe_command, format_bytes, truncate
from procpanel.logging import configure
from procpanel.models import ProcessDetail, ProcessRecord, ProcessTreeNode, QueryResult, QuerySpec
from procpanel.service import ProcessService


class SortKey(Enum):
    """Sort keys for the process table, in cycling order."""

    PID = "pid"
    CPU = "cpu"
    MEMORY = "memory"
    START_TIME = "start_time"
    NAME = "name"


def format_detail(detail: ProcessDetail) -> str:
    """Render a process detail for the side panel."""
    r = detail.record
    parent = f"{detail.parent.pid} {detail.parent.name}" if detail.parent else "-"
    children = ", ".join(f"{c.pid} {c.name}" for c in detail.children_detail) or "-"
    return (
        f"[b]{escape(r.name)}[/b] ({r.pid})\n"
        f"User: {escape(r.username) or '-'}  Status: {r.status or '-'}  Nice: {r.nice}\n"
        f"Started: {r.start_time or '-'}  Threads: {r.num_threads}  FDs: {r.num_fds}\n"
        f"RSS: {format_bytes(r.rss).strip()}  VMS: {format_bytes(r.vms).strip()}  "
        f"Swap: {format_bytes(r.swap).strip()}\n"
        f"Exe: {escape(r.exe) or '-'}\n"
        f"Command: {escape(' '.join(detail.command_line)) or '-'}\n"
        f"Parent: {escape(parent)}\n"
        f"Children: {escape(children)}"
    )


class ProcessTable(Container):
    """Container for one page of the process listing."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._row_pids: list[int] = []

    @property
    def pids(self) -> list[int]:
        """PIDs of the rows currently shown, top to bottom."""
        return list(self._row_pids)

    @property
    def selected_pid(self) -> int | None:
        """PID under the cursor, if any row is shown."""
        table = self.query_one("#process-table", DataTable)
        if 0 <= table.cursor_row < len(self._row_pids):
            return self._row_pids[table.cursor_row]
        return None

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("USER", key="user", width=10)
        table.add_column("NI", key="nice", width=4)
        table.add_column("STATUS", key="status", width=9)
        table.add_column("CPU%", key="cpu", width=7)
        table.add_column("MEM%", key="mem", width=7)
        table.add_column("RES", key="rss", width=8)
        table.add_column("THR", key="threads", width=5)
        table.add_column("STARTED", key="start_time", width=20)
        table.add_column("Command", key="command")

    def show(self, records: tuple[ProcessRecord, ...]) -> None:
        """Replace the rows with a new page of records."""
        table = self.query_one("#process-table", DataTable)
        table.clear()
        self._row_pids = []
        for proc in records:
            table.add_row(
                str(proc.pid),
                escape(truncate(proc.username, 10)),
                str(proc.nice),
                escape(proc.status),
                f"{proc.cpu_percent:5.1f}",
                f"{proc.memory_percent:5.1f}",
                format_bytes(proc.rss),
                str(proc.num_threads),
                proc.start_time,
                escape(truncate(describe_command(proc), 80)),
                key=str(proc.pid),
            )
            self._row_pids.append(proc.pid)


class ProcPanelApp(App):
    """Main procpanel application.

    Every refresh takes a fresh snapshot through the service; nothing polls
    in the background.
    """

    TITLE = "procpanel"
    SUB_TITLE = "Process Manager"

    CSS = """
    Screen {
        layout: vertical;
    }

    #search {
        dock: top;
    }

    #process-tree {
        height: 1fr;
        border: solid $primary;
    }

    #detail {
        height: auto;
        max-height: 12;
        padding: 0 1;
        background: $surface;
    }

    #status-bar {
        height: 1;
        padding: 0 1;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
        ("d", "direction", "Asc/Desc"),
        ("slash", "search", "Search"),
        ("n", "next_page", "Next"),
        ("p", "prev_page", "Prev"),
        ("r", "refresh", "Refresh"),
        ("t", "toggle_tree", "Tree"),
        ("k", "kill", "Kill"),
    ]

    def __init__(self, service: ProcessService | None = None, config: Config | None = None) -> None:
        """Initialize the ProcPanelApp."""
        super().__init__()
        self._config = config or Config()
        self._service = service or ProcessService.from_config(self._config)
        self._spec = QuerySpec(limit=self._config.tui.page_size)
        self._total = 0
        self._tree_mode = False
        self._pending_kill: int | None = None

    @property
    def spec(self) -> QuerySpec:
        """The query behind the current table page."""
        return self._spec

    @property
    def tree_mode(self) -> bool:
        return self._tree_mode

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield Input(placeholder="Search name, command line or PID", id="search")
        yield ProcessTable()
        tree: Tree[int] = Tree("processes", id="process-tree")
        tree.display = False
        yield tree
        yield Static("", id="detail")
        yield Static("", id="status-bar")
        yield Footer()

    def on_mount(self) -> None:
        """Load the first page when the app is mounted."""
        self.query_one("#process-table", DataTable).focus()
        self.action_refresh()

    def load_page(self) -> None:
        """Run the current query against a fresh snapshot and show the result."""
        try:
            result = self._service.list(self._spec)
        except ProcessPanelError as e:
            self.notify(str(e), severity="error")
            return
        self._show_result(result)

    def load_tree(self) -> None:
        """Rebuild the tree view from a fresh snapshot."""
        try:
            roots = self._service.tree()
        except ProcessPanelError as e:
            self.notify(str(e), severity="error")
            return
        tree = self.query_one("#process-tree", Tree)
        tree.clear()
        tree.root.expand()
        for root in roots:
            self._add_tree_node(tree.root, root)

    def _add_tree_node(self, parent, node: ProcessTreeNode) -> None:
        label = Text(f"{node.pid} {truncate(node.record.name, 40)}")
        if node.children:
            branch = parent.add(label, data=node.pid, expand=True)
            for child in node.children:
                self._add_tree_node(branch, child)
        else:
            parent.add_leaf(label, data=node.pid)

    def _show_result(self, result: QueryResult) -> None:
        self._total = result.total
        self.query_one(ProcessTable).show(result.items)
        pages = max((result.total + self._spec.limit - 1) // self._spec.limit, 1)
        search = f"  search: {self._spec.search!r}" if self._spec.search else ""
        self.query_one("#status-bar", Static).update(
            f"{result.total} processes  page {self._spec.page}/{pages}  "
            f"sort: {self._spec.sort_by} {self._spec.sort_dir}{search}"
        )

    def _selected_pid(self) -> int | None:
        if self._tree_mode:
            node = self.query_one("#process-tree", Tree).cursor_node
            return node.data if node is not None else None
        return self.query_one(ProcessTable).selected_pid

    def show_detail(self, pid: int) -> None:
        """Fetch and display detail for one process."""
        try:
            detail = self._service.detail(pid)
        except ProcessPanelError as e:
            self.notify(str(e), severity="error")
            return
        self.query_one("#detail", Static).update(format_detail(detail))

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        """Show detail for the row under the cursor when Enter is pressed."""
        if event.row_key.value is not None:
            self.show_detail(int(event.row_key.value))

    def on_tree_node_selected(self, event: Tree.NodeSelected) -> None:
        """Show detail for the selected tree node."""
        if event.node.data is not None:
            self.show_detail(event.node.data)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Apply the search box as the free-text filter."""
        self._spec = replace(self._spec, search=event.value.strip(), page=1)
        self.load_page()
        self.query_one("#process-table", DataTable).focus()

    def action_search(self) -> None:
        """Focus the search box."""
        self.query_one("#search", Input).focus()

    def action_sort(self) -> None:
        """Cycle through sort keys."""
        keys = [key.value for key in SortKey]
        next_key = keys[(keys.index(self._spec.sort_by) + 1) % len(keys)]
        self._spec = replace(self._spec, sort_by=next_key, page=1)
        self.notify(f"Sort: {next_key.upper()}")
        self.load_page()

    def action_direction(self) -> None:
        """Flip the sort direction."""
        sort_dir = "desc" if self._spec.sort_dir == "asc" else "asc"
        self._spec = replace(self._spec, sort_dir=sort_dir)
        self.load_page()

    def action_next_page(self) -> None:
        """Go to the next page if there is one."""
        if self._spec.page * self._spec.limit < self._total:
            self._spec = replace(self._spec, page=self._spec.page + 1)
            self.load_page()

    def action_prev_page(self) -> None:
        """Go to the previous page if there is one."""
        if self._spec.page > 1:
            self._spec = replace(self._spec, page=self._spec.page - 1)
            self.load_page()

    def action_refresh(self) -> None:
        """Take a fresh snapshot for the active view."""
        self._pending_kill = None
        if self._tree_mode:
            self.load_tree()
        else:
            self.load_page()

    def action_toggle_tree(self) -> None:
        """Switch between the paginated table and the process tree."""
        self._tree_mode = not self._tree_mode
        self.query_one(ProcessTable).display = not self._tree_mode
        tree = self.query_one("#process-tree", Tree)
        tree.display = self._tree_mode
        self.action_refresh()
        if self._tree_mode:
            tree.focus()
        else:
            self.query_one("#process-table", DataTable).focus()

    def action_kill(self) -> None:
        """Kill the selected process, asking for a second press when configured."""
        pid = self._selected_pid()
        if pid is None:
            return
        if self._config.tui.confirm_kill and self._pending_kill != pid:
            self._pending_kill = pid
            self.notify(f"Press k again to kill {pid}", severity="warning")
            return
        self._pending_kill = None
        try:
            self._service.kill(pid)
        except ProcessPanelError as e:
            self.notify(str(e), severity="error")
            return
        self.notify(f"Killed {pid}")
        self.action_refresh()


def main() -> None:
    """Entry point for the procpanel dashboard."""
    config = Config.load()
    configure(config)
    app = ProcPanelApp(ProcessService.from_config(config), config)
    app.run()


if __name__ == "__main__":
    main()

"""Parent-child process hierarchy built from a flat snapshot."""

from collections import deque
from collections.abc import Iterable, Iterator

from procpanel.models import ProcessRecord, ProcessTreeNode


def build_tree(snapshot: Iterable[ProcessRecord]) -> list[ProcessTreeNode]:
    """
    Reconstruct the process forest from PPID references.

    A process is attached under its parent only when the parent is in the
    snapshot and is not the process itself; otherwise it is a root. Children
    are ordered by PID, roots are returned sorted by PID, and levels count
    the distance from the root (root = 0).
    """
    arena: dict[int, ProcessTreeNode] = {}
    for record in snapshot:
        arena[record.pid] = ProcessTreeNode(record=record)

    roots: list[ProcessTreeNode] = []
    for pid in sorted(arena):
        node = arena[pid]
        parent = arena.get(node.ppid)
        if parent is not None and node.ppid != node.pid:
            parent.children.append(node)
        else:
            roots.append(node)

    reached = _assign_levels(roots)

    # Parent cycles (A -> B -> A) are unreachable from any root; break them
    # at their lowest PID so every process still shows up exactly once.
    for pid in sorted(arena):
        if pid in reached:
            continue
        node = arena[pid]
        parent = arena[node.ppid]
        parent.children.remove(node)
        roots.append(node)
        reached |= _assign_levels([node])

    roots.sort(key=lambda n: n.pid)
    return roots


def _assign_levels(roots: list[ProcessTreeNode]) -> set[int]:
    """Breadth-first relabel of levels below each root. Returns the PIDs visited."""
    visited: set[int] = set()
    queue = deque(roots)
    for root in roots:
        root.level = 0
    while queue:
        node = queue.popleft()
        visited.add(node.pid)
        for child in node.children:
            child.level = node.level + 1
            queue.append(child)
    return visited


def iter_tree(roots: Iterable[ProcessTreeNode]) -> Iterator[ProcessTreeNode]:
    """Yield every node depth-first, parents before their children."""
    stack = list(reversed(list(roots)))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))

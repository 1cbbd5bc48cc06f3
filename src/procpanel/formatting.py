"""Shared display formatting for the CLI and TUI."""

from procpanel.models import ProcessRecord


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{size:5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def truncate(text: str, width: int) -> str:
    """Cut text to width, marking the cut with '..'."""
    return text if len(text) <= width else text[: max(width - 2, 0)] + ".."


def describe_command(record: ProcessRecord) -> str:
    """Full command line, or the process name when argv is unreadable."""
    return record.cmd_line or record.name

"""Error kinds raised by procpanel operations."""


class ProcessPanelError(Exception):
    """Base class for all procpanel errors."""


class ValidationError(ProcessPanelError):
    """Caller input is malformed or missing (bad PID, unknown signal name)."""


class NotFoundError(ProcessPanelError):
    """No live process exists for the requested PID."""

    def __init__(self, pid: int) -> None:
        super().__init__(f"process {pid} not found")
        self.pid = pid


class AccessDeniedError(ProcessPanelError):
    """The OS refused to open or signal the requested process."""

    def __init__(self, pid: int, action: str = "access") -> None:
        super().__init__(f"permission denied: cannot {action} process {pid}")
        self.pid = pid
        self.action = action


class CollectionError(ProcessPanelError):
    """The process table could not be enumerated at all."""

"""Kill and signal delivery to live processes."""

import signal
from collections.abc import Callable
from typing import Any

import psutil
import structlog

from procpanel.errors import AccessDeniedError, NotFoundError, ValidationError

log = structlog.get_logger()

# Closed set of signals callers may send
SIGNALS: dict[str, signal.Signals] = {
    "SIGTERM": signal.SIGTERM,
    "SIGKILL": signal.SIGKILL,
    "SIGINT": signal.SIGINT,
    "SIGHUP": signal.SIGHUP,
    "SIGUSR1": signal.SIGUSR1,
    "SIGUSR2": signal.SIGUSR2,
    "SIGQUIT": signal.SIGQUIT,
    "SIGSTOP": signal.SIGSTOP,
    "SIGCONT": signal.SIGCONT,
}


def validate_pid(pid: Any) -> int:
    """Return pid as an int, or raise ValidationError if it isn't a positive integer."""
    if isinstance(pid, bool) or not isinstance(pid, int) or pid <= 0:
        raise ValidationError(f"pid must be a positive integer, got {pid!r}")
    return pid


def resolve_signal(name: Any) -> signal.Signals:
    """Map a signal name to its OS signal, rejecting anything outside SIGNALS."""
    if not isinstance(name, str) or name not in SIGNALS:
        raise ValidationError(
            f"unsupported signal {name!r}; expected one of {', '.join(SIGNALS)}"
        )
    return SIGNALS[name]


class ControlDispatcher:
    """
    Delivers kill and signal requests to a single process.

    Delivery is fire-and-forget: success means the OS accepted the signal,
    not that the target has exited.
    """

    def __init__(self, process_factory: Callable[[int], Any] = psutil.Process) -> None:
        self._process_factory = process_factory

    def kill(self, pid: int) -> None:
        """
        Terminate a process immediately (SIGKILL, not a graceful stop).

        Raises:
            ValidationError: pid is not a positive integer.
            NotFoundError: No such process.
            AccessDeniedError: The OS refused delivery.
        """
        pid = validate_pid(pid)
        proc = self._open(pid)
        self._deliver(pid, "kill", proc.kill)
        log.info("process_killed", pid=pid)

    def signal(self, pid: int, name: str) -> None:
        """
        Send a named signal to a process.

        The name is checked before the process is touched, so an unknown
        signal never reaches the OS.

        Raises:
            ValidationError: Bad pid or a signal name outside SIGNALS.
            NotFoundError: No such process.
            AccessDeniedError: The OS refused delivery.
        """
        pid = validate_pid(pid)
        sig = resolve_signal(name)
        proc = self._open(pid)
        self._deliver(pid, "signal", lambda: proc.send_signal(sig))
        log.info("process_signalled", pid=pid, signal=sig.name)

    def _open(self, pid: int) -> Any:
        try:
            return self._process_factory(pid)
        except psutil.NoSuchProcess as e:
            raise NotFoundError(pid) from e
        except psutil.AccessDenied as e:
            raise AccessDeniedError(pid, "open") from e

    def _deliver(self, pid: int, action: str, send: Callable[[], None]) -> None:
        try:
            send()
        except psutil.NoSuchProcess as e:
            # Exited between open and delivery
            raise NotFoundError(pid) from e
        except psutil.AccessDenied as e:
            log.warning("signal_denied", pid=pid, action=action)
            raise AccessDeniedError(pid, action) from e

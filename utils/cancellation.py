"""
Cooperative cancellation for simulation runs.

The caller's thread cancels the token of a run; the stepping loop polls it
before every time step and stops at the next check. A kernel in flight is
never interrupted.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CancellationRequest:
    """First stop request received for a run."""
    simulation_id: str
    message: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)


class CancellationToken:
    """
    Thread-safe stop flag owned by one simulation run.

    Only the first request is kept; later ``cancel`` calls return False and
    change nothing.

    Usage
    -----
    >>> token = CancellationToken("a1b2c3d4")
    >>> # In the stepping loop:
    >>> token.raise_if_cancelled(step)
    >>> # From the caller:
    >>> token.cancel("operator stop")
    """

    def __init__(self, simulation_id: str):
        self.simulation_id = simulation_id
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._request: Optional[CancellationRequest] = None

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def request(self) -> Optional[CancellationRequest]:
        return self._request

    def cancel(self, message: Optional[str] = None) -> bool:
        """
        Request cancellation.

        Args:
            message: Human-readable reason, kept on the request

        Returns:
            True if this call recorded the request
        """
        with self._lock:
            if self._cancelled.is_set():
                return False
            self._request = CancellationRequest(self.simulation_id, message)
            self._cancelled.set()

        logger.info(
            f"Cancellation requested for simulation {self.simulation_id}: "
            f"{message or 'No message'}"
        )
        return True

    def raise_if_cancelled(self, step: Optional[int] = None) -> None:
        """Raise CancellationError if cancelled; ``step`` is the step about to run."""
        if self._cancelled.is_set():
            raise CancellationError(self._request, step)


class CancellationError(Exception):
    """Raised inside a run once its token is cancelled."""

    def __init__(self, request: Optional[CancellationRequest] = None,
                 step: Optional[int] = None):
        self.request = request
        self.step = step

        message = "Simulation cancelled"
        if request is not None:
            message = f"Simulation {request.simulation_id} cancelled"
        if step is not None:
            message += f" before step {step}"
        if request is not None and request.message:
            message += f": {request.message}"
        super().__init__(message)

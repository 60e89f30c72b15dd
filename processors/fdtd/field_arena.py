"""
Rotating field buffers.

The arena holds ``n`` device buffers addressed by a rotating offset:
rotating turns "next" into "current" (and "current" into "prev") without
copying. Rotation synchronizes the device first so no kernel can still be
writing a buffer when its role changes.
"""

import logging
from typing import Any, List, Tuple

from processors.fdtd.compute_device import ComputeDevice

logger = logging.getLogger(__name__)


class FieldArena:
    """
    Ring of equally shaped device buffers.

    With 3 buffers the roles are prev/current/next; with 2, current/next.
    """

    def __init__(self, device: ComputeDevice, shape: Tuple[int, ...], n_buffers: int = 3):
        if n_buffers not in (2, 3):
            raise ValueError(f"n_buffers must be 2 or 3, got {n_buffers}")
        self.device = device
        self.shape = tuple(shape)
        self._buffers: List[Any] = [device.allocate(self.shape) for _ in range(n_buffers)]
        self._offset = 0
        self.rotations = 0

    def __len__(self) -> int:
        return len(self._buffers)

    def _role(self, role: int) -> Any:
        return self._buffers[(self._offset + role) % len(self._buffers)]

    @property
    def prev(self) -> Any:
        if len(self._buffers) < 3:
            raise AttributeError("A two-buffer arena has no prev buffer")
        return self._role(len(self._buffers) - 3)

    @property
    def current(self) -> Any:
        return self._role(len(self._buffers) - 2)

    @property
    def next(self) -> Any:
        return self._role(len(self._buffers) - 1)

    def rotate(self) -> None:
        """Advance one step: next becomes current."""
        self.device.synchronize()
        self._offset = (self._offset + 1) % len(self._buffers)
        self.rotations += 1

    def buffers(self) -> List[Any]:
        return list(self._buffers)

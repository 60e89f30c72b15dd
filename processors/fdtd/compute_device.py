"""
Compute devices for the FDTD kernels.

A ComputeDevice owns buffer allocation, kernel dispatch and host
synchronization. Two strategies are available:

- NumbaCPUDevice: numpy buffers, numba parallel kernels
- TorchDevice: torch tensors on CUDA or MPS (or the torch CPU device)

``create_compute_device`` selects one at startup. An accelerator that is
missing or fails its warm-up step falls back to the CPU; if no device can
be created at all a ComputeBackendError is raised.
"""

import logging
import warnings
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np
import torch

from models.simulation_config import ComputeBackend
from processors.fdtd import cpu_kernels, torch_kernels

logger = logging.getLogger(__name__)


class KernelId(Enum):
    """Kernels every device implements."""
    PWAVE_1D = "pwave_1d"
    SWAVE_1D = "swave_1d"
    ISOTROPIC_3D = "isotropic_3d"


class ComputeBackendError(RuntimeError):
    """Raised when no compute device can be created."""


class ComputeDevice(ABC):
    """
    Strategy interface for running kernels.

    Buffers are opaque to callers: they are created by ``allocate`` or
    ``upload`` and read back with ``download`` / ``read_at``. Host reads and
    writes synchronize first, so they never race a running kernel.
    """

    name: str = "abstract"

    @abstractmethod
    def allocate(self, shape: Tuple[int, ...]) -> Any:
        """Zero-filled buffer."""

    @abstractmethod
    def upload(self, array: np.ndarray) -> Any:
        """Copy a host array into a new buffer."""

    @abstractmethod
    def download(self, buffer: Any) -> np.ndarray:
        """Copy a buffer to a new host array."""

    @abstractmethod
    def dispatch(self, kernel: KernelId, grid: Tuple[int, ...],
                 buffers: Dict[str, Any], params: Dict[str, float]) -> None:
        """Launch ``kernel`` over every cell of ``grid``."""

    @abstractmethod
    def synchronize(self) -> None:
        """Wait for all dispatched kernels to finish."""

    @abstractmethod
    def add_at(self, buffer: Any, index: Sequence[int], value: float) -> None:
        """Add ``value`` to a single cell (source injection)."""

    @abstractmethod
    def read_at(self, buffer: Any, index: Sequence[int]) -> float:
        """Read a single cell (receiver sampling)."""

    def release(self) -> None:
        """Free cached device memory."""

    def get_info(self) -> Dict[str, Any]:
        return {'name': self.name}

    def warm_up(self) -> None:
        """Run every kernel once on a tiny grid to surface backend errors early."""
        line = (8,)
        velocity_1d = self.upload(np.full(line, 1000.0))
        damping = self.upload(np.zeros(line))
        u, v, out = self.allocate(line), self.allocate(line), self.allocate(line)
        params_1d = {'dt': 1e-7, 'dx': 1e-3, 'damping_coeff': 0.0}
        self.dispatch(KernelId.PWAVE_1D, line,
                      {'u': u, 'v': v, 'velocity': velocity_1d, 'damping': damping, 'out': out},
                      params_1d)
        self.dispatch(KernelId.SWAVE_1D, line,
                      {'u': u, 'v': v, 'velocity': velocity_1d, 'out': out}, params_1d)

        cube = (6, 6, 6)
        velocity_3d = self.upload(np.full(cube, 1000.0))
        prev, cur, nxt = self.allocate(cube), self.allocate(cube), self.allocate(cube)
        self.dispatch(KernelId.ISOTROPIC_3D, cube,
                      {'prev': prev, 'cur': cur, 'next': nxt, 'velocity': velocity_3d},
                      {'dt': 1e-7, 'dx': 1e-3, 'attenuation': 0.0,
                       'neighbor_coeff': 1.0, 'center_coeff': 6.0, 'boundary': 2})
        self.synchronize()


class NumbaCPUDevice(ComputeDevice):
    """Numba parallel kernels on numpy float64 buffers."""

    name = "cpu"

    def __init__(self):
        self.dtype = np.float64

    def allocate(self, shape: Tuple[int, ...]) -> np.ndarray:
        return np.zeros(shape, dtype=self.dtype)

    def upload(self, array: np.ndarray) -> np.ndarray:
        return np.ascontiguousarray(array, dtype=self.dtype).copy()

    def download(self, buffer: np.ndarray) -> np.ndarray:
        return np.array(buffer, copy=True)

    def dispatch(self, kernel: KernelId, grid: Tuple[int, ...],
                 buffers: Dict[str, Any], params: Dict[str, float]) -> None:
        cpu_kernels.KERNELS[kernel.value](buffers, params)

    def synchronize(self) -> None:
        # numba kernels return only after every prange iteration has finished
        pass

    def add_at(self, buffer: np.ndarray, index: Sequence[int], value: float) -> None:
        buffer[tuple(index)] += value

    def read_at(self, buffer: np.ndarray, index: Sequence[int]) -> float:
        return float(buffer[tuple(index)])

    def get_info(self) -> Dict[str, Any]:
        from numba import config as numba_config
        return {
            'name': self.name,
            'type': 'cpu',
            'threads': numba_config.NUMBA_NUM_THREADS,
            'dtype': np.dtype(self.dtype).name,
        }


def detect_accelerator() -> Optional[torch.device]:
    """Best available accelerator: CUDA, then MPS; None if neither works."""
    if torch.cuda.is_available():
        # CUDA can report available but fail to initialize (e.g. forked process)
        try:
            torch.cuda.current_device()
            return torch.device('cuda')
        except RuntimeError as e:
            warnings.warn(f"CUDA reported available but initialization failed: {e}")
    if torch.backends.mps.is_available():
        return torch.device('mps')
    return None


class TorchDevice(ComputeDevice):
    """
    Torch tensors on a CUDA, MPS or CPU device.

    Accelerators use float32 (MPS has no float64); the torch CPU device uses
    float64.
    """

    def __init__(self, device: Optional[torch.device] = None,
                 dtype: Optional[torch.dtype] = None):
        if device is None:
            device = detect_accelerator()
            if device is None:
                raise ComputeBackendError("No CUDA or MPS device available")
        self.device = torch.device(device)
        if dtype is None:
            dtype = torch.float64 if self.device.type == 'cpu' else torch.float32
        self.dtype = dtype
        self.name = f"torch-{self.device.type}"

    def allocate(self, shape: Tuple[int, ...]) -> torch.Tensor:
        return torch.zeros(shape, dtype=self.dtype, device=self.device)

    def upload(self, array: np.ndarray) -> torch.Tensor:
        host = torch.from_numpy(np.ascontiguousarray(array, dtype=np.float64))
        return host.to(device=self.device, dtype=self.dtype).clone()

    def download(self, buffer: torch.Tensor) -> np.ndarray:
        self.synchronize()
        return buffer.detach().to('cpu', dtype=torch.float64).numpy().copy()

    def dispatch(self, kernel: KernelId, grid: Tuple[int, ...],
                 buffers: Dict[str, Any], params: Dict[str, float]) -> None:
        torch_kernels.dispatch(kernel.value, buffers, params)

    def synchronize(self) -> None:
        if self.device.type == 'cuda':
            torch.cuda.synchronize(self.device)
        elif self.device.type == 'mps':
            torch.mps.synchronize()

    def add_at(self, buffer: torch.Tensor, index: Sequence[int], value: float) -> None:
        self.synchronize()
        buffer[tuple(index)] += value

    def read_at(self, buffer: torch.Tensor, index: Sequence[int]) -> float:
        self.synchronize()
        return float(buffer[tuple(index)].item())

    def release(self) -> None:
        if self.device.type == 'cuda':
            torch.cuda.empty_cache()
        elif self.device.type == 'mps':
            torch.mps.empty_cache()

    def get_info(self) -> Dict[str, Any]:
        info = {
            'name': self.name,
            'type': self.device.type,
            'dtype': str(self.dtype).replace('torch.', ''),
        }
        if self.device.type == 'cuda':
            info['device_name'] = torch.cuda.get_device_name(self.device)
            info['memory_total'] = torch.cuda.get_device_properties(self.device).total_memory
        elif self.device.type == 'mps':
            info['device_name'] = 'Apple Silicon (Metal Performance Shaders)'
        return info


def _try_create(factory, label: str, expected: bool) -> Optional[ComputeDevice]:
    try:
        device = factory()
        device.warm_up()
        return device
    except Exception as e:
        log = logger.warning if expected else logger.info
        log(f"{label} compute device unavailable: {e}")
        return None


def create_compute_device(backend: ComputeBackend = ComputeBackend.AUTO) -> ComputeDevice:
    """
    Create the compute device for a run.

    Order of preference: accelerator (AUTO/GPU only), numba CPU, torch CPU.

    Raises:
        ComputeBackendError: If every candidate fails
    """
    candidates = []
    if backend in (ComputeBackend.AUTO, ComputeBackend.GPU):
        candidates.append((TorchDevice, "Accelerator", backend == ComputeBackend.GPU))
    candidates.append((NumbaCPUDevice, "Numba CPU", True))
    candidates.append((lambda: TorchDevice(torch.device('cpu')), "Torch CPU", True))

    for factory, label, expected in candidates:
        device = _try_create(factory, label, expected)
        if device is not None:
            if backend == ComputeBackend.GPU and label != "Accelerator":
                logger.warning(f"GPU requested but not available, falling back to {label}")
            logger.info(f"Compute device: {device.get_info()}")
            return device

    raise ComputeBackendError(f"Could not create any compute device for backend '{backend.value}'")

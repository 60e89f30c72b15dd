"""Utilities package - cancellation, diagnostics and memory checks."""
from .cancellation import CancellationError, CancellationRequest, CancellationToken
from .memory_monitor import MemoryEstimate, check_memory_budget
from .diagnostics import write_diagnostic_dump

__all__ = [
    'CancellationError',
    'CancellationRequest',
    'CancellationToken',
    'MemoryEstimate',
    'check_memory_budget',
    'write_diagnostic_dump',
]

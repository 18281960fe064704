"""Fault reporting for conditions detected inside Taichi kernels.

Kernels cannot raise exceptions, so fatal conditions found on the device
(an exhausted rejection sampler, an out-of-range scene index, an unknown
material tag) are recorded in a single fault field. The host checks the field
after each trace pass and raises FrameFaultError before any result of that
frame is committed.

When several faults occur in one pass the one with the highest code wins,
since record_fault() uses an atomic max.

Example:
    >>> from pathtracer.core.faults import clear_faults, check_faults
    >>> clear_faults()
    >>> run_some_kernel()
    >>> check_faults()  # raises FrameFaultError if the kernel recorded one
"""

import logging
from enum import IntEnum

import taichi as ti

logger = logging.getLogger(__name__)


class Fault(IntEnum):
    """Fatal device-side conditions, ordered by reporting priority."""

    NONE = 0
    RNG_EXHAUSTED = 1
    INDEX_OUT_OF_RANGE = 2
    UNKNOWN_MATERIAL = 3


class FrameFaultError(RuntimeError):
    """A frame was aborted because a kernel recorded a fatal fault.

    Attributes:
        fault: The recorded Fault.
    """

    def __init__(self, fault: Fault) -> None:
        self.fault = fault
        super().__init__(f"Frame aborted: kernel reported {fault.name}")


_fault_code = ti.field(dtype=ti.i32, shape=())


@ti.func
def record_fault(code: ti.i32):
    """Record a fatal fault from device code."""
    ti.atomic_max(_fault_code[None], code)


def clear_faults() -> None:
    """Reset the fault field to Fault.NONE."""
    _fault_code[None] = int(Fault.NONE)


def current_fault() -> Fault:
    """Get the fault recorded since the last clear_faults()."""
    return Fault(int(_fault_code[None]))


def check_faults() -> None:
    """Raise if any kernel recorded a fault since the last clear_faults().

    The fault field is cleared before raising so the next pass starts clean.

    Raises:
        FrameFaultError: If a fault was recorded.
    """
    fault = current_fault()
    if fault != Fault.NONE:
        clear_faults()
        logger.error("Kernel reported fault %s", fault.name)
        raise FrameFaultError(fault)

"""Pure domain value objects for the FX kernel.  ZERO I/O."""

from fx_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from fx_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "Guard",
    "Transition",
    "Workflow",
]

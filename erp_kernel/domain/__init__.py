"""Pure domain types: clock, actors and workflow definitions."""

from erp_kernel.domain.actors import SYSTEM_ACTOR_ID
from erp_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from erp_kernel.domain.workflow import Transition, Workflow, resolve_transition

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "SYSTEM_ACTOR_ID",
    "Transition",
    "Workflow",
    "resolve_transition",
]

"""
Canonical workflow types (``erp_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for document state machines, shared by purchase requests
and purchase-invoice approval so that Transition and Workflow are defined
once, plus ``resolve_transition`` which every service uses to advance a
document's state.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass

from erp_kernel.exceptions import InvalidStateTransitionError


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""
    from_state: str
    to_state: str
    action: str


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; validated at construction.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self):
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state '{self.initial_state}' not in states"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action} references unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state '{t.from_state}' has outgoing "
                    f"transition {t.action}"
                )

    def find_transition(self, current_state: str, action: str) -> Transition | None:
        for t in self.transitions:
            if t.from_state == current_state and t.action == action:
                return t
        return None

    def actions_from(self, state: str) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == state)


def resolve_transition(
    workflow: Workflow,
    document_type: str,
    document_id: object,
    current_state: str,
    action: str,
) -> str:
    """
    Return the target state for ``action`` from ``current_state``.

    Raises:
        InvalidStateTransitionError: if the workflow has no such transition
            (including any action attempted from a terminal state).
    """
    transition = workflow.find_transition(current_state, action)
    if transition is None:
        raise InvalidStateTransitionError(
            document_type, str(document_id), current_state, action,
        )
    return transition.to_state

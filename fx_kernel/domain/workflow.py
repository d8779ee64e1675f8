"""
Canonical workflow types (``fx_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for workflow state machines.  Modules declare their
graphs with these types; ``fx_services.workflow_executor`` checks requested
actions against them.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Transitions out of a terminal state are self-loops or removals
  (``to_state is None``); a terminal status never changes.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A named precondition that must hold before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the executor does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    ``externally_confirmed=True`` marks edges the client never takes on its
    own: the store advances the status and the client observes it on re-read.
    ``to_state is None`` marks removal of the entity (delete).
    """
    from_state: str
    to_state: str | None
    action: str
    guard: Guard | None = None
    externally_confirmed: bool = False
    requires_capability: str | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow '{self.name}': initial state '{self.initial_state}' "
                f"is not a declared state"
            )
        for t in self.transitions:
            if t.from_state not in self.states:
                raise ValueError(
                    f"Workflow '{self.name}': unknown from_state '{t.from_state}'"
                )
            if t.to_state is not None and t.to_state not in self.states:
                raise ValueError(
                    f"Workflow '{self.name}': unknown to_state '{t.to_state}'"
                )
            if (
                t.from_state in self.terminal_states
                and t.to_state not in (None, t.from_state)
            ):
                raise ValueError(
                    f"Workflow '{self.name}': terminal state '{t.from_state}' "
                    f"cannot transition to '{t.to_state}'"
                )

    def find_transition(self, from_state: str, action: str) -> Transition | None:
        """Return the transition for (state, action), or None if not legal."""
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def actions_from(self, state: str) -> tuple[str, ...]:
        """All actions declared from ``state``, in declaration order."""
        seen: list[str] = []
        for t in self.transitions:
            if t.from_state == state and t.action not in seen:
                seen.append(t.action)
        return tuple(seen)

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states

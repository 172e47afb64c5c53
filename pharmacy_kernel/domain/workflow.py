"""
Canonical workflow types (``pharmacy_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for workflow state machines, plus the single
gatekeeper that decides whether an action is legal from a given state.
Modules declare their lifecycle once as a ``Workflow`` table; services
never compare status strings themselves.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
* An action that is not in the table for the current state is rejected
  with ``InvalidTransitionError`` naming the current state; it is never
  a silent no-op.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from pharmacy_kernel.exceptions import (
    AccessDeniedError,
    InvalidTransitionError,
    ValidationError,
)
from pharmacy_kernel.logging_config import get_logger

logger = get_logger("domain.workflow")


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.  ``field`` names the input the
    guard inspects so a failure can be reported as a ValidationError.
    Non-goals: does not evaluate the condition -- GuardExecutor does.
    """
    name: str
    description: str
    field: str = ""


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    Contract: frozen.  ``roles`` lists the roles allowed to fire the
    transition (empty means any role).  ``own_records_only`` lists roles
    that may fire it only on records they created.  ``credits_stock=True``
    marks the transition that increments inventory.
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    roles: tuple[str, ...] = ()
    own_records_only: tuple[str, ...] = ()
    credits_stock: bool = False


def _role_name(role: Any) -> str:
    return getattr(role, "value", role)


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    Guarantees: ``initial_state`` is a member of ``states``.
    ``terminal_states`` are states with no outgoing transitions.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow {self.name}: initial state {self.initial_state!r} "
                "is not a declared state"
            )
        for state in self.terminal_states:
            if state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {state!r} "
                    "is not a declared state"
                )
        seen: set[tuple[str, str]] = set()
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow {self.name}: transition {t.action} "
                    f"{t.from_state}->{t.to_state} references an unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow {self.name}: terminal state {t.from_state!r} "
                    f"has outgoing transition {t.action}"
                )
            key = (t.from_state, t.action)
            if key in seen:
                raise ValueError(
                    f"Workflow {self.name}: action {t.action} declared twice "
                    f"from {t.from_state}"
                )
            seen.add(key)

    @property
    def actions(self) -> frozenset[str]:
        return frozenset(t.action for t in self.transitions)

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states

    def transition_for(self, current_state: str, action: str) -> Transition | None:
        """Return the transition for (state, action), or None if illegal."""
        for t in self.transitions:
            if t.from_state == current_state and t.action == action:
                return t
        return None

    def roles_for(self, action: str) -> frozenset[str]:
        """Roles allowed to fire ``action`` from at least one state."""
        if action not in self.actions:
            raise ValueError(f"Workflow {self.name}: unknown action {action!r}")
        roles: set[str] = set()
        for t in self.transitions:
            if t.action == action:
                roles.update(t.roles)
        return frozenset(roles)

    def authorize(self, action: str, role: Any, actor_id: Any = "") -> None:
        """Boundary check: may ``role`` fire ``action`` at all?

        Raises:
            AccessDeniedError: The role is not listed for the action.
            ValueError: The action is not part of this workflow.
        """
        roles = self.roles_for(action)
        role_name = _role_name(role)
        if roles and role_name not in roles:
            raise AccessDeniedError(str(actor_id), role_name, action)

    def resolve(
        self,
        current_state: str,
        action: str,
        role: Any,
        *,
        entity_id: Any = "",
        actor_id: Any = "",
    ) -> Transition:
        """The single gatekeeper for every state change.

        Returns the transition for (current_state, action) after checking
        the role against it.

        Raises:
            InvalidTransitionError: No transition for the action from
                ``current_state`` (includes every terminal state).
            AccessDeniedError: The transition exists but not for ``role``.
            ValueError: The action is not part of this workflow.
        """
        if action not in self.actions:
            raise ValueError(f"Workflow {self.name}: unknown action {action!r}")
        transition = self.transition_for(current_state, action)
        if transition is None:
            raise InvalidTransitionError(str(entity_id), current_state, action)
        role_name = _role_name(role)
        if transition.roles and role_name not in transition.roles:
            raise AccessDeniedError(str(actor_id), role_name, action)
        return transition


class GuardExecutor:
    """Evaluates workflow guards against a context.

    Guards are declared on transitions (name + description).  This
    executor holds the evaluation logic per guard name.  A failed or
    unregistered guard raises ValidationError on the guard's field.
    """

    def __init__(self) -> None:
        self._evaluators: dict[str, Callable[[Any], bool]] = {}

    def register(self, guard_name: str, evaluator: Callable[[Any], bool]) -> None:
        """Register an evaluator for a guard by name."""
        self._evaluators[guard_name] = evaluator

    def evaluate(self, guard: Guard, context: Any = None) -> bool:
        """Evaluate a guard against context. Returns True if guard passes."""
        fn = self._evaluators.get(guard.name)
        if fn is None:
            logger.warning(
                "guard_no_evaluator",
                extra={"guard_name": guard.name},
            )
            return False
        return bool(fn(context))

    def check(self, transition: Transition, context: Any = None) -> None:
        """Raise ValidationError if the transition's guard does not pass."""
        guard = transition.guard
        if guard is None:
            return
        if not self.evaluate(guard, context):
            logger.info(
                "guard_failed",
                extra={
                    "guard_name": guard.name,
                    "action": transition.action,
                    "from_state": transition.from_state,
                },
            )
            raise ValidationError(guard.field or guard.name, guard.description)


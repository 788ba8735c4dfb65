# Overview: Finite-state definitions for Purchase, PurchaseReturn and Sale.

"""
Document Lifecycle State Machines

================================================================================
PURPOSE: Reject illegal transitions on the client before anything is sent
================================================================================

PURCHASE:
    ordered --receive--> received
    ordered --cancel-->  cancelled
    received, cancelled: terminal
    Payment is orthogonal to status (allowed while ordered or received,
    gated only by due_amount > 0).

PURCHASE RETURN:
    draft    --approve--> approved --process--> processed
    draft    --cancel-->  cancelled
    approved --cancel-->  cancelled
    processed --refund--> processed   (history entry, not a status change)
    processed, cancelled: terminal with respect to status.
    A processed return stays open to refunds; nothing closes it.

SALE:
    No transition table. Status is whatever the server reports; the only
    client action is paying the outstanding due.

RULES:
1. Transitions are forward-only; there is no reopen action.
2. Cannot skip states (draft -> processed is forbidden).
3. The status held by the client only changes after the server confirms.
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from ..models import (
    PURCHASE_STATUS_CANCELLED,
    PURCHASE_STATUS_ORDERED,
    PURCHASE_STATUS_RECEIVED,
    RETURN_STATUS_APPROVED,
    RETURN_STATUS_CANCELLED,
    RETURN_STATUS_DRAFT,
    RETURN_STATUS_PROCESSED,
)
from ..validation import ValidationError


class TransitionError(ValidationError):
    """
    Raised when an action is not legal from the entity's current status.

    This is a domain error: the user attempted an operation that violates
    the lifecycle rules. It is raised before any network call.
    """

    code = "ILLEGAL_TRANSITION"


ACTION_RECEIVE = "receive"
ACTION_CANCEL = "cancel"
ACTION_APPROVE = "approve"
ACTION_PROCESS = "process"
ACTION_REFUND = "refund"
ACTION_PAY = "pay"


@dataclass(frozen=True)
class StateMachine:
    """
    A status field plus its legal (status, action) -> status moves.

    `states` is None for entities whose status vocabulary is owned by the
    server (Sale); any reported status is then accepted.
    """
    name: str
    states: frozenset[str] | None
    transitions: Mapping[tuple[str, str], str]
    initial: str | None = None

    def validate_status(self, status: str) -> None:
        if self.states is not None and status not in self.states:
            raise TransitionError(
                f"Invalid {self.name} status '{status}'. Must be one of: {', '.join(sorted(self.states))}",
                field="status",
            )

    def actions_from(self, status: str) -> list[str]:
        """Legal actions from `status`, in declaration order."""
        self.validate_status(status)
        return [action for (src, action) in self.transitions if src == status]

    def can(self, action: str, status: str) -> bool:
        self.validate_status(status)
        return (status, action) in self.transitions

    def next_status(self, action: str, status: str) -> str:
        """
        Status the server is expected to report after `action` succeeds.

        Raises:
            TransitionError: if `action` is not legal from `status`
        """
        if not self.can(action, status):
            allowed = self.actions_from(status)
            raise TransitionError(
                f"Cannot {action} {self.name} in status '{status}'"
                + (f"; allowed: {', '.join(allowed)}" if allowed else f"; '{status}' is terminal"),
                field="status",
            )
        return self.transitions[(status, action)]

    def is_terminal(self, status: str) -> bool:
        """No outgoing transition changes the status (self-loops don't count)."""
        self.validate_status(status)
        return all(
            dst == src
            for (src, _), dst in self.transitions.items()
            if src == status
        )


PURCHASE_LIFECYCLE = StateMachine(
    name="purchase",
    states=frozenset({PURCHASE_STATUS_ORDERED, PURCHASE_STATUS_RECEIVED, PURCHASE_STATUS_CANCELLED}),
    transitions={
        (PURCHASE_STATUS_ORDERED, ACTION_RECEIVE): PURCHASE_STATUS_RECEIVED,
        (PURCHASE_STATUS_ORDERED, ACTION_CANCEL): PURCHASE_STATUS_CANCELLED,
    },
    initial=PURCHASE_STATUS_ORDERED,
)

PURCHASE_RETURN_LIFECYCLE = StateMachine(
    name="purchase return",
    states=frozenset({
        RETURN_STATUS_DRAFT,
        RETURN_STATUS_APPROVED,
        RETURN_STATUS_PROCESSED,
        RETURN_STATUS_CANCELLED,
    }),
    transitions={
        (RETURN_STATUS_DRAFT, ACTION_APPROVE): RETURN_STATUS_APPROVED,
        (RETURN_STATUS_DRAFT, ACTION_CANCEL): RETURN_STATUS_CANCELLED,
        (RETURN_STATUS_APPROVED, ACTION_PROCESS): RETURN_STATUS_PROCESSED,
        (RETURN_STATUS_APPROVED, ACTION_CANCEL): RETURN_STATUS_CANCELLED,
        (RETURN_STATUS_PROCESSED, ACTION_REFUND): RETURN_STATUS_PROCESSED,
    },
    initial=RETURN_STATUS_DRAFT,
)

SALE_LIFECYCLE = StateMachine(
    name="sale",
    states=None,
    transitions={},
)


# =============================================================================
# WORKFLOW ACTIONS
# =============================================================================

@dataclass(frozen=True)
class WorkflowAction:
    """
    One button on an entity screen.

    transition=False marks actions orthogonal to status (payments); they are
    gated by `guard` alone. `guard(entity)` returns a reason string when the
    action must be disabled, or None.
    """
    name: str
    label: str
    permission: str
    mutation: str
    modal: str | None = None
    confirm: str | None = None
    required_fields: tuple[str, ...] = ()
    optional_fields: tuple[str, ...] = ()
    transition: bool = True
    guard: Callable[[Any], str | None] | None = None
    # The form picks a paying/receiving account from the ledger
    needs_accounts: bool = False


@dataclass(frozen=True)
class ActionHandler:
    """
    prepare(entity, fields) validates user input and returns the request body
    (None for body-less actions); it never touches the network.
    send(api, entity, body) performs the single request and returns the Envelope.
    """
    prepare: Callable[[Any, dict], dict | None]
    send: Callable[[Any, Any, dict | None], Any]


@dataclass(frozen=True)
class EntityWorkflow:
    """Everything the orchestrator needs to drive one entity type."""
    entity_type: str
    machine: StateMachine
    actions: tuple[WorkflowAction, ...]
    handlers: Mapping[str, ActionHandler] = field(default_factory=dict)
    number: Callable[[Any], str] = lambda entity: str(getattr(entity, "id", ""))

    def action(self, name: str) -> WorkflowAction:
        for action in self.actions:
            if action.name == name:
                return action
        raise TransitionError(f"Unknown {self.machine.name} action: {name}")

    def entity_key(self, entity: Any) -> tuple[str, Any]:
        return (self.entity_type, getattr(entity, "id", None))

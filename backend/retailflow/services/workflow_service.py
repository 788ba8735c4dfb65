# Overview: Drives entity screens: which buttons show, what they confirm, and what they submit.

"""
Workflow Orchestrator

Composes the state machines, the payment allocator and the cache/invalidation
layer behind one object per signed-in user.

READS:  remote API -> ResourceCache -> model dataclass
WRITES: form fields -> payload builder -> MutationRunner -> invalidation

SEQUENCE for perform():
1. Permission gate from the explicit WorkflowContext
2. Lifecycle check (or guard, for status-orthogonal actions like payments)
3. Refuse while any mutation for the entity is in flight
4. Build and validate the body (no network)
5. Submit once; invalidation happens inside the runner on success

The entity passed in is never modified. Callers reload it from the cache
once the server has confirmed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from ..api_client import ApiClient, ApiError
from ..models import Account, Purchase, PurchaseReturn, Sale
from ..permissions import WorkflowContext, WorkflowPermission
from . import invalidation_service as mutations
from .account_service import (
    build_add_bank_balance_payload,
    build_add_cash_payload,
    build_fund_transfer_payload,
)
from .cache_service import ResourceCache
from .invalidation_service import Tag
from .lifecycle_service import EntityWorkflow, TransitionError, WorkflowAction
from .mutation_service import MutationPendingError, MutationRunner
from .payment_service import (
    PAYMENT_TYPE_CUSTOMER,
    PAYMENT_TYPE_SUPPLIER,
    PaymentAllocation,
    allocate_payment,
)
from .purchase_service import PURCHASE_WORKFLOW, build_purchase_payload
from .return_service import (
    PURCHASE_RETURN_WORKFLOW,
    build_purchase_return_payload,
    build_update_payload,
)
from .sale_service import SALE_WORKFLOW, build_sale_payload, sale_due


logger = logging.getLogger(__name__)


WORKFLOWS = {
    Purchase: PURCHASE_WORKFLOW,
    PurchaseReturn: PURCHASE_RETURN_WORKFLOW,
    Sale: SALE_WORKFLOW,
}


@dataclass(frozen=True)
class ActionState:
    """One rendered button."""
    name: str
    label: str
    permission: str
    enabled: bool
    modal: str | None = None
    confirm: str | None = None
    disabled_reason: str | None = None


def workflow_for(entity: Any) -> EntityWorkflow:
    try:
        return WORKFLOWS[type(entity)]
    except KeyError:
        raise TypeError(f"No workflow for {type(entity).__name__}") from None


class WorkflowOrchestrator:
    def __init__(
        self,
        api: ApiClient,
        cache: ResourceCache,
        runner: MutationRunner,
        context: WorkflowContext | None = None,
    ):
        self.api = api
        self.cache = cache
        self.runner = runner
        self.context = context or WorkflowContext()

    def with_context(self, context: WorkflowContext) -> "WorkflowOrchestrator":
        """Same cache and runner, different user."""
        return WorkflowOrchestrator(self.api, self.cache, self.runner, context)

    # =========================================================================
    # READS
    # =========================================================================

    def load_purchase(self, purchase_id: int) -> Purchase:
        return self.cache.query(
            ("purchase", purchase_id),
            [Tag.PURCHASES],
            lambda: Purchase.from_dict(self.api.get_purchase(purchase_id).data),
        )

    def load_purchase_return(self, return_id: int) -> PurchaseReturn:
        return self.cache.query(
            ("purchase_return", return_id),
            [Tag.PURCHASE_RETURNS],
            lambda: PurchaseReturn.from_dict(self.api.get_purchase_return(return_id).data),
        )

    def load_sale(self, sale_id: int) -> Sale:
        return self.cache.query(
            ("sale", sale_id),
            [Tag.SALES, Tag.PAYMENTS],
            lambda: Sale.from_dict(self.api.get_sale(sale_id).data),
        )

    def load_accounts(self) -> list[Account]:
        return self.cache.query(
            ("accounts",),
            [Tag.ACCOUNTS],
            lambda: [Account.from_dict(a) for a in self.api.list_accounts().data or []],
        )

    def reload(self, entity: Any) -> Any:
        """Fresh (or still-valid cached) copy of `entity`."""
        if isinstance(entity, Purchase):
            return self.load_purchase(entity.id)
        if isinstance(entity, PurchaseReturn):
            return self.load_purchase_return(entity.id)
        if isinstance(entity, Sale):
            return self.load_sale(entity.id)
        raise TypeError(f"Cannot reload {type(entity).__name__}")

    # =========================================================================
    # ACTIONS
    # =========================================================================

    def _applies(self, workflow: EntityWorkflow, action: WorkflowAction, entity: Any) -> bool:
        if action.transition:
            return workflow.machine.can(action.name, entity.status)
        workflow.machine.validate_status(entity.status)
        return True

    def actions_for(self, entity: Any, *, include_hidden: bool = False) -> list[ActionState]:
        """
        Buttons for `entity`, in display order.

        Actions illegal from the current status are omitted. Actions the
        context lacks permission for are omitted unless `include_hidden`.
        Everything is disabled while a mutation on the entity is in flight.
        """
        workflow = workflow_for(entity)
        key = workflow.entity_key(entity)
        pending = self.runner.pending_mutation(key)
        number = workflow.number(entity)

        states = []
        for action in workflow.actions:
            if not self._applies(workflow, action, entity):
                continue
            allowed = self.context.allows(action.permission)
            if not allowed and not include_hidden:
                continue

            reason = None
            if pending is not None:
                reason = f"{pending} in progress"
            elif not allowed:
                reason = f"Missing permission: {action.permission}"
            elif action.guard is not None:
                reason = action.guard(entity)

            states.append(ActionState(
                name=action.name,
                label=action.label,
                permission=action.permission,
                enabled=reason is None,
                modal=action.modal,
                confirm=action.confirm.format(number=number) if action.confirm else None,
                disabled_reason=reason,
            ))
        return states

    def perform(self, entity: Any, action_name: str, **fields) -> Any:
        """
        Run one workflow action against `entity`.

        Returns:
            The server's `data` for the mutation

        Raises:
            PermissionDeniedError, TransitionError, MutationPendingError,
            ValidationError subclasses from the payload builders (all before
            any request), RemoteRejection / NetworkFailure from the request
        """
        workflow = workflow_for(entity)
        action = workflow.action(action_name)
        key = workflow.entity_key(entity)

        self.context.require(action.permission)

        if action.transition:
            target = workflow.machine.next_status(action.name, entity.status)
        else:
            workflow.machine.validate_status(entity.status)
            target = entity.status
        if action.guard is not None:
            reason = action.guard(entity)
            if reason:
                raise TransitionError(reason)

        if self.runner.is_pending(key):
            raise MutationPendingError(
                f"{self.runner.pending_mutation(key)} is still in progress for {workflow.number(entity)}"
            )

        if action.needs_accounts and "accounts" not in fields and "allocation" not in fields:
            fields["accounts"] = self.load_accounts()

        handler = workflow.handlers[action.name]
        body = handler.prepare(entity, fields)

        logger.info(
            "%s %s on %s (%s -> %s)",
            self.context.user_id or "anonymous", action.name, workflow.number(entity), entity.status, target,
        )
        allocation = fields.get("allocation")
        try:
            return self.runner.run(action.mutation, key, lambda: handler.send(self.api, entity, body))
        except ApiError:
            # Nothing was recorded, so the same allocation may be submitted again
            if allocation is not None:
                allocation.release()
            raise

    def allocate(
        self,
        entity: Purchase | Sale,
        *,
        amount: Any,
        method: str | None,
        account_code: str | None,
        note: str | None = None,
        accounts: Iterable[Account] | None = None,
    ) -> PaymentAllocation:
        """Allocation for the payment form; pass it back as perform(entity, "pay", allocation=...)."""
        if isinstance(entity, Purchase):
            payment_type, due, party = PAYMENT_TYPE_SUPPLIER, entity.due_amount, entity.supplier_id
        elif isinstance(entity, Sale):
            payment_type, due, party = PAYMENT_TYPE_CUSTOMER, sale_due(entity), entity.customer_id
        else:
            raise TypeError(f"Cannot pay against {type(entity).__name__}")

        return allocate_payment(
            payment_type=payment_type,
            entity_id=entity.id,
            due_amount=due,
            amount=amount,
            method=method,
            account_code=account_code,
            accounts=self.load_accounts() if accounts is None else accounts,
            note=note,
            party_id=party,
        )

    # =========================================================================
    # CREATES & ACCOUNT OPERATIONS
    # =========================================================================

    def create_purchase(self, **fields) -> Any:
        self.context.require(WorkflowPermission.PURCHASE_CREATE)
        payload = build_purchase_payload(**fields)
        return self.runner.run(
            mutations.PURCHASE_CREATE,
            ("purchase", None),
            lambda: self.api.create_purchase(payload),
        )

    def create_purchase_return(self, purchase: Purchase, *, reason: Any, items: Iterable[dict]) -> Any:
        """Keyed on the purchase so it cannot race the purchase's own actions."""
        self.context.require(WorkflowPermission.PURCHASE_RETURN_CREATE)
        payload = build_purchase_return_payload(purchase, reason=reason, items=items)
        return self.runner.run(
            mutations.PURCHASE_RETURN_CREATE,
            PURCHASE_WORKFLOW.entity_key(purchase),
            lambda: self.api.create_purchase_return(payload),
        )

    def update_purchase_return(
        self,
        purchase_return: PurchaseReturn,
        purchase: Purchase | None = None,
        **fields,
    ) -> Any:
        self.context.require(WorkflowPermission.PURCHASE_RETURN_UPDATE)
        payload = build_update_payload(purchase_return, purchase, **fields)
        return self.runner.run(
            mutations.PURCHASE_RETURN_UPDATE,
            PURCHASE_RETURN_WORKFLOW.entity_key(purchase_return),
            lambda: self.api.update_purchase_return(purchase_return.id, payload),
        )

    def checkout_sale(self, **fields) -> Any:
        self.context.require(WorkflowPermission.SALE_CREATE)
        if "accounts" not in fields and fields.get("payment_method"):
            fields["accounts"] = self.load_accounts()
        payload = build_sale_payload(**fields)
        return self.runner.run(
            mutations.SALE_CREATE,
            ("sale", None),
            lambda: self.api.create_sale(payload),
        )

    def add_cash(self, amount: Any, narration: str | None = None) -> Any:
        self.context.require(WorkflowPermission.ACCOUNT_ADD_CASH)
        payload = build_add_cash_payload(amount, narration)
        return self.runner.run(
            mutations.ACCOUNT_ADD_CASH,
            ("accounts",),
            lambda: self.api.add_cash(payload),
        )

    def add_bank_balance(self, bank_account_code: str, amount: Any, narration: str | None = None) -> Any:
        self.context.require(WorkflowPermission.ACCOUNT_ADD_BANK_BALANCE)
        payload = build_add_bank_balance_payload(bank_account_code, amount, self.load_accounts(), narration)
        return self.runner.run(
            mutations.ACCOUNT_ADD_BANK_BALANCE,
            ("accounts",),
            lambda: self.api.add_bank_balance(payload),
        )

    def fund_transfer(
        self,
        from_account_code: str,
        to_account_code: str,
        amount: Any,
        narration: str | None = None,
    ) -> Any:
        self.context.require(WorkflowPermission.ACCOUNT_FUND_TRANSFER)
        payload = build_fund_transfer_payload(
            from_account_code, to_account_code, amount, self.load_accounts(), narration,
        )
        return self.runner.run(
            mutations.ACCOUNT_FUND_TRANSFER,
            ("accounts",),
            lambda: self.api.fund_transfer(payload),
        )

    def save_product(self, payload: dict, product_id: int | None = None) -> Any:
        if product_id is None:
            self.context.require(WorkflowPermission.PRODUCT_CREATE)
            return self.runner.run(
                mutations.PRODUCT_CREATE,
                ("product", None),
                lambda: self.api.create_product(payload),
            )
        self.context.require(WorkflowPermission.PRODUCT_UPDATE)
        return self.runner.run(
            mutations.PRODUCT_UPDATE,
            ("product", product_id),
            lambda: self.api.update_product(product_id, payload),
        )

    def delete_product(self, product_id: int) -> Any:
        self.context.require(WorkflowPermission.PRODUCT_DELETE)
        return self.runner.run(
            mutations.PRODUCT_DELETE,
            ("product", product_id),
            lambda: self.api.delete_product(product_id),
        )

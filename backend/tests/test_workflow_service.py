# Overview: Pytest coverage for action rendering, gating and submission in the workflow orchestrator.

import json

import httpx
import pytest

from retailflow.api_client import NetworkFailure, RemoteRejection
from retailflow.models import Purchase, PurchaseReturn, Sale
from retailflow.permissions import PermissionDeniedError, WorkflowContext, WorkflowPermission
from retailflow.services.cache_service import ResourceCache
from retailflow.services.invalidation_service import InvalidationDispatcher, Tag
from retailflow.services.lifecycle_service import TransitionError
from retailflow.services.mutation_service import MutationPendingError, MutationRunner
from retailflow.services.payment_service import DuplicateSubmissionError
from retailflow.services.workflow_service import WorkflowOrchestrator, workflow_for
from retailflow.validation import AmountExceedsDue, ValidationError


ACCOUNTS = [
    {"code": "1000", "name": "Cash in Hand", "isCash": True, "balance": "5000.00"},
    {"code": "1020", "name": "City Bank", "isBank": True, "balance": "20000.00"},
]


def _purchase(**overrides):
    data = {
        "id": 3, "po_no": "PO-0003", "supplier_id": 1, "warehouse_id": 1,
        "status": "ordered", "total": "200.00", "paid_amount": "0.00", "due_amount": "200.00",
        "items": [{"id": 31, "product_id": 1, "quantity": 2, "price": 100}],
    }
    data.update(overrides)
    return Purchase.from_dict(data)


def _return(status="draft"):
    return PurchaseReturn.from_dict({
        "id": 9, "return_no": "PR-0009", "purchase_id": 3, "supplier_id": 1,
        "reason": "Damaged", "status": status, "total": "100.00",
        "items": [{"purchase_item_id": 31, "product_id": 1, "returned_quantity": 1, "price": 100}],
    })


def _sale(**overrides):
    data = {"id": 4, "invoice_no": "INV-0004", "customer_id": 2, "status": "pending",
            "total": "198.00", "paid_amount": "100.00"}
    data.update(overrides)
    return Sale.from_dict(data)


def _accounts_handler(inner=None):
    """Serve GET /accounts; delegate everything else."""
    def handler(request):
        if request.method == "GET" and request.url.path == "/api/accounts":
            return httpx.Response(200, json={"statusCode": 200, "message": "OK", "data": ACCOUNTS})
        if inner is not None:
            return inner(request)
        return httpx.Response(200, json={"statusCode": 200, "message": "OK", "data": {"id": 1}})
    return handler


@pytest.fixture
def make_orchestrator(offline_api, admin_context):
    """Build (orchestrator, transport) over a RecordingTransport."""
    def _make(handler=None, context=None):
        client, transport = offline_api(_accounts_handler(handler))
        cache = ResourceCache()
        runner = MutationRunner(InvalidationDispatcher(cache))
        return WorkflowOrchestrator(client, cache, runner, context or admin_context), transport
    return _make


@pytest.mark.workflow
class TestActionsFor:
    def test_draft_return_buttons(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()
        states = orchestrator.actions_for(_return("draft"))

        assert [s.name for s in states] == ["approve", "cancel"]
        assert all(s.enabled for s in states)
        assert states[0].modal == "purchase-return-approval"
        assert states[1].confirm == "Cancel purchase return PR-0009?"

    def test_approved_return_buttons(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()
        states = orchestrator.actions_for(_return("approved"))

        assert [s.name for s in states] == ["process", "cancel"]
        assert "PR-0009" in states[0].confirm
        assert "cannot be reversed" in states[0].confirm

    def test_processed_return_only_refunds(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()
        states = orchestrator.actions_for(_return("processed"))
        assert [(s.name, s.label) for s in states] == [("refund", "Record Refund")]

    def test_cancelled_return_has_no_buttons(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()
        assert orchestrator.actions_for(_return("cancelled")) == []

    def test_ordered_purchase(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()
        assert [s.name for s in orchestrator.actions_for(_purchase())] == ["receive", "pay", "cancel"]

    def test_received_purchase_can_still_be_paid(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()
        assert [s.name for s in orchestrator.actions_for(_purchase(status="received"))] == ["pay"]

    def test_pay_disabled_when_nothing_due(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()
        paid = _purchase(status="received", paid_amount="200.00", due_amount="0.00")
        (state,) = orchestrator.actions_for(paid)
        assert not state.enabled
        assert state.disabled_reason == "Nothing due on this purchase"

    def test_permission_hides_actions(self, make_orchestrator, clerk_context):
        orchestrator, _ = make_orchestrator(context=clerk_context)
        assert [s.name for s in orchestrator.actions_for(_purchase())] == ["receive", "pay"]
        assert orchestrator.actions_for(_return("draft")) == []

    def test_include_hidden_shows_disabled(self, make_orchestrator, clerk_context):
        orchestrator, _ = make_orchestrator(context=clerk_context)
        states = orchestrator.actions_for(_return("draft"), include_hidden=True)

        assert [s.name for s in states] == ["approve", "cancel"]
        assert not any(s.enabled for s in states)
        assert states[0].disabled_reason == f"Missing permission: {WorkflowPermission.PURCHASE_RETURN_APPROVE}"

    def test_sale_pay_action(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()
        (state,) = orchestrator.actions_for(_sale())
        assert state.label == "Pay Due"
        assert state.enabled

        (settled,) = orchestrator.actions_for(_sale(status="completed", paid_amount="198.00"))
        assert not settled.enabled
        assert settled.disabled_reason == "No outstanding due on this sale"

    def test_everything_disabled_while_pending(self, make_orchestrator):
        seen = {}
        holder = {}

        def handler(request):
            seen["states"] = holder["orchestrator"].actions_for(_return("draft"))
            return httpx.Response(200, json={"statusCode": 200, "message": "Approved", "data": {"id": 9}})

        orchestrator, _ = make_orchestrator(handler)
        holder["orchestrator"] = orchestrator

        orchestrator.perform(_return("draft"), "approve")

        assert [s.name for s in seen["states"]] == ["approve", "cancel"]
        assert not any(s.enabled for s in seen["states"])
        assert seen["states"][1].disabled_reason == "purchase_return.approve in progress"
        # Released once settled
        assert all(s.enabled for s in orchestrator.actions_for(_return("draft")))

    def test_unknown_entity_type(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()
        with pytest.raises(TypeError):
            orchestrator.actions_for({"id": 1, "status": "draft"})
        with pytest.raises(TypeError):
            workflow_for(object())


@pytest.mark.workflow
class TestPerform:
    def test_process_from_draft_sends_nothing(self, make_orchestrator):
        orchestrator, transport = make_orchestrator()
        with pytest.raises(TransitionError):
            orchestrator.perform(_return("draft"), "process")
        assert transport.requests == []

    def test_permission_checked_before_anything(self, make_orchestrator, clerk_context):
        orchestrator, transport = make_orchestrator(context=clerk_context)
        with pytest.raises(PermissionDeniedError) as exc:
            orchestrator.perform(_return("draft"), "approve")
        assert exc.value.permission == WorkflowPermission.PURCHASE_RETURN_APPROVE
        assert transport.requests == []

    def test_approve_sends_notes(self, make_orchestrator):
        orchestrator, transport = make_orchestrator()
        orchestrator.perform(_return("draft"), "approve", approval_notes="Checked by QA")

        (request,) = transport.requests
        assert (request.method, request.url.path) == ("PATCH", "/api/purchase-returns/9/approve")
        assert json.loads(request.content) == {"approval_notes": "Checked by QA"}

    def test_entity_is_not_mutated(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()
        draft = _return("draft")
        orchestrator.perform(draft, "approve")
        assert draft.status == "draft"

    def test_success_invalidates_cached_reads(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()
        orchestrator.cache.store(("purchase_return", 9), [Tag.PURCHASE_RETURNS], _return("draft"))
        orchestrator.cache.store(("sale", 4), [Tag.SALES], _sale())

        orchestrator.perform(_return("draft"), "cancel")

        assert orchestrator.cache.is_stale(("purchase_return", 9))
        assert not orchestrator.cache.is_stale(("sale", 4))

    def test_second_action_while_first_in_flight(self, make_orchestrator):
        holder = {}

        def handler(request):
            with pytest.raises(MutationPendingError):
                holder["orchestrator"].perform(_return("draft"), "cancel")
            return httpx.Response(200, json={"statusCode": 200, "message": "OK", "data": {}})

        orchestrator, transport = make_orchestrator(handler)
        holder["orchestrator"] = orchestrator
        orchestrator.perform(_return("draft"), "approve")

        assert [r.url.path for r in transport.requests] == ["/api/purchase-returns/9/approve"]

    def test_supplier_payment_payload(self, make_orchestrator):
        orchestrator, transport = make_orchestrator()
        orchestrator.perform(_purchase(), "pay", amount="200", method="cash", payment_account_code="1000")

        payment = transport.requests[-1]
        assert (payment.method, payment.url.path) == ("POST", "/api/payments")
        assert json.loads(payment.content) == {
            "type": "supplier",
            "entity_id": 3,
            "purchase_id": 3,
            "supplier_id": 1,
            "amount": 200.0,
            "method": "cash",
            "payment_account_code": "1000",
            "note": "Full payment",
        }

    def test_payment_over_due_sends_nothing(self, make_orchestrator):
        orchestrator, transport = make_orchestrator()
        with pytest.raises(AmountExceedsDue):
            orchestrator.perform(_sale(), "pay", amount=99, method="cash", payment_account_code="1000")
        assert all(r.url.path != "/api/payments" for r in transport.requests)

    def test_pay_guard_blocks_settled_sale(self, make_orchestrator):
        orchestrator, transport = make_orchestrator()
        with pytest.raises(TransitionError) as exc:
            orchestrator.perform(_sale(paid_amount="198.00"), "pay", amount=1, method="cash",
                                 payment_account_code="1000")
        assert exc.value.message == "No outstanding due on this sale"
        assert transport.requests == []

    def test_allocation_round_trip(self, make_orchestrator):
        orchestrator, transport = make_orchestrator()
        sale = _sale()
        allocation = orchestrator.allocate(sale, amount=98, method="bank", account_code="1020")

        assert allocation.is_full
        assert allocation.note == "Full payment"

        orchestrator.perform(sale, "pay", allocation=allocation)
        body = json.loads(transport.requests[-1].content)
        assert body["sale_id"] == 4
        assert body["customer_id"] == 2
        assert body["method"] == "bank"

        # An allocation is posted once
        with pytest.raises(DuplicateSubmissionError):
            orchestrator.perform(sale, "pay", allocation=allocation)

    def test_allocation_retried_after_server_error(self, make_orchestrator):
        attempts = []

        def handler(request):
            attempts.append(request.url.path)
            if len(attempts) == 1:
                return httpx.Response(503, json={"statusCode": 503, "message": "Service unavailable"})
            return httpx.Response(201, json={"statusCode": 201, "message": "Created", "data": {"id": 1}})

        orchestrator, _ = make_orchestrator(handler)
        sale = _sale()
        allocation = orchestrator.allocate(sale, amount=98, method="bank", account_code="1020")

        with pytest.raises(RemoteRejection) as exc:
            orchestrator.perform(sale, "pay", allocation=allocation)
        assert exc.value.status_code == 503
        assert not allocation.submitted

        orchestrator.perform(sale, "pay", allocation=allocation)
        assert attempts == ["/api/payments", "/api/payments"]
        assert allocation.submitted
        with pytest.raises(DuplicateSubmissionError):
            orchestrator.perform(sale, "pay", allocation=allocation)

    def test_allocation_retried_after_network_failure(self, make_orchestrator):
        attempts = []

        def handler(request):
            attempts.append(request.url.path)
            if len(attempts) == 1:
                raise httpx.ReadTimeout("timed out", request=request)
            return httpx.Response(201, json={"statusCode": 201, "message": "Created", "data": {"id": 1}})

        orchestrator, _ = make_orchestrator(handler)
        purchase = _purchase(status="received")
        allocation = orchestrator.allocate(purchase, amount=50, method="cash", account_code="1000")

        with pytest.raises(NetworkFailure):
            orchestrator.perform(purchase, "pay", allocation=allocation)
        assert not orchestrator.runner.is_pending(("purchase", 3))

        orchestrator.perform(purchase, "pay", allocation=allocation)
        assert len(attempts) == 2

    def test_allocation_for_other_entity_rejected(self, make_orchestrator):
        orchestrator, _ = make_orchestrator()
        allocation = orchestrator.allocate(_sale(), amount=10, method="cash", account_code="1000")
        with pytest.raises(ValidationError) as exc:
            orchestrator.perform(_purchase(), "pay", allocation=allocation)
        assert "Allocation belongs to customer #4" in str(exc.value)

    def test_refund_loads_accounts(self, make_orchestrator):
        orchestrator, transport = make_orchestrator()
        orchestrator.perform(_return("processed"), "refund", amount=40, method="cash", account_code="1000")

        paths = [(r.method, r.url.path) for r in transport.requests]
        assert paths == [("GET", "/api/accounts"), ("POST", "/api/purchase-returns/9/refund")]

    def test_with_context_shares_runner(self, make_orchestrator, clerk_context):
        orchestrator, _ = make_orchestrator()
        clerk = orchestrator.with_context(clerk_context)
        assert clerk.runner is orchestrator.runner
        assert clerk.cache is orchestrator.cache
        assert clerk.context.user_id == 7


class TestCreates:
    def test_create_return_keyed_on_purchase(self, make_orchestrator):
        holder = {}

        def handler(request):
            # The purchase's own buttons are locked while its return is being created
            holder["states"] = holder["orchestrator"].actions_for(_purchase())
            return httpx.Response(201, json={"statusCode": 201, "message": "Created", "data": {"id": 9}})

        orchestrator, transport = make_orchestrator(handler)
        holder["orchestrator"] = orchestrator
        data = orchestrator.create_purchase_return(
            _purchase(status="received"), reason="Damaged", items=[{"purchase_item_id": 31, "returned_quantity": 1}],
        )

        assert data == {"id": 9}
        assert not any(s.enabled for s in holder["states"])
        assert json.loads(transport.requests[0].content)["total"] == 100

    def test_checkout_without_payment_skips_accounts(self, make_orchestrator):
        orchestrator, transport = make_orchestrator()
        orchestrator.checkout_sale(customer_id=1, items=[{"product_id": 1, "quantity": 1, "unit_price": 50}])
        assert [r.url.path for r in transport.requests] == ["/api/sales"]

    def test_account_operation_requires_permission(self, make_orchestrator):
        orchestrator, transport = make_orchestrator(context=WorkflowContext.for_user("cashier", []))
        with pytest.raises(PermissionDeniedError):
            orchestrator.add_cash(100)
        assert transport.requests == []

    def test_product_mutations(self, make_orchestrator):
        orchestrator, transport = make_orchestrator()
        orchestrator.save_product({"name": "Salt 1kg", "price": 8})
        orchestrator.save_product({"price": 9}, product_id=4)
        orchestrator.delete_product(4)
        assert [(r.method, r.url.path) for r in transport.requests] == [
            ("POST", "/api/products"),
            ("PATCH", "/api/products/4"),
            ("DELETE", "/api/products/4"),
        ]

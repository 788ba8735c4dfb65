"""
Pytest fixtures for retailflow tests.

Provides the sandbox remote API, a console wired to it through
httpx.WSGITransport, an invalidation recorder, and workflow contexts.
"""

import httpx
import pytest

from retailflow import create_console
from retailflow.api_client import ApiClient
from retailflow.models import Account
from retailflow.permissions import WorkflowContext, WorkflowPermission
from retailflow.sandbox import create_app
from retailflow.sandbox.store import get_store


SANDBOX_TOKEN = "test-token"
SANDBOX_URL = "http://sandbox/api"


class SandboxConfig:
    API_BASE_URL = SANDBOX_URL
    API_TOKEN = SANDBOX_TOKEN
    REQUEST_TIMEOUT = 5.0
    LOG_LEVEL = "DEBUG"


class InvalidationRecorder:
    """Captures every tag set the cache is asked to invalidate."""

    def __init__(self):
        self.calls = []

    def __call__(self, tags):
        self.calls.append(tags)

    @property
    def all_tags(self):
        return frozenset().union(*self.calls) if self.calls else frozenset()

    def clear(self):
        self.calls.clear()


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps the requests it saw."""

    def __init__(self, handler=None):
        self.requests = []

        def _handle(request):
            self.requests.append(request)
            if handler is None:
                return httpx.Response(200, json={"statusCode": 200, "message": "OK", "data": {}})
            return handler(request)

        super().__init__(_handle)


@pytest.fixture(scope='function')
def sandbox_app():
    """Fresh sandbox API with the demo data set."""
    app = create_app({
        'TESTING': True,
        'SANDBOX_TOKEN': SANDBOX_TOKEN,
        'SANDBOX_DATA_FILE': None,
    })
    return app


@pytest.fixture(scope='function')
def sandbox_store(sandbox_app):
    with sandbox_app.app_context():
        return get_store()


@pytest.fixture(scope='function')
def wsgi_transport(sandbox_app):
    return httpx.WSGITransport(app=sandbox_app)


@pytest.fixture(scope='function')
def api(wsgi_transport):
    client = ApiClient(SANDBOX_URL, token=SANDBOX_TOKEN, transport=wsgi_transport)
    yield client
    client.close()


@pytest.fixture(scope='function')
def admin_context():
    return WorkflowContext.for_user("super_admin", [], user_id=1)


@pytest.fixture(scope='function')
def clerk_context():
    """Can receive goods and take payments, nothing else."""
    return WorkflowContext.for_user(
        "clerk",
        [WorkflowPermission.PURCHASE_RECEIVE, WorkflowPermission.PAYMENT_CREATE],
        user_id=7,
    )


@pytest.fixture(scope='function')
def console(wsgi_transport, admin_context):
    console = create_console(SandboxConfig, transport=wsgi_transport, context=admin_context)
    yield console
    console.close()


@pytest.fixture(scope='function')
def orchestrator(console):
    return console.orchestrator


@pytest.fixture(scope='function')
def recorder(console):
    recorder = InvalidationRecorder()
    console.cache.subscribe(recorder)
    return recorder


@pytest.fixture(scope='function')
def accounts():
    """Chart of accounts as the API reports it."""
    return [
        Account.from_dict({"code": "1000", "name": "Cash in Hand", "isCash": True, "balance": "5000.00"}),
        Account.from_dict({"code": "1010", "name": "Petty Cash", "isCash": True, "balance": "150.00"}),
        Account.from_dict({"code": "1020", "name": "City Bank", "isBank": True, "balance": "20000.00",
                           "account_number": "0012-3456"}),
        Account.from_dict({"code": "1030", "name": "Mobile Wallet", "balance": "0"}),
        Account.from_dict({"code": "2000", "name": "Accounts Payable", "type": "liability"}),
    ]


@pytest.fixture(scope='function')
def ordered_purchase(orchestrator):
    """PO for 2 x product 1 @ 50 and 1 x product 2 @ 100 (total 200)."""
    data = orchestrator.create_purchase(
        supplier_id=1,
        warehouse_id=1,
        items=[
            {"product_id": 1, "quantity": 2, "price": 50},
            {"product_id": 2, "quantity": 1, "price": 100},
        ],
    )
    return orchestrator.load_purchase(data["id"])


@pytest.fixture(scope='function')
def received_purchase(orchestrator, ordered_purchase):
    orchestrator.perform(ordered_purchase, "receive")
    return orchestrator.load_purchase(ordered_purchase.id)


@pytest.fixture(scope='function')
def offline_api():
    """
    Factory for an ApiClient backed by a RecordingTransport.

    Returns (client, transport); transport.requests lists what was sent.
    """
    clients = []

    def _make(handler=None):
        transport = RecordingTransport(handler)
        client = ApiClient(SANDBOX_URL, token=SANDBOX_TOKEN, transport=transport)
        clients.append(client)
        return client, transport

    yield _make
    for client in clients:
        client.close()

# Overview: Pytest coverage for envelope parsing, bearer auth and failure mapping in the API client.

import json

import httpx
import pytest

from retailflow.api_client import NETWORK_FAILURE_MESSAGE, NetworkFailure, RemoteRejection


class TestEnvelope:
    def test_success_envelope(self, offline_api):
        def handler(request):
            return httpx.Response(200, json={
                "statusCode": 200,
                "message": "Fetched",
                "data": [{"id": 1}],
                "meta": {"total": "37"},
            })

        client, transport = offline_api(handler)
        envelope = client.list_purchases(page=2, status=None)

        assert envelope.status_code == 200
        assert envelope.message == "Fetched"
        assert envelope.data == [{"id": 1}]
        assert envelope.total == 37

        request = transport.requests[0]
        assert request.url.path == "/api/purchases"
        assert request.url.params.get("page") == "2"
        assert "status" not in request.url.params

    def test_bearer_token_on_every_request(self, offline_api):
        client, transport = offline_api()
        client.get_purchase(1)
        client.cancel_purchase(1)
        assert [r.headers["Authorization"] for r in transport.requests] == ["Bearer test-token"] * 2

    def test_no_meta_means_no_total(self, offline_api):
        client, _ = offline_api()
        assert client.get_sale(1).total is None

    def test_verbs_and_paths(self, offline_api):
        client, transport = offline_api()
        client.receive_purchase(5, {"items": []})
        client.approve_purchase_return(6)
        client.process_purchase_return(6, {"processing_notes": "ok"})
        client.refund_purchase_return(6, {"amount": 10})
        client.list_sales(page=3, limit=25)
        client.fund_transfer({"amount": 1})
        client.delete_product(9)

        seen = [(r.method, r.url.path) for r in transport.requests]
        assert seen == [
            ("POST", "/api/purchases/5/receive"),
            ("PATCH", "/api/purchase-returns/6/approve"),
            ("PATCH", "/api/purchase-returns/6/process"),
            ("POST", "/api/purchase-returns/6/refund"),
            ("GET", "/api/sales/list"),
            ("POST", "/api/accounts/fund-transfer"),
            ("DELETE", "/api/products/9"),
        ]
        assert json.loads(transport.requests[2].content) == {"processing_notes": "ok"}
        assert transport.requests[4].url.params.get("limit") == "25"


class TestFailures:
    def test_rejection_message_is_verbatim(self, offline_api):
        def handler(request):
            return httpx.Response(400, json={"statusCode": 400, "message": "Payment amount exceeds due amount"})

        client, _ = offline_api(handler)
        with pytest.raises(RemoteRejection) as exc:
            client.create_payment({"amount": 1})
        assert exc.value.status_code == 400
        assert exc.value.message == "Payment amount exceeds due amount"

    def test_list_of_messages_is_joined(self, offline_api):
        def handler(request):
            return httpx.Response(422, json={"message": ["amount must be positive", "method is required"]})

        client, _ = offline_api(handler)
        with pytest.raises(RemoteRejection) as exc:
            client.create_payment({})
        assert exc.value.message == "amount must be positive; method is required"

    def test_error_key_fallback(self, offline_api):
        client, _ = offline_api(lambda request: httpx.Response(403, json={"error": "Permission denied"}))
        with pytest.raises(RemoteRejection) as exc:
            client.add_cash({"amount": 5})
        assert exc.value.message == "Permission denied"

    def test_non_json_error_body(self, offline_api):
        client, _ = offline_api(lambda request: httpx.Response(502, text="<html>Bad Gateway</html>"))
        with pytest.raises(RemoteRejection) as exc:
            client.get_purchase(1)
        assert exc.value.message == "Request failed with status 502"

    def test_malformed_success_body(self, offline_api):
        client, _ = offline_api(lambda request: httpx.Response(200, json=[1, 2, 3]))
        with pytest.raises(RemoteRejection) as exc:
            client.list_accounts()
        assert exc.value.message == "Malformed response from server"

    def test_network_failure(self, offline_api):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, transport = offline_api(handler)
        with pytest.raises(NetworkFailure) as exc:
            client.create_payment({"amount": 1})
        assert exc.value.message == NETWORK_FAILURE_MESSAGE
        assert isinstance(exc.value.cause, httpx.ConnectError)
        # Never retried
        assert len(transport.requests) == 1

    @pytest.mark.parametrize("error", [httpx.TooManyRedirects, httpx.DecodingError, httpx.ReadTimeout])
    def test_request_errors_are_network_failures(self, offline_api, error):
        def handler(request):
            raise error("request did not complete", request=request)

        client, _ = offline_api(handler)
        with pytest.raises(NetworkFailure) as exc:
            client.get_purchase(1)
        assert exc.value.message == NETWORK_FAILURE_MESSAGE
        assert isinstance(exc.value.cause, error)

# Overview: HTTP client for the remote business API; bearer auth and envelope parsing.

"""
Remote API Client

Every response is an envelope {statusCode, message, data} and list endpoints
may add {meta: {total}}. Failures come in two shapes:

- RemoteRejection: the server answered non-2xx; `message` is the server's own
  text, surfaced verbatim to the user.
- NetworkFailure: the request never completed; a generic message is shown.

Nothing is retried here. A failed mutation is re-initiated by the user.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx


logger = logging.getLogger(__name__)

NETWORK_FAILURE_MESSAGE = "Could not reach the server. Check your connection and try again."


class ApiError(Exception):
    """Base for errors raised after a request was attempted."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RemoteRejection(ApiError):
    """Server returned a non-2xx response."""

    def __init__(self, status_code: int, message: str, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class NetworkFailure(ApiError):
    """Request never completed (connection refused, timeout, DNS...)."""

    def __init__(self, message: str = NETWORK_FAILURE_MESSAGE, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


@dataclass(frozen=True)
class Envelope:
    status_code: int
    message: str
    data: Any
    meta: dict[str, Any] | None = None

    @property
    def total(self) -> int | None:
        if not self.meta:
            return None
        total = self.meta.get("total")
        return int(total) if total is not None else None


def _rejection_message(response: httpx.Response, body: Any) -> str:
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        # NestJS-style validation errors send a list of messages
        if isinstance(message, list):
            message = "; ".join(str(m) for m in message)
        if message:
            return str(message)
    return f"Request failed with status {response.status_code}"


class ApiClient:
    """
    HTTP client wrapper with bearer auth and per-endpoint helpers.

    `transport` lets tests and the sandbox plug an httpx transport in
    (e.g. httpx.WSGITransport around a Flask app).
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.client = httpx.Client(timeout=timeout, transport=transport)

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        json: dict | None = None,
        params: dict | None = None,
    ) -> Envelope:
        url = f"{self.base_url}{path}"
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        try:
            response = self.client.request(method, url, headers=self._headers(), json=json, params=params)
        except httpx.RequestError as exc:
            logger.warning("%s %s failed before a response: %s", method, path, exc)
            raise NetworkFailure(cause=exc) from exc

        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.is_success:
            message = _rejection_message(response, body)
            logger.warning("%s %s rejected (%s): %s", method, path, response.status_code, message)
            raise RemoteRejection(response.status_code, message, body)

        if not isinstance(body, dict):
            raise RemoteRejection(response.status_code, "Malformed response from server", body)

        return Envelope(
            status_code=int(body.get("statusCode", response.status_code)),
            message=body.get("message") or "",
            data=body.get("data"),
            meta=body.get("meta"),
        )

    def get(self, path: str, params: dict | None = None) -> Envelope:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: dict | None = None) -> Envelope:
        return self.request("POST", path, json=json)

    def patch(self, path: str, json: dict | None = None) -> Envelope:
        return self.request("PATCH", path, json=json)

    def delete(self, path: str) -> Envelope:
        return self.request("DELETE", path)

    def close(self):
        self.client.close()

    # =========================================================================
    # PURCHASES
    # =========================================================================

    def list_purchases(self, **params) -> Envelope:
        return self.get("/purchases", params=params or None)

    def get_purchase(self, purchase_id: int) -> Envelope:
        return self.get(f"/purchases/{purchase_id}")

    def create_purchase(self, payload: dict) -> Envelope:
        return self.post("/purchases", json=payload)

    def update_purchase(self, purchase_id: int, payload: dict) -> Envelope:
        return self.patch(f"/purchases/{purchase_id}", json=payload)

    def receive_purchase(self, purchase_id: int, payload: dict) -> Envelope:
        return self.post(f"/purchases/{purchase_id}/receive", json=payload)

    def cancel_purchase(self, purchase_id: int) -> Envelope:
        return self.patch(f"/purchases/{purchase_id}/cancel")

    # =========================================================================
    # PURCHASE RETURNS
    # =========================================================================

    def list_purchase_returns(self, **params) -> Envelope:
        return self.get("/purchase-returns", params=params or None)

    def get_purchase_return(self, return_id: int) -> Envelope:
        return self.get(f"/purchase-returns/{return_id}")

    def create_purchase_return(self, payload: dict) -> Envelope:
        return self.post("/purchase-returns", json=payload)

    def update_purchase_return(self, return_id: int, payload: dict) -> Envelope:
        return self.patch(f"/purchase-returns/{return_id}", json=payload)

    def approve_purchase_return(self, return_id: int, payload: dict | None = None) -> Envelope:
        return self.patch(f"/purchase-returns/{return_id}/approve", json=payload or {})

    def process_purchase_return(self, return_id: int, payload: dict | None = None) -> Envelope:
        return self.patch(f"/purchase-returns/{return_id}/process", json=payload or {})

    def cancel_purchase_return(self, return_id: int) -> Envelope:
        return self.patch(f"/purchase-returns/{return_id}/cancel")

    def refund_purchase_return(self, return_id: int, payload: dict) -> Envelope:
        return self.post(f"/purchase-returns/{return_id}/refund", json=payload)

    # =========================================================================
    # SALES & PAYMENTS
    # =========================================================================

    def list_sales(self, page: int = 1, limit: int = 10) -> Envelope:
        return self.get("/sales/list", params={"page": page, "limit": limit})

    def get_sale(self, sale_id: int) -> Envelope:
        return self.get(f"/sales/{sale_id}")

    def create_sale(self, payload: dict) -> Envelope:
        return self.post("/sales", json=payload)

    def list_payments(self, **params) -> Envelope:
        return self.get("/payments", params=params or None)

    def create_payment(self, payload: dict) -> Envelope:
        return self.post("/payments", json=payload)

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    def list_accounts(self, **params) -> Envelope:
        return self.get("/accounts", params=params or None)

    def get_account_balances(self, date: str | None = None) -> Envelope:
        return self.get("/accounts/balances", params={"date": date})

    def add_cash(self, payload: dict) -> Envelope:
        return self.post("/accounts/add-cash", json=payload)

    def add_bank_balance(self, payload: dict) -> Envelope:
        return self.post("/accounts/add-bank-balance", json=payload)

    def fund_transfer(self, payload: dict) -> Envelope:
        return self.post("/accounts/fund-transfer", json=payload)

    # =========================================================================
    # PRODUCTS
    # =========================================================================

    def create_product(self, payload: dict) -> Envelope:
        return self.post("/products", json=payload)

    def update_product(self, product_id: int, payload: dict) -> Envelope:
        return self.patch(f"/products/{product_id}", json=payload)

    def delete_product(self, product_id: int) -> Envelope:
        return self.delete(f"/products/{product_id}")

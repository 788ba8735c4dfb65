# Overview: Declarative mutation -> resource tag graph and the dispatcher that applies it.

"""
Invalidation Graph

WHY: Financial mutations have effects the UI cannot infer from the shape of
the request. Paying a supplier changes the purchase due, the supplier
balance, the payment list and the paying account's balance. The graph below
is the single place that records those ripples.

CONTRACT:
- Every mutation that writes money or stock invalidates every tag a mounted
  view might read balances, dues or stock from.
- Under-invalidation is a bug (stale balance on screen); over-invalidation
  only costs a refetch. When in doubt, add the tag.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Iterable

from .cache_service import ResourceCache


logger = logging.getLogger(__name__)


# =============================================================================
# RESOURCE TAGS
# =============================================================================

class Tag:
    PURCHASES = "Purchases"
    PURCHASE_RETURNS = "PurchaseReturns"
    SALES = "Sales"
    PAYMENTS = "Payments"
    SUPPLIERS = "Suppliers"
    CUSTOMERS = "Customers"
    PRODUCTS = "Products"
    INVENTORY = "Inventory"
    ACCOUNTS = "Accounts"


# =============================================================================
# MUTATION KINDS
# =============================================================================

PURCHASE_CREATE = "purchase.create"
PURCHASE_UPDATE = "purchase.update"
PURCHASE_RECEIVE = "purchase.receive"
PURCHASE_CANCEL = "purchase.cancel"

PURCHASE_RETURN_CREATE = "purchase_return.create"
PURCHASE_RETURN_UPDATE = "purchase_return.update"
PURCHASE_RETURN_APPROVE = "purchase_return.approve"
PURCHASE_RETURN_PROCESS = "purchase_return.process"
PURCHASE_RETURN_CANCEL = "purchase_return.cancel"
PURCHASE_RETURN_REFUND = "purchase_return.refund"

SALE_CREATE = "sale.create"

PAYMENT_CREATE = "payment.create"

ACCOUNT_ADD_CASH = "account.add_cash"
ACCOUNT_ADD_BANK_BALANCE = "account.add_bank_balance"
ACCOUNT_FUND_TRANSFER = "account.fund_transfer"

PRODUCT_CREATE = "product.create"
PRODUCT_UPDATE = "product.update"
PRODUCT_DELETE = "product.delete"


_RETURN_TAGS = frozenset({Tag.PURCHASE_RETURNS, Tag.PURCHASES, Tag.INVENTORY})
_PAYMENT_TAGS = frozenset({
    Tag.PURCHASES,
    Tag.SALES,
    Tag.SUPPLIERS,
    Tag.CUSTOMERS,
    Tag.PAYMENTS,
    Tag.ACCOUNTS,
})

INVALIDATION_GRAPH = MappingProxyType({
    PURCHASE_CREATE: frozenset({Tag.PURCHASES}),
    PURCHASE_UPDATE: frozenset({Tag.PURCHASES}),
    # Receiving moves stock into the warehouse
    PURCHASE_RECEIVE: frozenset({Tag.PURCHASES, Tag.PRODUCTS, Tag.INVENTORY}),
    PURCHASE_CANCEL: frozenset({Tag.PURCHASES}),

    PURCHASE_RETURN_CREATE: _RETURN_TAGS,
    PURCHASE_RETURN_UPDATE: _RETURN_TAGS,
    PURCHASE_RETURN_APPROVE: _RETURN_TAGS,
    # Processing posts ledger entries alongside the stock change
    PURCHASE_RETURN_PROCESS: _RETURN_TAGS | {Tag.ACCOUNTS},
    PURCHASE_RETURN_CANCEL: _RETURN_TAGS,
    PURCHASE_RETURN_REFUND: frozenset({
        Tag.PURCHASE_RETURNS,
        Tag.PURCHASES,
        Tag.SUPPLIERS,
        Tag.PAYMENTS,
        Tag.ACCOUNTS,
    }),

    # Checkout takes stock and may carry a first payment
    SALE_CREATE: frozenset({Tag.SALES, Tag.INVENTORY, Tag.CUSTOMERS, Tag.PAYMENTS, Tag.ACCOUNTS}),

    # Both Purchases and Sales regardless of payment type
    PAYMENT_CREATE: _PAYMENT_TAGS,

    ACCOUNT_ADD_CASH: frozenset({Tag.ACCOUNTS}),
    ACCOUNT_ADD_BANK_BALANCE: frozenset({Tag.ACCOUNTS}),
    ACCOUNT_FUND_TRANSFER: frozenset({Tag.ACCOUNTS}),

    PRODUCT_CREATE: frozenset({Tag.PRODUCTS, Tag.SUPPLIERS}),
    PRODUCT_UPDATE: frozenset({Tag.PRODUCTS, Tag.SUPPLIERS}),
    PRODUCT_DELETE: frozenset({Tag.PRODUCTS, Tag.SUPPLIERS}),
})


def tags_for(mutation: str) -> frozenset[str]:
    """
    Raises:
        KeyError: mutation kind not in the graph (every mutation must be listed)
    """
    try:
        return INVALIDATION_GRAPH[mutation]
    except KeyError:
        raise KeyError(f"Mutation kind '{mutation}' has no invalidation entry") from None


def mutations_invalidating(tag: str) -> list[str]:
    """Reverse lookup, for auditing which writes refresh a given view."""
    return sorted(kind for kind, tags in INVALIDATION_GRAPH.items() if tag in tags)


class InvalidationDispatcher:
    """Applies the graph to a cache after a mutation succeeds."""

    def __init__(self, cache: ResourceCache, graph=INVALIDATION_GRAPH):
        self.cache = cache
        self.graph = graph

    def dispatch(self, mutation: str, extra_tags: Iterable[str] = ()) -> frozenset[str]:
        if mutation not in self.graph:
            raise KeyError(f"Mutation kind '{mutation}' has no invalidation entry")
        tags = frozenset(self.graph[mutation]) | frozenset(extra_tags)
        logger.info("Mutation %s settled; invalidating %s", mutation, sorted(tags))
        self.cache.invalidate(tags)
        return tags

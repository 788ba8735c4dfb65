"""
Workflow permission keys and the explicit auth context.

The permission catalog itself belongs to the auth collaborator. This module
only names the keys that gate workflow actions, so a screen can ask "may this
user approve a purchase return?" without reaching into global auth state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .validation import ValidationError


# =============================================================================
# PERMISSION KEYS USED BY WORKFLOW ACTIONS
# =============================================================================

class WorkflowPermission:
    """Keys checked before a workflow action is shown or submitted."""
    PURCHASE_CREATE = "purchase.create"
    PURCHASE_UPDATE = "purchase.update"
    PURCHASE_RECEIVE = "purchase.receive"
    PURCHASE_CANCEL = "purchase.cancel"

    PURCHASE_RETURN_CREATE = "purchase-return.create"
    PURCHASE_RETURN_UPDATE = "purchase-return.update"
    PURCHASE_RETURN_APPROVE = "purchase-return.approve"
    PURCHASE_RETURN_PROCESS = "purchase-return.process"
    PURCHASE_RETURN_CANCEL = "purchase-return.cancel"
    PURCHASE_RETURN_REFUND = "purchase-return.refund"

    SALE_CREATE = "sale.create"
    PAYMENT_CREATE = "payment.create"

    ACCOUNT_ADD_CASH = "account.add-cash"
    ACCOUNT_ADD_BANK_BALANCE = "account.add-bank-balance"
    ACCOUNT_FUND_TRANSFER = "account.fund-transfer"

    PRODUCT_CREATE = "product.create"
    PRODUCT_UPDATE = "product.update"
    PRODUCT_DELETE = "product.delete"


# Roles that pass every gate (mirrors the auth collaborator's super admin)
SUPERUSER_ROLES = frozenset({"super_admin", "superadmin"})


class PermissionDeniedError(ValidationError):
    """Raised when the context lacks the permission an action requires."""

    code = "PERMISSION_DENIED"

    def __init__(self, permission: str, message: str | None = None):
        super().__init__(message or f"Missing permission: {permission}")
        self.permission = permission


@dataclass(frozen=True)
class WorkflowContext:
    """
    Who is acting, passed explicitly to the orchestrator.

    `permissions` is whatever the auth collaborator granted the signed-in
    user; it is consumed here only as a boolean gate per action.
    """
    role: str | None = None
    permissions: frozenset[str] = field(default_factory=frozenset)
    user_id: int | None = None

    @classmethod
    def for_user(cls, role: str | None, permissions: Iterable[str], user_id: int | None = None) -> "WorkflowContext":
        return cls(role=role, permissions=frozenset(permissions), user_id=user_id)

    @property
    def is_superuser(self) -> bool:
        return (self.role or "").lower() in SUPERUSER_ROLES

    def allows(self, permission: str | None) -> bool:
        if permission is None:
            return True
        if self.is_superuser:
            return True
        return permission in self.permissions

    def require(self, permission: str | None) -> None:
        if not self.allows(permission):
            raise PermissionDeniedError(permission or "")

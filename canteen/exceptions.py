"""
Custom exception classes and FastAPI exception handlers.

The service layer raises domain-specific errors (InsufficientStockError,
WrongPinError, ...) without importing HTTP concepts. The handler registered
here translates every one of them into the same JSON shape:

    {"detail": "<message>", "error_type": "<tag>", ...structured fields}

Business-rule failures are expected outcomes, each a distinct class with its
own fields so that callers can build specific user-facing messages. They
are never retried. Anything else is an infrastructure failure and is
answered with a generic "try again" message.

Exception hierarchy:
    CanteenError (base)
    ├── InvalidInputError           — malformed input caught by a service
    ├── AccountNotFoundError / MenuItemNotFoundError / OrderNotFoundError
    ├── NotificationNotFoundError
    ├── UnauthorizedAccessError     — wrong role or someone else's resource
    │   └── NotOwnerError           — order items not all owned by the actor
    ├── InvalidCredentialsError / DuplicateEmailError
    ├── InsufficientStockError      — reservation rejected
    ├── StockAlreadyRestoredError   — second restore for one order
    ├── PriceChangedError           — client price differs from the menu
    ├── InvalidPreorderDateError
    ├── InsufficientFundsError      — debit would make a balance negative
    ├── WrongPinError / SelfTransferError
    ├── AlreadyRefundedError
    └── InvalidTransitionError
        ├── AlreadyTerminalError    — order is completed or canceled
        └── AlreadyCompletedError
"""

import uuid
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from canteen.logging_config import get_logger

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class CanteenError(Exception):
    """Base exception for all Canteen API domain errors."""

    status_code: int = 400
    error_type: str = "canteen_error"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)

    def payload(self) -> dict[str, Any]:
        """Structured fields added to the JSON error body."""
        return {}


class InvalidInputError(CanteenError):
    status_code = 422
    error_type = "invalid_input"


# ---------------------------------------------------------------------------
# Lookup and access errors
# ---------------------------------------------------------------------------

class AccountNotFoundError(CanteenError):
    """Raised when a requested account does not exist."""

    status_code = 404
    error_type = "account_not_found"

    def __init__(self, account_id: uuid.UUID | str):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


class MenuItemNotFoundError(CanteenError):
    status_code = 404
    error_type = "menu_item_not_found"

    def __init__(self, item_id: uuid.UUID | str):
        self.item_id = item_id
        super().__init__(f"Menu item {item_id} not found")


class OrderNotFoundError(CanteenError):
    status_code = 404
    error_type = "order_not_found"

    def __init__(self, order_id: uuid.UUID | str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class NotificationNotFoundError(CanteenError):
    status_code = 404
    error_type = "notification_not_found"

    def __init__(self, notification_id: uuid.UUID):
        super().__init__(f"Notification {notification_id} not found")


class UnauthorizedAccessError(CanteenError):
    """Raised when a user attempts to access a resource they don't own."""

    status_code = 403
    error_type = "unauthorized_access"

    def __init__(self, detail: str = "You do not have access to this resource"):
        super().__init__(detail)


class NotOwnerError(UnauthorizedAccessError):
    """Raised when an owner acts on an order that is not entirely theirs."""

    error_type = "not_owner"

    def __init__(self, order_id: uuid.UUID):
        self.order_id = order_id
        super().__init__(
            "You can only act on orders that contain only your items"
        )


class DuplicateEmailError(CanteenError):
    """Raised when attempting to register with an email that's already in use."""

    status_code = 409
    error_type = "duplicate_email"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email {email} is already registered")


class InvalidCredentialsError(CanteenError):
    """Raised when login credentials are incorrect."""

    status_code = 401
    error_type = "invalid_credentials"

    def __init__(self):
        super().__init__("Invalid email or password")


# ---------------------------------------------------------------------------
# Inventory errors
# ---------------------------------------------------------------------------

class InsufficientStockError(CanteenError):
    """
    Raised when a reservation asks for more than an item has in stock.

    Attributes:
        item_id: The first item found short.
        name: Its display name, for the user-facing message.
        requested: Quantity asked for.
        available: Stock at the time of the check.
    """

    status_code = 409
    error_type = "insufficient_stock"

    def __init__(self, item_id: uuid.UUID, name: str, requested: int, available: int):
        self.item_id = item_id
        self.name = name
        self.requested = requested
        self.available = available
        super().__init__(f"Not enough stock for {name}. Available: {available}")

    def payload(self) -> dict[str, Any]:
        return {
            "item_id": str(self.item_id),
            "requested": self.requested,
            "available": self.available,
        }


class StockAlreadyRestoredError(CanteenError):
    status_code = 409
    error_type = "stock_already_restored"

    def __init__(self, order_id: uuid.UUID):
        self.order_id = order_id
        super().__init__(f"Stock for order {order_id} was already restored")


class PriceChangedError(CanteenError):
    """Raised when the price a client checked out with is no longer the menu price."""

    status_code = 409
    error_type = "price_changed"

    def __init__(self, item_id: uuid.UUID, expected: int, current: int):
        self.item_id = item_id
        self.expected = expected
        self.current = current
        super().__init__(
            f"Price of item {item_id} changed from {expected} to {current}; "
            "refresh the menu and try again"
        )

    def payload(self) -> dict[str, Any]:
        return {
            "item_id": str(self.item_id),
            "expected": self.expected,
            "current": self.current,
        }


class InvalidPreorderDateError(CanteenError):
    status_code = 422
    error_type = "invalid_preorder_date"


# ---------------------------------------------------------------------------
# Ledger errors
# ---------------------------------------------------------------------------

class InsufficientFundsError(CanteenError):
    """
    Raised when a debit or transfer would cause a negative balance.

    Attributes:
        account_id: The account that lacks sufficient funds.
        requested: The amount the caller tried to debit.
        available: The current balance of the account.
    """

    status_code = 422
    error_type = "insufficient_funds"

    def __init__(self, account_id: uuid.UUID, requested: int, available: int):
        self.account_id = account_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient funds: requested {requested}, available {available}"
        )

    def payload(self) -> dict[str, Any]:
        return {"requested": self.requested, "available": self.available}


class WrongPinError(CanteenError):
    status_code = 403
    error_type = "wrong_pin"

    def __init__(self):
        super().__init__("Incorrect PIN")


class SelfTransferError(CanteenError):
    status_code = 422
    error_type = "self_transfer"

    def __init__(self):
        super().__init__("You cannot send money to yourself")


class AlreadyRefundedError(CanteenError):
    status_code = 409
    error_type = "already_refunded"

    def __init__(self, order_id: uuid.UUID):
        self.order_id = order_id
        super().__init__(f"Order {order_id} has already been refunded")


# ---------------------------------------------------------------------------
# Order lifecycle errors
# ---------------------------------------------------------------------------

class InvalidTransitionError(CanteenError):
    status_code = 409
    error_type = "invalid_transition"

    def __init__(self, order_id: uuid.UUID, current: str, target: str):
        self.order_id = order_id
        self.current = current
        self.target = target
        super().__init__(f"Order {order_id} cannot move from {current} to {target}")

    def payload(self) -> dict[str, Any]:
        return {"current": self.current, "target": self.target}


class AlreadyTerminalError(InvalidTransitionError):
    error_type = "already_terminal"

    def __init__(self, order_id: uuid.UUID, current: str, target: str = "canceled"):
        super().__init__(order_id, current, target)
        self.detail = f"Order {order_id} is already {current}"
        self.args = (self.detail,)


class AlreadyCompletedError(AlreadyTerminalError):
    error_type = "already_completed"

    def __init__(self, order_id: uuid.UUID):
        super().__init__(order_id, "completed", "completed")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers with the FastAPI application.

    Every CanteenError becomes {"detail", "error_type", **payload()} with the
    class's status code. Unexpected exceptions become a generic 500 that
    does not leak internals. Called once from main.py.
    """

    @app.exception_handler(CanteenError)
    async def canteen_error_handler(request: Request, exc: CanteenError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error_type": exc.error_type, **exc.payload()},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error",
            method=request.method,
            path=request.url.path,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Something went wrong. Please try again.",
                "error_type": "internal_error",
            },
        )

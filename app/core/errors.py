# app/core/errors.py
from enum import Enum


class CartError(Exception):
    """
    Base class for every recoverable error raised by the cart engine.

    Each subclass carries the HTTP status the API layer answers with,
    so routers never need to translate errors one by one.
    """

    status_code: int = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class CartValidationError(CartError):
    """Bad input rejected before any state change (quantity, empty cart...)."""

    status_code = 400


class NotFoundError(CartError):
    """A line, cart, offer or catalog item does not exist."""

    status_code = 404


class TransientRemoteError(CartError):
    """The remote store was unreachable or refused a write."""

    status_code = 503


class AuthenticationRequired(CartError):
    """No resolvable owner (or an invalid access token)."""

    status_code = 401


class CorruptLocalStateError(CartError):
    """
    The persisted local snapshot could not be decoded.

    Only ever raised and absorbed inside the local snapshot store.
    """


class OfferRejectionReason(str, Enum):
    INVALID_CODE = "invalid_code"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    NOT_STARTED = "not_started"
    MIN_ORDER_NOT_MET = "min_order_not_met"
    USAGE_LIMIT_REACHED = "usage_limit_reached"
    ALREADY_APPLIED = "already_applied"


class OfferRejected(CartError):
    """An offer code could not be applied; `reason` tells the UI which message to show."""

    status_code = 400

    def __init__(self, reason: OfferRejectionReason, detail: str):
        super().__init__(detail)
        self.reason = reason

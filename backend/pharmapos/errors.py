# Overview: Error taxonomy shared by services and routes.

"""
Sale transaction errors.

Every service failure is one of four kinds, each with a fixed HTTP status:

- InvalidRequestError (400): malformed, missing or non-positive input.
  Raised before any write.
- NotFoundError (404): item, sale or return does not exist or does not belong
  to the caller's branch.
- ConflictError (409): a business rule rejected the operation (insufficient
  stock, return already processed, refund already issued).
- StorageError (500): transaction or connection failure.

No error path leaves a partially applied mutation behind: every caller-visible
error means nothing was committed.
"""

from __future__ import annotations


class SaleTransactionError(Exception):
    """Base class for errors raised by the sale transaction core."""

    code = "SALE_TRANSACTION_ERROR"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "code": self.code,
            "details": self.details,
        }


class InvalidRequestError(SaleTransactionError):
    """400-level input problem."""

    code = "INVALID_REQUEST"
    status_code = 400


class NotFoundError(SaleTransactionError):
    code = "NOT_FOUND"
    status_code = 404


class ItemNotFound(NotFoundError):
    code = "ITEM_NOT_FOUND"


class SaleNotFound(NotFoundError):
    code = "SALE_NOT_FOUND"


class ReturnNotFound(NotFoundError):
    code = "RETURN_NOT_FOUND"


class ConflictError(SaleTransactionError):
    """409-level business rule conflict."""

    code = "CONFLICT"
    status_code = 409


class InsufficientStock(ConflictError):
    code = "INSUFFICIENT_STOCK"


class ReturnAlreadyProcessed(ConflictError):
    code = "RETURN_ALREADY_PROCESSED"


class RefundAlreadyProcessed(ConflictError):
    code = "REFUND_ALREADY_PROCESSED"


class RefundExceedsSaleTotal(ConflictError):
    code = "REFUND_EXCEEDS_SALE_TOTAL"


class StorageError(SaleTransactionError):
    """Transaction or connection failure; the unit of work was rolled back."""

    code = "STORAGE_FAILURE"
    status_code = 500

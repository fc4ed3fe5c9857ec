# services/errors.py
"""
Domain error taxonomy.

Every error raised by the service layer is an `AppError`. The category
(validation / auth / not-found / conflict / storage / internal) fixes the
envelope code prefix and the HTTP status; subclasses only add a default
message so callers and tests can match on the precise failure.
"""
from __future__ import annotations


class AppError(Exception):
    code = "INT-500"
    status_code = 500
    default_message = "Internal Server Error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


# ---------------------------------------------------------------------------
# Validation: malformed or out-of-range input, rejected before any write
# ---------------------------------------------------------------------------

class ValidationError(AppError):
    code = "VAL-400"
    status_code = 400
    default_message = "Invalid request"


class InvalidAmount(ValidationError):
    default_message = "Amount must be positive with at most 4 decimal places"


class SamePocket(ValidationError):
    default_message = "Cannot transfer to the same pocket"


class UnknownCurrency(ValidationError):
    default_message = "Unknown currency code"


class InsufficientFunds(ValidationError):
    default_message = "Insufficient funds in source pocket"


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class AuthError(AppError):
    code = "AUTH-401"
    status_code = 401
    default_message = "Not authenticated"


class InvalidCredentials(AuthError):
    default_message = "Invalid credentials"


class InvalidToken(AuthError):
    default_message = "Invalid token"


class TokenExpired(AuthError):
    default_message = "Token expired"


# ---------------------------------------------------------------------------
# Not found / not owned (never reveals other users' rows)
# ---------------------------------------------------------------------------

class NotFoundError(AppError):
    code = "NOT-404"
    status_code = 404
    default_message = "Not found"


class UnknownAsset(NotFoundError):
    default_message = "Unknown asset"


# ---------------------------------------------------------------------------
# Conflict: well-formed input, operation currently illegal
# ---------------------------------------------------------------------------

class ConflictError(AppError):
    code = "CONFLICT-409"
    status_code = 409
    default_message = "Conflict"


class CannotDeleteDefault(ConflictError):
    default_message = "The default pocket cannot be deleted"


class PocketInUse(ConflictError):
    default_message = "Pocket still has transactions"


class AlreadyHeld(ConflictError):
    default_message = "Asset is already in your portfolio"


class AlreadyDeleted(ConflictError):
    default_message = "Transaction is already deleted"


class NotDeleted(ConflictError):
    default_message = "Transaction is not deleted"


class TransferLegImmutable(ConflictError):
    default_message = "Transfer legs cannot be edited; delete the transfer and create a new one"


class TransferNotRestorable(ConflictError):
    default_message = "Transfer cannot be restored because both legs now sit in the same pocket"


class BaseCurrencyLocked(ConflictError):
    default_message = "Base currency cannot change once transactions exist"


class TokenReuseDetected(ConflictError):
    default_message = "Security alert: token reuse detected"


# ---------------------------------------------------------------------------
# Storage / internal
# ---------------------------------------------------------------------------

class DatabaseError(AppError):
    code = "DB-500"
    status_code = 500
    default_message = "Internal Server Error"


class InternalError(AppError):
    code = "INT-500"
    status_code = 500

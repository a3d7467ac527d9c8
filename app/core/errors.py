# app/core/errors.py
from __future__ import annotations


class TokenLedgerError(Exception):
    """
    Base class for every rejected ledger operation.

    `code` is the category returned to callers, `status_code` the HTTP mapping.
    """

    code = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "error": self.code, "message": self.message}


class ValidationError(TokenLedgerError):
    code = "validation_error"
    status_code = 400


class AuthenticationError(TokenLedgerError):
    code = "authentication_error"
    status_code = 401


class AuthorizationError(TokenLedgerError):
    code = "authorization_error"
    status_code = 403


class NotFoundError(TokenLedgerError):
    code = "not_found"
    status_code = 404


class ConflictError(TokenLedgerError):
    code = "conflict"
    status_code = 409


class StateError(TokenLedgerError):
    code = "state_error"
    status_code = 409


class TransactionError(TokenLedgerError):
    code = "transaction_error"
    status_code = 503

# app/services/notification_messages.py
"""
Title/message templates for ledger notifications.

Each builder returns a (title, message) pair; callers pick the recipient.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional, Tuple

Message = Tuple[str, str]


def request_submitted(buyer_name: str, tokens: int, property_name: str) -> Message:
    return (
        "New Token Purchase Request",
        f"{buyer_name} has requested to purchase {tokens} tokens for {property_name}",
    )


def request_approved(property_name: str) -> Message:
    return (
        "Token Request Approved",
        f"Your token purchase request for {property_name} has been approved. "
        "Please submit payment proof.",
    )


def request_rejected(property_name: str, reason: Optional[str] = None) -> Message:
    if reason:
        return (
            "Token Request Rejected",
            f"Your token purchase request for {property_name} was rejected: {reason}",
        )
    return (
        "Token Request Rejected",
        f"Your token purchase request for {property_name} was rejected.",
    )


def payment_proof_submitted(buyer_name: str, property_name: str) -> Message:
    return (
        "Payment Proof Submitted",
        f"{buyer_name} has submitted payment proof for {property_name}. "
        "Please review and confirm.",
    )


def payment_confirmed(property_name: str) -> Message:
    return (
        "Payment Confirmed",
        f"Your payment for {property_name} has been confirmed. Tokens will be assigned shortly.",
    )


def tokens_assigned(tokens: int, property_name: str) -> Message:
    return (
        "Tokens Assigned",
        f"{tokens} tokens for {property_name} have been assigned to your portfolio.",
    )


def request_cancelled(cancelled_by: str, property_name: str) -> Message:
    return (
        "Token Request Cancelled",
        f"The token purchase request for {property_name} was cancelled by the {cancelled_by}.",
    )


def token_sold(
    buyer_name: str, tokens: int, symbol: str, amount: Decimal, currency: str
) -> Message:
    return (
        "Token Sold!",
        f"{buyer_name} purchased {tokens} {symbol} tokens from your listing "
        f"for {amount} {currency}",
    )

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.purchase_request import TokenPurchaseRequest
from app.schemas.primitives import Money

RequestAction = Literal[
    "approve",
    "reject",
    "uploadPaymentProof",
    "confirmPayment",
    "assignTokens",
    "complete",
    "cancel",
    "signAgreement",
]


class PurchaseRequestCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tokenOfferingId: uuid.UUID
    tokensRequested: int
    paymentMethod: str = Field(..., min_length=1, max_length=64)
    message: Optional[str] = Field(default=None, max_length=2000)
    investmentPurpose: Optional[str] = Field(default=None, max_length=2000)
    buyerPhone: Optional[str] = None
    buyerAddress: Optional[str] = None


class PurchaseRequestActionBody(BaseModel):
    """
    One PATCH body for every workflow step; fields beyond `action`
    are read only by the step that needs them.
    """
    model_config = ConfigDict(extra="forbid")

    action: RequestAction
    paymentInstructions: Optional[str] = None
    rejectionReason: Optional[str] = None
    paymentProof: Optional[str] = None
    paymentMethod: Optional[str] = None
    transactionId: Optional[str] = None
    tokensAssigned: Optional[int] = None
    documentUrl: Optional[str] = None


class PurchaseRequestOut(BaseModel):
    id: uuid.UUID
    requestId: int
    tokenOfferingId: uuid.UUID
    propertyId: uuid.UUID

    buyerId: str
    buyerName: str
    buyerEmail: str
    buyerPhone: Optional[str] = None
    buyerAddress: Optional[str] = None
    sellerId: str
    sellerName: str
    sellerEmail: str

    tokensRequested: int
    pricePerToken: Money
    totalAmount: Money
    currency: str
    message: Optional[str] = None
    proposedPaymentMethod: str
    investmentPurpose: Optional[str] = None
    status: str

    reviewedAt: Optional[datetime] = None
    reviewedBy: Optional[str] = None
    rejectionReason: Optional[str] = None
    sellerPaymentInstructions: Optional[str] = None

    paymentMethod: Optional[str] = None
    paymentProof: Optional[str] = None
    paymentSubmittedAt: Optional[datetime] = None
    paymentConfirmedAt: Optional[datetime] = None
    paymentConfirmedBy: Optional[str] = None
    paymentTransactionId: Optional[str] = None

    tokensAssigned: int
    tokensAssignedAt: Optional[datetime] = None

    agreementDocumentUrl: Optional[str] = None
    agreementSignedByBuyer: bool
    agreementSignedBySeller: bool
    agreementSignedAt: Optional[datetime] = None

    completedAt: Optional[datetime] = None
    cancelledAt: Optional[datetime] = None
    cancelledBy: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, r: TokenPurchaseRequest) -> "PurchaseRequestOut":
        return cls(
            id=r.id,
            requestId=r.request_number,
            tokenOfferingId=r.token_offering_id,
            propertyId=r.property_id,
            buyerId=r.buyer_id,
            buyerName=r.buyer_name,
            buyerEmail=r.buyer_email,
            buyerPhone=r.buyer_phone,
            buyerAddress=r.buyer_address,
            sellerId=r.seller_id,
            sellerName=r.seller_name,
            sellerEmail=r.seller_email,
            tokensRequested=r.tokens_requested,
            pricePerToken=r.price_per_token,
            totalAmount=r.total_amount,
            currency=r.currency,
            message=r.message,
            proposedPaymentMethod=r.proposed_payment_method,
            investmentPurpose=r.investment_purpose,
            status=r.status,
            reviewedAt=r.reviewed_at,
            reviewedBy=r.reviewed_by,
            rejectionReason=r.rejection_reason,
            sellerPaymentInstructions=r.seller_payment_instructions,
            paymentMethod=r.payment_method,
            paymentProof=r.payment_proof,
            paymentSubmittedAt=r.payment_submitted_at,
            paymentConfirmedAt=r.payment_confirmed_at,
            paymentConfirmedBy=r.payment_confirmed_by,
            paymentTransactionId=r.payment_transaction_id,
            tokensAssigned=r.tokens_assigned,
            tokensAssignedAt=r.tokens_assigned_at,
            agreementDocumentUrl=r.agreement_document_url,
            agreementSignedByBuyer=r.agreement_signed_by_buyer,
            agreementSignedBySeller=r.agreement_signed_by_seller,
            agreementSignedAt=r.agreement_signed_at,
            completedAt=r.completed_at,
            cancelledAt=r.cancelled_at,
            cancelledBy=r.cancelled_by,
            createdAt=r.created_at,
            updatedAt=r.updated_at,
        )

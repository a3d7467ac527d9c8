# app/api/v1/purchase_requests.py
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.v1.responses import ok
from app.core.auth_deps import get_current_actor
from app.core.errors import ValidationError
from app.core.pagination import PageRequest
from app.db.session import get_db
from app.policies.rbac import Actor
from app.schemas.purchase_requests import (
    PurchaseRequestActionBody,
    PurchaseRequestCreate,
    PurchaseRequestOut,
)
from app.services.purchase_request_service import PurchaseRequestService

router = APIRouter(prefix="/tokens/purchase-requests")

ACTION_MESSAGES = {
    "approve": "Purchase request approved",
    "reject": "Purchase request rejected",
    "uploadPaymentProof": "Payment proof uploaded",
    "confirmPayment": "Payment confirmed",
    "assignTokens": "Tokens assigned successfully",
    "complete": "Purchase request completed",
    "cancel": "Purchase request cancelled",
    "signAgreement": "Agreement signed",
}


@router.get("")
def list_purchase_requests(
    role: str = Query("buyer", pattern="^(buyer|seller)$"),
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    paging = PageRequest.build(page, limit)
    rows, total = PurchaseRequestService().list_requests(
        db, actor, as_role=role, status=status_filter, page=paging
    )
    return ok(
        [PurchaseRequestOut.from_model(r) for r in rows],
        pagination=paging.meta(total),
    )


@router.post("", status_code=status.HTTP_201_CREATED)
def submit_purchase_request(
    body: PurchaseRequestCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    req = PurchaseRequestService().submit_request(
        db,
        actor,
        offering_id=body.tokenOfferingId,
        tokens_requested=body.tokensRequested,
        payment_method=body.paymentMethod,
        message=body.message,
        investment_purpose=body.investmentPurpose,
        buyer_phone=body.buyerPhone,
        buyer_address=body.buyerAddress,
    )
    return ok(PurchaseRequestOut.from_model(req), message="Purchase request submitted successfully")


@router.get("/{request_id}")
def get_purchase_request(
    request_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    req = PurchaseRequestService().get_request(db, actor, request_id)
    return ok(PurchaseRequestOut.from_model(req))


@router.patch("/{request_id}")
def act_on_purchase_request(
    request_id: uuid.UUID,
    body: PurchaseRequestActionBody,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    svc = PurchaseRequestService()
    action = body.action

    if action == "approve":
        req = svc.approve(db, actor, request_id, payment_instructions=body.paymentInstructions)
    elif action == "reject":
        req = svc.reject(db, actor, request_id, reason=body.rejectionReason)
    elif action == "uploadPaymentProof":
        req = svc.upload_payment_proof(
            db,
            actor,
            request_id,
            payment_proof=body.paymentProof or "",
            payment_method=body.paymentMethod,
            transaction_id=body.transactionId,
        )
    elif action == "confirmPayment":
        req = svc.confirm_payment(db, actor, request_id)
    elif action == "assignTokens":
        req = svc.assign_tokens(db, actor, request_id, tokens_assigned=body.tokensAssigned)
    elif action == "complete":
        req = svc.complete(db, actor, request_id)
    elif action == "cancel":
        req = svc.cancel(db, actor, request_id)
    elif action == "signAgreement":
        req = svc.sign_agreement(db, actor, request_id, document_url=body.documentUrl)
    else:
        raise ValidationError(f"Unknown action '{action}'.")

    return ok(PurchaseRequestOut.from_model(req), message=ACTION_MESSAGES[action])

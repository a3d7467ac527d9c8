# app/api/v1/listings.py
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.v1.responses import ok
from app.core.auth_deps import get_current_actor
from app.core.pagination import PageRequest
from app.db.session import get_db
from app.policies.rbac import Actor
from app.schemas.listings import (
    ListingCreate,
    ListingOut,
    ListingPurchase,
    ListingUpdate,
    TransferOut,
)
from app.services.listing_service import DEFAULT_P2P_PAYMENT_METHOD, ListingService

router = APIRouter(prefix="/tokens/listings")


@router.get("")
def list_listings(
    sellerId: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    paging = PageRequest.build(page, limit)
    rows, total = ListingService().list_listings(
        db, seller_id=sellerId, status=status_filter, page=paging
    )
    return ok([ListingOut.from_model(r) for r in rows], pagination=paging.meta(total))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_listing(
    body: ListingCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    listing = ListingService().create_listing(
        db,
        actor,
        investment_id=body.tokenInvestmentId,
        tokens_for_sale=body.tokensForSale,
        price_per_token=body.pricePerToken,
        description=body.description,
        expires_in_days=body.expiresInDays,
        tags=body.tags,
    )
    return ok(ListingOut.from_model(listing), message="Tokens listed for sale successfully")


@router.get("/{listing_id}")
def get_listing(listing_id: uuid.UUID, db: Session = Depends(get_db)):
    return ok(ListingOut.from_model(ListingService().get_listing(db, listing_id)))


@router.patch("/{listing_id}")
def update_listing(
    listing_id: uuid.UUID,
    body: ListingUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    listing = ListingService().update_listing(
        db,
        actor,
        listing_id,
        price_per_token=body.pricePerToken,
        description=body.description,
    )
    return ok(ListingOut.from_model(listing), message="Listing updated successfully")


@router.delete("/{listing_id}")
def cancel_listing(
    listing_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    listing = ListingService().cancel_listing(db, actor, listing_id)
    return ok(ListingOut.from_model(listing), message="Listing cancelled successfully")


@router.post("/{listing_id}/purchase")
def purchase_from_listing(
    listing_id: uuid.UUID,
    body: Optional[ListingPurchase] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    body = body or ListingPurchase()
    result = ListingService().purchase_from_listing(
        db,
        actor,
        listing_id,
        tokens_to_purchase=body.tokensToPurchase,
        payment_method=body.paymentMethod or DEFAULT_P2P_PAYMENT_METHOD,
    )
    return ok(
        TransferOut.from_result(result),
        message=f"Successfully purchased {result.tokens_purchased} tokens",
    )

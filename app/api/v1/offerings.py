# app/api/v1/offerings.py
from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.v1.responses import ok
from app.core.auth_deps import get_current_actor
from app.core.pagination import PageRequest
from app.db.session import get_db
from app.policies.rbac import Actor
from app.schemas.offerings import (
    OfferingCreateRequest,
    OfferingOut,
    OfferingStatusUpdate,
    SupplyReportOut,
)
from app.services.offering_service import OfferingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tokens/offerings")


# ─────────────────────────────────────────────────────────────
# LIST / DETAIL (public)
# ─────────────────────────────────────────────────────────────

@router.get("")
def list_offerings(
    includeAll: bool = Query(False, description="Include non-active offerings"),
    propertyType: Optional[str] = None,
    riskLevel: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    paging = PageRequest.build(page, limit)
    rows, total = OfferingService().list_offerings(
        db,
        include_all=includeAll,
        property_type=propertyType,
        risk_level=riskLevel,
        page=paging,
    )
    return ok(
        [OfferingOut.from_model(o) for o in rows],
        pagination=paging.meta(total),
    )


@router.get("/{offering_id}")
def get_offering(offering_id: uuid.UUID, db: Session = Depends(get_db)):
    detail = OfferingService().get_offering_detail(db, offering_id)
    return ok(
        OfferingOut.from_model(
            detail.offering,
            investorsCount=detail.investors_count,
            fundingProgress=detail.funding_progress,
            currentTokenPrice=detail.current_price,
        )
    )


# ─────────────────────────────────────────────────────────────
# ISSUANCE
# ─────────────────────────────────────────────────────────────

@router.post("", status_code=status.HTTP_201_CREATED)
def create_offering(
    body: OfferingCreateRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    offering = OfferingService().create_offering(
        db,
        actor,
        property_id=body.propertyId,
        token_name=body.tokenName,
        token_symbol=body.tokenSymbol,
        total_tokens=body.totalTokens,
        token_price=body.tokenPrice,
        min_purchase=body.minPurchase,
        max_purchase=body.maxPurchase,
        property_value=body.propertyValue,
        expected_return=body.expectedReturn,
        dividend_frequency=body.dividendFrequency,
        offering_start_date=body.offeringStartDate,
        offering_end_date=body.offeringEndDate,
        description=body.description,
        risk_level=body.riskLevel,
        property_type=body.propertyType,
        annual_appreciation_rate=body.annualAppreciationRate,
    )
    return ok(OfferingOut.from_model(offering), message="Token offering created successfully")


@router.patch("/{offering_id}")
def update_offering_status(
    offering_id: uuid.UUID,
    body: OfferingStatusUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    offering = OfferingService().update_offering_status(db, actor, offering_id, body.status)
    return ok(OfferingOut.from_model(offering), message="Token offering updated successfully")


@router.get("/{offering_id}/supply")
def get_supply_report(
    offering_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    report = OfferingService().supply_report(db, offering_id)
    if not report["conserved"]:
        logger.warning("[offering] supply not conserved offering=%s report=%s", offering_id, report)
    return ok(SupplyReportOut(**report))

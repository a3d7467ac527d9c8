from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.v1.responses import ok
from app.core.pagination import PageRequest
from app.db.session import get_db
from app.services.marketplace_service import MarketplaceService

router = APIRouter(prefix="/tokens")


@router.get("/marketplace")
def browse_marketplace(
    source: str = "all",
    propertyType: Optional[str] = None,
    riskLevel: Optional[str] = None,
    sortBy: str = "newest",
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    paging = PageRequest.build(page, limit)
    items, total = MarketplaceService().browse(
        db,
        source=source,
        property_type=propertyType,
        risk_level=riskLevel,
        sort_by=sortBy,
        page=paging,
    )
    return ok(items, pagination=paging.meta(total))

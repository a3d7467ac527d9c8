from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.v1.responses import ok
from app.core.auth_deps import get_current_actor
from app.db.session import get_db
from app.policies.rbac import Actor
from app.schemas.investments import PortfolioOut
from app.services.portfolio_service import PortfolioService

router = APIRouter(prefix="/tokens")


@router.get("/my-portfolio")
def my_portfolio(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    portfolio = PortfolioService().get_portfolio(db, actor.user_id)
    return ok(PortfolioOut.from_portfolio(portfolio))

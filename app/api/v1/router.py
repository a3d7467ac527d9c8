from fastapi import APIRouter

from app.api.v1.health import router as health_router
from app.api.v1.offerings import router as offerings_router
from app.api.v1.purchase_requests import router as purchase_requests_router
from app.api.v1.listings import router as listings_router
from app.api.v1.portfolio import router as portfolio_router
from app.api.v1.marketplace import router as marketplace_router
from app.api.v1.notifications import router as notifications_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])

# ------------------------------------------------------------------
# PRIMARY ISSUANCE
# ------------------------------------------------------------------
v1_router.include_router(offerings_router, tags=["offerings"])
v1_router.include_router(purchase_requests_router, tags=["purchase-requests"])

# ------------------------------------------------------------------
# SECONDARY MARKET
# ------------------------------------------------------------------
v1_router.include_router(listings_router, tags=["listings"])
v1_router.include_router(marketplace_router, tags=["marketplace"])

# ------------------------------------------------------------------
# INVESTOR
# ------------------------------------------------------------------
v1_router.include_router(portfolio_router, tags=["portfolio"])
v1_router.include_router(notifications_router, tags=["notifications"])

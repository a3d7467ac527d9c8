# app/services/listing_service.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.clock import as_utc, utcnow
from app.core.currency import CurrencyPolicy
from app.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from app.core.money import line_total, money, to_decimal
from app.core.pagination import PageRequest
from app.db.transaction import run_in_transaction
from app.models.enums import (
    InvestmentStatus,
    LedgerAction,
    ListingStatus,
    NotificationPriority,
    NotificationType,
    UserRole,
)
from app.models.investment import TokenInvestment
from app.models.listing import TokenListing
from app.policies.rbac import (
    ACTION_CREATE_LISTING,
    ACTION_PURCHASE_LISTING,
    Actor,
    require_action,
)
from app.services import notification_messages as msgs
from app.services.investment_service import InvestmentService, find_or_create_active_investment
from app.services.ledger_event_service import LedgerEventService
from app.services.notification_service import NotificationService
from app.services.offering_service import OfferingService
from app.services.profile_service import ProfileService
from app.services.property_service import PropertyService

logger = logging.getLogger(__name__)

DEFAULT_P2P_PAYMENT_METHOD = "P2P Transfer"
SELLER_LISTINGS_URL = "/buyers/my-listings"
MAX_LISTING_DAYS = 3650


@dataclass
class TransferResult:
    listing: TokenListing
    buyer_investment: TokenInvestment
    tokens_purchased: int
    total_amount: Decimal
    currency: str


class ListingService:
    def __init__(self, currency_policy: Optional[CurrencyPolicy] = None):
        self.offerings = OfferingService()
        self.investments = InvestmentService()
        self.properties = PropertyService()
        self.profiles = ProfileService()
        self.notifications = NotificationService()
        self.journal = LedgerEventService()
        self.currency = currency_policy or CurrencyPolicy.from_settings()

    # ─────────────────────────────────────────────
    # READS
    # ─────────────────────────────────────────────

    def get_listing(self, db: Session, listing_id: uuid.UUID) -> TokenListing:
        listing = db.get(TokenListing, listing_id)
        if not listing:
            raise NotFoundError("Listing not found.")
        return listing

    def _get_for_update(self, db: Session, listing_id: uuid.UUID) -> TokenListing:
        listing = (
            db.execute(select(TokenListing).where(TokenListing.id == listing_id).with_for_update())
            .scalars()
            .one_or_none()
        )
        if not listing:
            raise NotFoundError("Listing not found.")
        return listing

    def list_listings(
        self,
        db: Session,
        *,
        seller_id: Optional[str] = None,
        status: Optional[str] = None,
        page: Optional[PageRequest] = None,
    ) -> Tuple[List[TokenListing], int]:
        """
        Public browse defaults to active listings; a seller's own view
        defaults to every status.
        """
        page = page or PageRequest.build()

        stmt = select(TokenListing)
        if seller_id:
            stmt = stmt.where(TokenListing.seller_id == seller_id)
        if status:
            try:
                stmt = stmt.where(TokenListing.status == ListingStatus(status).value)
            except ValueError:
                raise ValidationError(f"Invalid status '{status}'.")
        elif not seller_id:
            stmt = stmt.where(TokenListing.status == ListingStatus.active.value)

        total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        rows = (
            db.execute(
                stmt.order_by(TokenListing.listed_at.desc(), TokenListing.id)
                .offset(page.offset)
                .limit(page.limit)
            )
            .scalars()
            .all()
        )
        return list(rows), int(total)

    def listed_quantity(self, db: Session, investment_id: uuid.UUID) -> int:
        """
        Tokens already committed to active listings of one investment.
        """
        listed = db.execute(
            select(func.coalesce(func.sum(TokenListing.tokens_for_sale), 0)).where(
                TokenListing.token_investment_id == investment_id,
                TokenListing.status == ListingStatus.active.value,
            )
        ).scalar_one()
        return int(listed)

    # ─────────────────────────────────────────────
    # CREATE
    # ─────────────────────────────────────────────

    def create_listing(
        self,
        db: Session,
        actor: Actor,
        *,
        investment_id: uuid.UUID,
        tokens_for_sale: int,
        price_per_token: Decimal,
        description: Optional[str] = None,
        expires_in_days: Optional[int] = None,
        tags: Optional[List[str]] = None,
    ) -> TokenListing:
        require_action(actor, ACTION_CREATE_LISTING)

        price = money(to_decimal(price_per_token))
        if tokens_for_sale < 1:
            raise ValidationError("tokensForSale must be at least 1.")
        if price < 0:
            raise ValidationError("pricePerToken cannot be negative.")
        if expires_in_days is not None and not 1 <= expires_in_days <= MAX_LISTING_DAYS:
            raise ValidationError(f"expiresInDays must be between 1 and {MAX_LISTING_DAYS}.")

        inv = self.investments.get(db, investment_id)
        if not inv:
            raise NotFoundError("Investment not found.")
        if inv.investor_id != actor.user_id:
            raise AuthorizationError("You do not own this investment.")
        if inv.status != InvestmentStatus.active.value:
            raise ValidationError("Only active investments can be listed.")

        offering = self.offerings.get_or_404(db, inv.token_id)
        prop = self.properties.get_or_404(db, inv.property_id)
        currency = self.currency.currency_for(prop.country)

        profile = self.profiles.get(db, actor.user_id)
        seller_name = profile.name if profile else (actor.email or "Unknown")
        seller_email = profile.email if profile else (actor.email or "")

        def work() -> TokenListing:
            locked = self.investments.get_for_update(db, investment_id)
            available = locked.tokens_owned - self.listed_quantity(db, investment_id)
            if tokens_for_sale > available:
                raise ConflictError(
                    f"Only {available} tokens available to list "
                    f"({locked.tokens_owned} owned, {locked.tokens_owned - available} already listed)."
                )

            listing = TokenListing(
                seller_id=actor.user_id,
                seller_name=seller_name,
                seller_email=seller_email,
                token_investment_id=locked.id,
                property_id=prop.id,
                token_offering_id=offering.id,
                tokens_for_sale=tokens_for_sale,
                price_per_token=price,
                total_price=line_total(tokens_for_sale, price),
                currency=currency,
                property_name=prop.name,
                token_name=offering.token_name,
                token_symbol=offering.token_symbol,
                property_type=offering.property_type,
                risk_level=offering.risk_level,
                status=ListingStatus.active.value,
                expires_at=(utcnow() + timedelta(days=expires_in_days)) if expires_in_days else None,
                description=description,
                tags=list(tags or []),
            )
            db.add(listing)
            db.flush()
            self.journal.write(
                db,
                offering_id=offering.id,
                action=LedgerAction.LISTING_CREATED,
                actor=actor,
                ref_id=listing.id,
                details={"tokensForSale": tokens_for_sale, "pricePerToken": str(price)},
            )
            return listing

        listing = run_in_transaction(db, work, label="create_listing")
        db.refresh(listing)
        logger.info(
            "[listing] created id=%s investment=%s tokens=%s",
            listing.id, investment_id, tokens_for_sale,
        )
        return listing

    # ─────────────────────────────────────────────
    # TRANSFER
    # ─────────────────────────────────────────────

    def purchase_from_listing(
        self,
        db: Session,
        actor: Actor,
        listing_id: uuid.UUID,
        *,
        tokens_to_purchase: Optional[int] = None,
        payment_method: str = DEFAULT_P2P_PAYMENT_METHOD,
    ) -> TransferResult:
        """
        Moves tokens from the listing's seller to the actor as one unit:
        debit seller, credit buyer, shrink or close the listing.
        """
        require_action(actor, ACTION_PURCHASE_LISTING)

        listing = self.get_listing(db, listing_id)
        if listing.status != ListingStatus.active.value:
            raise StateError(f"Listing is {listing.status}, not available for purchase.")
        if listing.seller_id == actor.user_id:
            raise ValidationError("You cannot purchase your own listing.")

        quantity = listing.tokens_for_sale if tokens_to_purchase is None else tokens_to_purchase
        if quantity < 1:
            raise ValidationError("Must purchase at least 1 token.")
        if quantity > listing.tokens_for_sale:
            raise ValidationError(f"Only {listing.tokens_for_sale} tokens available in this listing.")

        profile = self.profiles.get(db, actor.user_id)
        buyer_name = profile.name if profile else (actor.email or "Unknown")
        buyer_email = profile.email if profile else actor.email
        buyer_phone = profile.phone_number if profile else None

        def work() -> TransferResult:
            # re-read everything under lock; state may have moved since validation
            locked = self._get_for_update(db, listing_id)
            if locked.status != ListingStatus.active.value:
                raise StateError(f"Listing is {locked.status}, not available for purchase.")
            if quantity > locked.tokens_for_sale:
                raise ValidationError(f"Only {locked.tokens_for_sale} tokens available in this listing.")

            offering = self.offerings.get_for_update(db, locked.token_offering_id)
            if not offering:
                raise NotFoundError("Token offering not found.")

            seller_inv = self.investments.get_for_update(db, locked.token_investment_id)
            if not seller_inv:
                raise NotFoundError("Seller investment not found.")
            if seller_inv.status != InvestmentStatus.active.value or seller_inv.tokens_owned < quantity:
                raise StateError("Seller no longer holds enough tokens for this purchase.")

            amount = line_total(quantity, locked.price_per_token)

            # debit
            self.investments.debit(seller_inv, tokens=quantity, total_tokens=offering.total_tokens)
            db.flush()

            # credit
            buyer_inv, created = find_or_create_active_investment(
                db,
                offering=offering,
                investor_id=actor.user_id,
                tokens=quantity,
                price_per_token=locked.price_per_token,
                payment_method=payment_method or DEFAULT_P2P_PAYMENT_METHOD,
                investor_email=buyer_email,
                investor_phone=buyer_phone,
            )

            # listing
            now = utcnow()
            if quantity == locked.tokens_for_sale:
                locked.status = ListingStatus.sold.value
                locked.sold_at = now
                locked.buyer_id = actor.user_id
                locked.buyer_name = buyer_name
                locked.buyer_email = buyer_email
            else:
                locked.tokens_for_sale -= quantity
                locked.total_price = line_total(locked.tokens_for_sale, locked.price_per_token)

            self.journal.write(
                db,
                offering_id=offering.id,
                action=LedgerAction.LISTING_PURCHASED,
                actor=actor,
                ref_id=locked.id,
                details={
                    "tokens": quantity,
                    "amount": str(amount),
                    "sellerInvestmentId": str(seller_inv.id),
                    "buyerInvestmentId": str(buyer_inv.id),
                    "newInvestment": created,
                },
            )
            return TransferResult(
                listing=locked,
                buyer_investment=buyer_inv,
                tokens_purchased=quantity,
                total_amount=amount,
                currency=locked.currency,
            )

        result = run_in_transaction(db, work, label="purchase_from_listing")
        db.refresh(result.listing)
        db.refresh(result.buyer_investment)
        logger.info(
            "[listing] purchased id=%s buyer=%s tokens=%s amount=%s %s",
            result.listing.id, actor.user_id, result.tokens_purchased,
            result.total_amount, result.currency,
        )

        self._notify_seller(db, result, buyer_name)
        return result

    def _notify_seller(self, db: Session, result: TransferResult, buyer_name: str) -> None:
        # the transfer is committed; nothing here may fail it
        try:
            title, text = msgs.token_sold(
                buyer_name,
                result.tokens_purchased,
                result.listing.token_symbol,
                result.total_amount,
                result.currency,
            )
            self.notifications.notify(
                db,
                user_id=result.listing.seller_id,
                title=title,
                message=text,
                related_url=SELLER_LISTINGS_URL,
                type=NotificationType.token_sale,
                related_id=result.listing.id,
                priority=NotificationPriority.high,
            )
        except Exception:
            logger.exception("[listing] seller notification failed listing=%s", result.listing.id)

    # ─────────────────────────────────────────────
    # SELLER MAINTENANCE
    # ─────────────────────────────────────────────

    def cancel_listing(self, db: Session, actor: Actor, listing_id: uuid.UUID) -> TokenListing:
        listing = self.get_listing(db, listing_id)
        if listing.seller_id != actor.user_id:
            raise AuthorizationError("Only the seller can cancel this listing.")

        def work() -> TokenListing:
            locked = self._get_for_update(db, listing_id)
            if locked.status in (ListingStatus.sold.value, ListingStatus.cancelled.value):
                raise StateError(f"Cannot cancel a {locked.status} listing.")
            locked.status = ListingStatus.cancelled.value
            locked.cancelled_at = utcnow()
            self.journal.write(
                db,
                offering_id=locked.token_offering_id,
                action=LedgerAction.LISTING_CANCELLED,
                actor=actor,
                ref_id=locked.id,
            )
            return locked

        listing = run_in_transaction(db, work, label="cancel_listing")
        db.refresh(listing)
        logger.info("[listing] cancelled id=%s", listing.id)
        return listing

    def update_listing(
        self,
        db: Session,
        actor: Actor,
        listing_id: uuid.UUID,
        *,
        price_per_token: Optional[Decimal] = None,
        description: Optional[str] = None,
    ) -> TokenListing:
        listing = self.get_listing(db, listing_id)
        if listing.seller_id != actor.user_id:
            raise AuthorizationError("Only the seller can update this listing.")

        price = money(to_decimal(price_per_token)) if price_per_token is not None else None
        if price is not None and price < 0:
            raise ValidationError("pricePerToken cannot be negative.")

        def work() -> TokenListing:
            locked = self._get_for_update(db, listing_id)
            if locked.status != ListingStatus.active.value:
                raise StateError("Can only update active listings.")
            changes = {}
            if price is not None:
                locked.price_per_token = price
                locked.total_price = line_total(locked.tokens_for_sale, locked.price_per_token)
                changes["pricePerToken"] = str(locked.price_per_token)
            if description is not None:
                locked.description = description
                changes["description"] = True
            self.journal.write(
                db,
                offering_id=locked.token_offering_id,
                action=LedgerAction.LISTING_UPDATED,
                actor=actor,
                ref_id=locked.id,
                details=changes,
            )
            return locked

        listing = run_in_transaction(db, work, label="update_listing")
        db.refresh(listing)
        return listing

    # ─────────────────────────────────────────────
    # EXPIRY SWEEP
    # ─────────────────────────────────────────────

    def expire_listings(self, db: Session, now: Optional[datetime] = None, *, actor: Optional[Actor] = None) -> int:
        """
        Moves active listings past expires_at to expired.
        Meant for an external scheduler; nothing here calls it implicitly.
        """
        cutoff = as_utc(now) or utcnow()
        system = actor or Actor(user_id="system", role=UserRole.SUPERADMIN)

        def work() -> int:
            rows = (
                db.execute(
                    select(TokenListing)
                    .where(
                        TokenListing.status == ListingStatus.active.value,
                        TokenListing.expires_at.is_not(None),
                    )
                    .with_for_update()
                )
                .scalars()
                .all()
            )
            expired = 0
            for listing in rows:
                if as_utc(listing.expires_at) <= cutoff:
                    listing.status = ListingStatus.expired.value
                    self.journal.write(
                        db,
                        offering_id=listing.token_offering_id,
                        action=LedgerAction.LISTING_EXPIRED,
                        actor=system,
                        ref_id=listing.id,
                    )
                    expired += 1
            return expired

        count = run_in_transaction(db, work, label="expire_listings")
        if count:
            logger.info("[listing] expired %d listings", count)
        return count
# app/services/purchase_request_service.py
from __future__ import annotations

import logging
import uuid
from typing import Callable, Iterable, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.currency import CurrencyPolicy
from app.core.errors import AuthorizationError, NotFoundError, StateError, ValidationError
from app.core.money import line_total
from app.core.pagination import PageRequest
from app.db.transaction import run_in_transaction
from app.models.enums import (
    LedgerAction,
    NotificationPriority,
    NotificationType,
    OfferingStatus,
    PurchaseRequestStatus,
)
from app.models.property import Property
from app.models.purchase_request import TokenPurchaseRequest
from app.policies.rbac import ACTION_SUBMIT_PURCHASE_REQUEST, Actor, require_action
from app.services import notification_messages as msgs
from app.services.investment_service import find_or_create_active_investment
from app.services.ledger_event_service import LedgerEventService
from app.services.notification_service import NotificationService
from app.services.offering_service import OfferingService, current_token_price
from app.services.profile_service import ProfileService
from app.services.property_service import PropertyService

logger = logging.getLogger(__name__)

FIRST_REQUEST_NUMBER = 1000

BUYER_REQUESTS_URL = "/buyers/token-requests"
SELLER_REQUESTS_URL = "/landlords/token-requests"
PORTFOLIO_URL = "/buyers/portfolio"

S = PurchaseRequestStatus

CANCELLABLE = {S.pending, S.approved, S.payment_pending, S.payment_confirmed}
TERMINAL = {S.completed, S.cancelled, S.rejected}


class PurchaseRequestService:
    """
    Primary-issuance workflow:

        pending -> approved | rejected
        approved -> payment_pending -> payment_confirmed -> tokens_assigned -> completed
        pending | approved | payment_pending | payment_confirmed -> cancelled
    """

    def __init__(self, currency_policy: Optional[CurrencyPolicy] = None):
        self.offerings = OfferingService()
        self.properties = PropertyService()
        self.profiles = ProfileService()
        self.notifications = NotificationService()
        self.journal = LedgerEventService()
        self.currency = currency_policy or CurrencyPolicy.from_settings()

    # ─────────────────────────────────────────────
    # READS
    # ─────────────────────────────────────────────

    def _get_or_404(self, db: Session, request_id: uuid.UUID) -> TokenPurchaseRequest:
        req = db.get(TokenPurchaseRequest, request_id)
        if not req:
            raise NotFoundError("Purchase request not found.")
        return req

    def _get_for_update(self, db: Session, request_id: uuid.UUID) -> TokenPurchaseRequest:
        req = (
            db.execute(
                select(TokenPurchaseRequest)
                .where(TokenPurchaseRequest.id == request_id)
                .with_for_update()
            )
            .scalars()
            .one_or_none()
        )
        if not req:
            raise NotFoundError("Purchase request not found.")
        return req

    def _parties(
        self, db: Session, actor: Actor, req: TokenPurchaseRequest
    ) -> Tuple[bool, bool, Optional[Property]]:
        prop = self.properties.get(db, req.property_id)
        is_buyer = req.buyer_id == actor.user_id
        is_seller = req.seller_id == actor.user_id or (
            prop is not None and prop.owner_id == actor.user_id
        )
        return is_buyer, is_seller, prop

    def get_request(self, db: Session, actor: Actor, request_id: uuid.UUID) -> TokenPurchaseRequest:
        req = self._get_or_404(db, request_id)
        is_buyer, is_seller, _ = self._parties(db, actor, req)
        if not (is_buyer or is_seller or actor.is_superadmin):
            raise AuthorizationError("Not authorized to view this purchase request.")
        return req

    def list_requests(
        self,
        db: Session,
        actor: Actor,
        *,
        as_role: str = "buyer",
        status: Optional[str] = None,
        page: Optional[PageRequest] = None,
    ) -> Tuple[List[TokenPurchaseRequest], int]:
        page = page or PageRequest.build()

        if as_role == "seller":
            owned = select(Property.id).where(Property.owner_id == actor.user_id)
            stmt = select(TokenPurchaseRequest).where(
                or_(
                    TokenPurchaseRequest.property_id.in_(owned),
                    TokenPurchaseRequest.seller_id == actor.user_id,
                )
            )
        elif as_role == "buyer":
            stmt = select(TokenPurchaseRequest).where(
                or_(
                    TokenPurchaseRequest.buyer_id == actor.user_id,
                    TokenPurchaseRequest.seller_id == actor.user_id,
                )
            )
        else:
            raise ValidationError("role must be 'buyer' or 'seller'.")

        if status:
            try:
                stmt = stmt.where(TokenPurchaseRequest.status == S(status).value)
            except ValueError:
                raise ValidationError(f"Invalid status '{status}'.")

        total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        rows = (
            db.execute(
                stmt.order_by(TokenPurchaseRequest.created_at.desc(), TokenPurchaseRequest.request_number.desc())
                .offset(page.offset)
                .limit(page.limit)
            )
            .scalars()
            .all()
        )
        return list(rows), int(total)

    # ─────────────────────────────────────────────
    # SUBMIT
    # ─────────────────────────────────────────────

    def _next_request_number(self, db: Session) -> int:
        last = db.execute(select(func.max(TokenPurchaseRequest.request_number))).scalar_one()
        return (last + 1) if last is not None else FIRST_REQUEST_NUMBER

    def submit_request(
        self,
        db: Session,
        actor: Actor,
        *,
        offering_id: uuid.UUID,
        tokens_requested: int,
        payment_method: str,
        message: Optional[str] = None,
        investment_purpose: Optional[str] = None,
        buyer_phone: Optional[str] = None,
        buyer_address: Optional[str] = None,
    ) -> TokenPurchaseRequest:
        require_action(actor, ACTION_SUBMIT_PURCHASE_REQUEST)

        offering = self.offerings.get_or_404(db, offering_id)
        if offering.status != OfferingStatus.active.value:
            raise ValidationError("This token offering is not currently active.")
        if tokens_requested < offering.min_purchase:
            raise ValidationError(f"Minimum purchase is {offering.min_purchase} tokens.")
        if offering.max_purchase is not None and tokens_requested > offering.max_purchase:
            raise ValidationError(f"Maximum purchase is {offering.max_purchase} tokens.")
        if tokens_requested > offering.tokens_available:
            raise ValidationError(f"Only {offering.tokens_available} tokens available.")
        if not payment_method or not payment_method.strip():
            raise ValidationError("paymentMethod is required.")

        prop = self.properties.get_or_404(db, offering.property_id)
        buyer = self.profiles.get(db, actor.user_id)
        if not buyer:
            raise NotFoundError("Buyer profile not found.")
        seller = self.profiles.get(db, prop.owner_id)
        if not seller:
            raise NotFoundError("Seller profile not found.")

        currency = self.currency.currency_for(prop.country)
        price = current_token_price(offering)
        total = line_total(tokens_requested, price)

        def work() -> TokenPurchaseRequest:
            req = TokenPurchaseRequest(
                request_number=self._next_request_number(db),
                token_offering_id=offering.id,
                property_id=prop.id,
                buyer_id=actor.user_id,
                buyer_name=buyer.name,
                buyer_email=buyer.email,
                buyer_phone=buyer_phone or buyer.phone_number,
                buyer_address=buyer_address,
                seller_id=prop.owner_id,
                seller_name=seller.name,
                seller_email=seller.email,
                tokens_requested=tokens_requested,
                price_per_token=price,
                total_amount=total,
                currency=currency,
                message=message,
                proposed_payment_method=payment_method.strip(),
                investment_purpose=investment_purpose,
                status=S.pending.value,
            )
            db.add(req)
            db.flush()
            self.journal.write(
                db,
                offering_id=offering.id,
                action=LedgerAction.REQUEST_SUBMITTED,
                actor=actor,
                ref_id=req.id,
                details={"requestId": req.request_number, "tokensRequested": tokens_requested},
            )
            return req

        req = run_in_transaction(db, work, label="submit_request")
        db.refresh(req)
        logger.info(
            "[purchase_request] submitted id=%s number=%s offering=%s tokens=%s",
            req.id, req.request_number, offering.id, tokens_requested,
        )

        title, text = msgs.request_submitted(buyer.name, tokens_requested, prop.name)
        self.notifications.notify(
            db,
            user_id=prop.owner_id,
            title=title,
            message=text,
            related_url=SELLER_REQUESTS_URL,
            type=NotificationType.token_request,
            related_id=req.id,
            priority=NotificationPriority.high,
        )
        return req

    # ─────────────────────────────────────────────
    # TRANSITIONS
    # ─────────────────────────────────────────────

    def _transition(
        self,
        db: Session,
        actor: Actor,
        request_id: uuid.UUID,
        *,
        allowed_from: Iterable[PurchaseRequestStatus],
        to: PurchaseRequestStatus,
        label: str,
        mutate: Optional[Callable[[TokenPurchaseRequest], None]] = None,
    ) -> TokenPurchaseRequest:
        allowed = {s.value for s in allowed_from}

        def work() -> TokenPurchaseRequest:
            req = self._get_for_update(db, request_id)
            if req.status not in allowed:
                raise StateError(f"Cannot {label} a request in status {req.status}.")
            previous = req.status
            if mutate:
                mutate(req)
            req.status = to.value
            self.journal.write(
                db,
                offering_id=req.token_offering_id,
                action=LedgerAction.REQUEST_STATUS_CHANGED,
                actor=actor,
                ref_id=req.id,
                details={"from": previous, "to": to.value},
            )
            return req

        req = run_in_transaction(db, work, label=label)
        db.refresh(req)
        logger.info("[purchase_request] %s id=%s -> %s", label, req.id, req.status)
        return req

    def _require_seller(self, db: Session, actor: Actor, req: TokenPurchaseRequest, verb: str) -> Property:
        _, is_seller, prop = self._parties(db, actor, req)
        if not is_seller:
            raise AuthorizationError(f"Only the seller can {verb} requests.")
        return prop

    def _property_name(self, prop: Optional[Property]) -> str:
        return prop.name if prop and prop.name else "the property"

    def approve(
        self,
        db: Session,
        actor: Actor,
        request_id: uuid.UUID,
        *,
        payment_instructions: Optional[str] = None,
    ) -> TokenPurchaseRequest:
        req = self._get_or_404(db, request_id)
        prop = self._require_seller(db, actor, req, "approve")

        def mutate(r: TokenPurchaseRequest) -> None:
            r.reviewed_at = utcnow()
            r.reviewed_by = actor.user_id
            if payment_instructions:
                r.seller_payment_instructions = payment_instructions

        req = self._transition(
            db, actor, request_id, allowed_from={S.pending}, to=S.approved, label="approve", mutate=mutate
        )
        title, text = msgs.request_approved(self._property_name(prop))
        self.notifications.notify(
            db,
            user_id=req.buyer_id,
            title=title,
            message=text,
            related_url=BUYER_REQUESTS_URL,
            type=NotificationType.token_request,
            related_id=req.id,
            priority=NotificationPriority.high,
        )
        return req

    def reject(
        self,
        db: Session,
        actor: Actor,
        request_id: uuid.UUID,
        *,
        reason: Optional[str] = None,
    ) -> TokenPurchaseRequest:
        req = self._get_or_404(db, request_id)
        prop = self._require_seller(db, actor, req, "reject")

        def mutate(r: TokenPurchaseRequest) -> None:
            r.reviewed_at = utcnow()
            r.reviewed_by = actor.user_id
            r.rejection_reason = reason

        req = self._transition(
            db, actor, request_id, allowed_from={S.pending}, to=S.rejected, label="reject", mutate=mutate
        )
        title, text = msgs.request_rejected(self._property_name(prop), reason)
        self.notifications.notify(
            db,
            user_id=req.buyer_id,
            title=title,
            message=text,
            related_url=BUYER_REQUESTS_URL,
            type=NotificationType.token_request,
            related_id=req.id,
        )
        return req

    def upload_payment_proof(
        self,
        db: Session,
        actor: Actor,
        request_id: uuid.UUID,
        *,
        payment_proof: str,
        payment_method: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ) -> TokenPurchaseRequest:
        req = self._get_or_404(db, request_id)
        is_buyer, _, prop = self._parties(db, actor, req)
        if not is_buyer:
            raise AuthorizationError("Only the buyer can upload payment proof.")
        if not payment_proof or not payment_proof.strip():
            raise ValidationError("paymentProof is required.")

        def mutate(r: TokenPurchaseRequest) -> None:
            r.payment_proof = payment_proof.strip()
            r.payment_submitted_at = utcnow()
            r.payment_method = payment_method or r.proposed_payment_method
            if transaction_id:
                r.payment_transaction_id = transaction_id

        req = self._transition(
            db, actor, request_id,
            allowed_from={S.approved}, to=S.payment_pending, label="upload payment proof for", mutate=mutate,
        )
        title, text = msgs.payment_proof_submitted(req.buyer_name, self._property_name(prop))
        self.notifications.notify(
            db,
            user_id=req.seller_id,
            title=title,
            message=text,
            related_url=SELLER_REQUESTS_URL,
            type=NotificationType.payment,
            related_id=req.id,
            priority=NotificationPriority.high,
        )
        return req

    def confirm_payment(self, db: Session, actor: Actor, request_id: uuid.UUID) -> TokenPurchaseRequest:
        req = self._get_or_404(db, request_id)
        prop = self._require_seller(db, actor, req, "confirm payment for")

        def mutate(r: TokenPurchaseRequest) -> None:
            r.payment_confirmed_at = utcnow()
            r.payment_confirmed_by = actor.user_id

        req = self._transition(
            db, actor, request_id,
            allowed_from={S.payment_pending}, to=S.payment_confirmed, label="confirm payment for", mutate=mutate,
        )
        title, text = msgs.payment_confirmed(self._property_name(prop))
        self.notifications.notify(
            db,
            user_id=req.buyer_id,
            title=title,
            message=text,
            related_url=BUYER_REQUESTS_URL,
            type=NotificationType.payment,
            related_id=req.id,
            priority=NotificationPriority.high,
        )
        return req

    def assign_tokens(
        self,
        db: Session,
        actor: Actor,
        request_id: uuid.UUID,
        *,
        tokens_assigned: Optional[int] = None,
    ) -> TokenPurchaseRequest:
        req = self._get_or_404(db, request_id)
        prop = self._require_seller(db, actor, req, "assign tokens for")

        quantity = req.tokens_requested if tokens_assigned is None else tokens_assigned
        if quantity < 1 or quantity > req.tokens_requested:
            raise ValidationError(
                f"tokensAssigned must be between 1 and {req.tokens_requested}."
            )

        def work() -> TokenPurchaseRequest:
            locked = self._get_for_update(db, request_id)
            if locked.status != S.payment_confirmed.value:
                raise StateError("Payment must be confirmed before assigning tokens.")

            offering = self.offerings.get_for_update(db, locked.token_offering_id)
            if not offering:
                raise NotFoundError("Token offering not found.")
            if offering.status != OfferingStatus.active.value:
                raise StateError(f"Cannot assign tokens on a {offering.status} offering.")
            if quantity > offering.tokens_available:
                raise ValidationError(f"Only {offering.tokens_available} tokens available.")

            inv, created = find_or_create_active_investment(
                db,
                offering=offering,
                investor_id=locked.buyer_id,
                tokens=quantity,
                price_per_token=locked.price_per_token,
                payment_method=locked.payment_method or locked.proposed_payment_method,
                investor_email=locked.buyer_email,
                investor_phone=locked.buyer_phone,
            )

            offering.tokens_sold += quantity
            offering.tokens_available -= quantity
            funded = offering.tokens_available == 0
            if funded:
                offering.status = OfferingStatus.funded.value

            locked.tokens_assigned = quantity
            locked.tokens_assigned_at = utcnow()
            locked.status = S.tokens_assigned.value

            self.journal.write(
                db,
                offering_id=offering.id,
                action=LedgerAction.TOKENS_ASSIGNED,
                actor=actor,
                ref_id=locked.id,
                details={
                    "tokens": quantity,
                    "investmentId": str(inv.id),
                    "newInvestment": created,
                    "tokensAvailable": offering.tokens_available,
                },
            )
            if funded:
                self.journal.write(
                    db,
                    offering_id=offering.id,
                    action=LedgerAction.OFFERING_FUNDED,
                    actor=actor,
                    ref_id=locked.id,
                )
            return locked

        req = run_in_transaction(db, work, label="assign_tokens")
        db.refresh(req)
        logger.info("[purchase_request] assigned id=%s tokens=%s", req.id, quantity)

        title, text = msgs.tokens_assigned(quantity, self._property_name(prop))
        self.notifications.notify(
            db,
            user_id=req.buyer_id,
            title=title,
            message=text,
            related_url=PORTFOLIO_URL,
            type=NotificationType.token_request,
            related_id=req.id,
            priority=NotificationPriority.high,
        )
        return req

    def complete(self, db: Session, actor: Actor, request_id: uuid.UUID) -> TokenPurchaseRequest:
        req = self._get_or_404(db, request_id)
        self._require_seller(db, actor, req, "complete")

        def mutate(r: TokenPurchaseRequest) -> None:
            r.completed_at = utcnow()

        return self._transition(
            db, actor, request_id, allowed_from={S.tokens_assigned}, to=S.completed, label="complete", mutate=mutate
        )

    def cancel(self, db: Session, actor: Actor, request_id: uuid.UUID) -> TokenPurchaseRequest:
        req = self._get_or_404(db, request_id)
        is_buyer, is_seller, prop = self._parties(db, actor, req)
        if not (is_buyer or is_seller):
            raise AuthorizationError("Not authorized to cancel this request.")

        def mutate(r: TokenPurchaseRequest) -> None:
            r.cancelled_at = utcnow()
            r.cancelled_by = actor.user_id

        req = self._transition(
            db, actor, request_id, allowed_from=CANCELLABLE, to=S.cancelled, label="cancel", mutate=mutate
        )

        other = req.seller_id if is_buyer else req.buyer_id
        title, text = msgs.request_cancelled("buyer" if is_buyer else "seller", self._property_name(prop))
        self.notifications.notify(
            db,
            user_id=other,
            title=title,
            message=text,
            related_url=SELLER_REQUESTS_URL if is_buyer else BUYER_REQUESTS_URL,
            type=NotificationType.token_request,
            related_id=req.id,
        )
        return req

    def sign_agreement(
        self,
        db: Session,
        actor: Actor,
        request_id: uuid.UUID,
        *,
        document_url: Optional[str] = None,
    ) -> TokenPurchaseRequest:
        req = self._get_or_404(db, request_id)
        is_buyer, is_seller, _ = self._parties(db, actor, req)
        if not (is_buyer or is_seller):
            raise AuthorizationError("Not authorized to sign this agreement.")

        def work() -> TokenPurchaseRequest:
            locked = self._get_for_update(db, request_id)
            if S(locked.status) in TERMINAL:
                raise StateError(f"Cannot sign an agreement on a {locked.status} request.")
            if document_url:
                locked.agreement_document_url = document_url
            if is_buyer:
                locked.agreement_signed_by_buyer = True
            if is_seller:
                locked.agreement_signed_by_seller = True
            if locked.agreement_signed_by_buyer and locked.agreement_signed_by_seller:
                locked.agreement_signed_at = locked.agreement_signed_at or utcnow()
            return locked

        req = run_in_transaction(db, work, label="sign_agreement")
        db.refresh(req)
        return req

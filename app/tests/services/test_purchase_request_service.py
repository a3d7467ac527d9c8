from decimal import Decimal

import pytest
from sqlalchemy import select

from app.core.errors import AuthorizationError, NotFoundError, StateError, ValidationError
from app.models.enums import InvestmentStatus, LedgerAction, OfferingStatus, UserRole
from app.models.investment import TokenInvestment
from app.models.notification import Notification
from app.models.token_offering import TokenOffering
from app.policies.rbac import Actor
from app.services.ledger_event_service import LedgerEventService
from app.services.purchase_request_service import PurchaseRequestService


def active_investments(db, offering_id):
    return (
        db.execute(
            select(TokenInvestment).where(
                TokenInvestment.token_id == offering_id,
                TokenInvestment.status == InvestmentStatus.active.value,
            )
        )
        .scalars()
        .all()
    )


def notifications_for(db, user_id):
    return db.execute(select(Notification).where(Notification.user_id == user_id)).scalars().all()


# ─────────────────────────────────────────────
# Submission
# ─────────────────────────────────────────────

def test_submit_snapshots_price_currency_and_contacts(db, profiles, seller, buyer, issue):
    offering = issue()
    svc = PurchaseRequestService()

    req = svc.submit_request(
        db, buyer, offering_id=offering.id, tokens_requested=5, payment_method="Bank Transfer",
        message="Looking forward to it",
    )

    assert req.request_number == 1000
    assert req.status == "pending"
    assert req.price_per_token == Decimal("10.00")
    assert req.total_amount == Decimal("50.00")
    assert req.currency == "THB"
    assert req.buyer_name == "Alice Buyer"
    assert req.buyer_phone == "+66 555 0101"
    assert req.seller_id == seller.user_id
    assert req.seller_name == "Olivia Owner"

    second = svc.submit_request(
        db, buyer, offering_id=offering.id, tokens_requested=1, payment_method="Bank Transfer"
    )
    assert second.request_number == 1001

    notes = notifications_for(db, seller.user_id)
    assert len(notes) == 2
    assert {n.title for n in notes} == {"New Token Purchase Request"}
    assert any("Alice Buyer has requested to purchase 5 tokens" in n.message for n in notes)


def test_submit_uses_euro_for_european_property(db, profiles, buyer, issue):
    offering = issue(country="Spain")

    req = PurchaseRequestService().submit_request(
        db, buyer, offering_id=offering.id, tokens_requested=2, payment_method="SEPA"
    )
    assert req.currency == "EUR"


def test_submit_rejects_unmapped_country(db, profiles, buyer, issue):
    offering = issue(country="Atlantis")

    with pytest.raises(ValidationError):
        PurchaseRequestService().submit_request(
            db, buyer, offering_id=offering.id, tokens_requested=2, payment_method="SEPA"
        )


def test_submit_requires_active_offering(db, profiles, buyer, issue):
    offering = issue(activate=False)

    with pytest.raises(ValidationError):
        PurchaseRequestService().submit_request(
            db, buyer, offering_id=offering.id, tokens_requested=1, payment_method="Cash"
        )


def test_submit_enforces_purchase_bounds(db, profiles, buyer, issue):
    offering = issue(min_purchase=5, max_purchase=20)
    svc = PurchaseRequestService()

    with pytest.raises(ValidationError):
        svc.submit_request(db, buyer, offering_id=offering.id, tokens_requested=4, payment_method="Cash")
    with pytest.raises(ValidationError):
        svc.submit_request(db, buyer, offering_id=offering.id, tokens_requested=21, payment_method="Cash")

    req = svc.submit_request(db, buyer, offering_id=offering.id, tokens_requested=20, payment_method="Cash")
    assert req.tokens_requested == 20


def test_oversell_is_rejected_and_offering_unchanged(db, profiles, buyer, other_buyer, issue, acquire):
    offering = issue(total_tokens=10)
    acquire(buyer, offering, 8)

    with pytest.raises(ValidationError):
        PurchaseRequestService().submit_request(
            db, other_buyer, offering_id=offering.id, tokens_requested=3, payment_method="Cash"
        )

    db.expire_all()
    fresh = db.get(TokenOffering, offering.id)
    assert fresh.tokens_sold == 8
    assert fresh.tokens_available == 2


def test_submit_requires_buyer_profile(db, seller, issue):
    offering = issue()
    stranger = Actor(user_id="ghost", role=UserRole.BUYER)

    with pytest.raises(NotFoundError):
        PurchaseRequestService().submit_request(
            db, stranger, offering_id=offering.id, tokens_requested=1, payment_method="Cash"
        )


def test_only_buyers_submit(db, profiles, seller, issue):
    offering = issue()

    with pytest.raises(AuthorizationError):
        PurchaseRequestService().submit_request(
            db, seller, offering_id=offering.id, tokens_requested=1, payment_method="Cash"
        )


# ─────────────────────────────────────────────
# Workflow
# ─────────────────────────────────────────────

def test_full_workflow_creates_investment(db, profiles, seller, buyer, issue):
    offering = issue()
    svc = PurchaseRequestService()

    req = svc.submit_request(db, buyer, offering_id=offering.id, tokens_requested=10, payment_method="Wire")
    req = svc.approve(db, seller, req.id, payment_instructions="Pay to account 123")
    assert req.status == "approved"
    assert req.seller_payment_instructions == "Pay to account 123"
    assert req.reviewed_by == seller.user_id

    req = svc.upload_payment_proof(db, buyer, req.id, payment_proof="s3://proofs/1.pdf", transaction_id="BANK-77")
    assert req.status == "payment_pending"
    assert req.payment_method == "Wire"
    assert req.payment_transaction_id == "BANK-77"

    req = svc.confirm_payment(db, seller, req.id)
    assert req.status == "payment_confirmed"

    req = svc.assign_tokens(db, seller, req.id)
    assert req.status == "tokens_assigned"
    assert req.tokens_assigned == 10

    req = svc.complete(db, seller, req.id)
    assert req.status == "completed"
    assert req.completed_at is not None

    db.expire_all()
    fresh = db.get(TokenOffering, offering.id)
    assert fresh.tokens_sold == 10
    assert fresh.tokens_available == 90

    (inv,) = active_investments(db, offering.id)
    assert inv.investor_id == buyer.user_id
    assert inv.tokens_owned == 10
    assert inv.total_investment == Decimal("100.00")
    assert inv.ownership_percentage == Decimal("10.0000")
    assert inv.payment_status == "success"

    titles = [n.title for n in notifications_for(db, buyer.user_id)]
    assert "Token Request Approved" in titles
    assert "Payment Confirmed" in titles
    assert "Tokens Assigned" in titles


def test_assignment_uses_snapshotted_price(db, profiles, seller, buyer, issue, acquire):
    offering = issue()
    req = acquire(buyer, offering, 4, assign=False)

    offering = db.get(TokenOffering, offering.id)
    offering.token_price = Decimal("99.00")
    db.commit()

    PurchaseRequestService().assign_tokens(db, seller, req.id)

    (inv,) = active_investments(db, offering.id)
    assert inv.total_investment == Decimal("40.00")
    assert inv.purchase_price == Decimal("10.00")


def test_repeat_purchases_increment_one_investment(db, profiles, buyer, issue, acquire):
    offering = issue()
    acquire(buyer, offering, 3)
    acquire(buyer, offering, 7)

    investments = active_investments(db, offering.id)
    assert len(investments) == 1
    assert investments[0].tokens_owned == 10
    assert investments[0].total_investment == Decimal("100.00")


def test_funding_happens_exactly_once(db, profiles, seller, buyer, other_buyer, issue, acquire):
    offering = issue(total_tokens=10)
    first = acquire(buyer, offering, 6, assign=False)
    second = acquire(other_buyer, offering, 4, assign=False)
    late = acquire(buyer, offering, 3, assign=False)

    svc = PurchaseRequestService()
    svc.assign_tokens(db, seller, first.id)
    svc.assign_tokens(db, seller, second.id)

    db.expire_all()
    fresh = db.get(TokenOffering, offering.id)
    assert fresh.status == OfferingStatus.funded.value
    assert fresh.tokens_available == 0
    assert fresh.tokens_sold == 10

    with pytest.raises(StateError):
        svc.assign_tokens(db, seller, late.id)

    funded = LedgerEventService().list_for_offering(db, offering.id, action=LedgerAction.OFFERING_FUNDED)
    assert len(funded) == 1

    held = sum(i.tokens_owned for i in active_investments(db, offering.id))
    assert held == fresh.total_tokens


def test_partial_assignment_bounds(db, profiles, seller, buyer, issue, acquire):
    offering = issue()
    req = acquire(buyer, offering, 5, assign=False)
    svc = PurchaseRequestService()

    with pytest.raises(ValidationError):
        svc.assign_tokens(db, seller, req.id, tokens_assigned=6)
    with pytest.raises(ValidationError):
        svc.assign_tokens(db, seller, req.id, tokens_assigned=0)

    req = svc.assign_tokens(db, seller, req.id, tokens_assigned=3)
    assert req.tokens_assigned == 3
    (inv,) = active_investments(db, offering.id)
    assert inv.tokens_owned == 3


def test_assignment_more_than_available_is_rejected(db, profiles, seller, buyer, other_buyer, issue, acquire):
    offering = issue(total_tokens=10)
    big = acquire(buyer, offering, 8, assign=False)
    acquire(other_buyer, offering, 5)

    with pytest.raises(ValidationError):
        PurchaseRequestService().assign_tokens(db, seller, big.id)

    db.expire_all()
    fresh = db.get(TokenOffering, offering.id)
    assert fresh.tokens_sold == 5


def test_roles_are_enforced_per_step(db, profiles, seller, buyer, other_buyer, issue):
    offering = issue()
    svc = PurchaseRequestService()
    req = svc.submit_request(db, buyer, offering_id=offering.id, tokens_requested=2, payment_method="Cash")

    with pytest.raises(AuthorizationError):
        svc.approve(db, buyer, req.id)
    with pytest.raises(AuthorizationError):
        svc.get_request(db, other_buyer, req.id)

    svc.approve(db, seller, req.id)

    with pytest.raises(AuthorizationError):
        svc.upload_payment_proof(db, seller, req.id, payment_proof="x")
    with pytest.raises(ValidationError):
        svc.upload_payment_proof(db, buyer, req.id, payment_proof="  ")


def test_out_of_order_steps_are_state_errors(db, profiles, seller, buyer, issue):
    offering = issue()
    svc = PurchaseRequestService()
    req = svc.submit_request(db, buyer, offering_id=offering.id, tokens_requested=2, payment_method="Cash")

    with pytest.raises(StateError):
        svc.confirm_payment(db, seller, req.id)
    with pytest.raises(StateError):
        svc.assign_tokens(db, seller, req.id)

    svc.reject(db, seller, req.id, reason="Incomplete KYC")
    with pytest.raises(StateError):
        svc.approve(db, seller, req.id)
    with pytest.raises(StateError):
        svc.cancel(db, buyer, req.id)

    notes = notifications_for(db, buyer.user_id)
    assert any(n.message.endswith("was rejected: Incomplete KYC") for n in notes)


def test_cancel_before_assignment_notifies_other_party(db, profiles, seller, buyer, issue, acquire):
    offering = issue()
    req = acquire(buyer, offering, 2, assign=False)

    req = PurchaseRequestService().cancel(db, buyer, req.id)

    assert req.status == "cancelled"
    assert req.cancelled_by == buyer.user_id
    titles = [n.title for n in notifications_for(db, seller.user_id)]
    assert "Token Request Cancelled" in titles


def test_cancel_after_assignment_is_rejected(db, profiles, seller, buyer, issue, acquire):
    offering = issue()
    req = acquire(buyer, offering, 2)

    with pytest.raises(StateError):
        PurchaseRequestService().cancel(db, seller, req.id)


def test_agreement_needs_both_signatures(db, profiles, seller, buyer, issue):
    offering = issue()
    svc = PurchaseRequestService()
    req = svc.submit_request(db, buyer, offering_id=offering.id, tokens_requested=2, payment_method="Cash")

    req = svc.sign_agreement(db, buyer, req.id, document_url="https://docs.example.com/a.pdf")
    assert req.agreement_signed_by_buyer is True
    assert req.agreement_signed_at is None

    req = svc.sign_agreement(db, seller, req.id)
    assert req.agreement_signed_by_seller is True
    assert req.agreement_signed_at is not None
    assert req.agreement_document_url == "https://docs.example.com/a.pdf"


def test_list_requests_by_role(db, profiles, seller, buyer, other_buyer, issue):
    offering = issue()
    svc = PurchaseRequestService()
    svc.submit_request(db, buyer, offering_id=offering.id, tokens_requested=1, payment_method="Cash")
    svc.submit_request(db, other_buyer, offering_id=offering.id, tokens_requested=1, payment_method="Cash")

    mine, total_mine = svc.list_requests(db, buyer)
    incoming, total_incoming = svc.list_requests(db, seller, as_role="seller")
    pending, _ = svc.list_requests(db, seller, as_role="seller", status="pending")

    assert total_mine == 1
    assert mine[0].buyer_id == buyer.user_id
    assert total_incoming == 2
    assert len(pending) == 2

#app/models/enums.py
from __future__ import annotations
from enum import Enum


class UserRole(str, Enum):
    BUYER = "buyer"
    LANDLORD = "landlord"
    MANAGER = "manager"
    TENANT = "tenant"
    SUPERADMIN = "superadmin"


class OfferingStatus(str, Enum):
    draft = "draft"
    active = "active"
    funded = "funded"
    closed = "closed"
    cancelled = "cancelled"


class PurchaseRequestStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    payment_pending = "payment_pending"
    payment_confirmed = "payment_confirmed"
    tokens_assigned = "tokens_assigned"
    completed = "completed"
    cancelled = "cancelled"


class InvestmentStatus(str, Enum):
    active = "active"
    sold = "sold"
    transferred = "transferred"


class PaymentStatus(str, Enum):
    pending = "pending"
    success = "success"
    failed = "failed"


class ListingStatus(str, Enum):
    active = "active"
    sold = "sold"
    cancelled = "cancelled"
    expired = "expired"


class RiskLevel(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class DividendFrequency(str, Enum):
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    BI_ANNUALLY = "Bi-annually"
    ANNUALLY = "Annually"


class NotificationType(str, Enum):
    application = "application"
    token_request = "token_request"
    payment = "payment"
    maintenance = "maintenance"
    contract = "contract"
    system = "system"
    token_sale = "token_sale"


class NotificationPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class LedgerAction(str, Enum):
    # issuance
    OFFERING_CREATED = "OFFERING_CREATED"
    OFFERING_STATUS_CHANGED = "OFFERING_STATUS_CHANGED"
    OFFERING_FUNDED = "OFFERING_FUNDED"

    # primary workflow
    REQUEST_SUBMITTED = "REQUEST_SUBMITTED"
    REQUEST_STATUS_CHANGED = "REQUEST_STATUS_CHANGED"
    TOKENS_ASSIGNED = "TOKENS_ASSIGNED"

    # p2p
    LISTING_CREATED = "LISTING_CREATED"
    LISTING_UPDATED = "LISTING_UPDATED"
    LISTING_CANCELLED = "LISTING_CANCELLED"
    LISTING_EXPIRED = "LISTING_EXPIRED"
    LISTING_PURCHASED = "LISTING_PURCHASED"

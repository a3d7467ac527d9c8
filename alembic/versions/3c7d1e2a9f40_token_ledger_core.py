"""token ledger core tables

Revision ID: 3c7d1e2a9f40
Revises:
Create Date: 2026-10-19 10:12:31.204118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3c7d1e2a9f40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "properties",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("owner_id", sa.String(length=128), nullable=False),
        sa.Column("country", sa.String(length=128), nullable=True),
        sa.Column("property_type", sa.String(length=64), nullable=True),
        sa.Column("sale_price", sa.Numeric(20, 2), nullable=True),
        sa.Column("is_tokenized", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("investment_type", sa.String(length=32), nullable=True),
        sa.Column("token_offering_id", sa.Uuid(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_properties_owner_id", "properties", ["owner_id"])
    op.create_index("ix_properties_owner_tokenized", "properties", ["owner_id", "is_tokenized"])

    op.create_table(
        "user_profiles",
        sa.Column("user_id", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("email", sa.String(length=256), nullable=False),
        sa.Column("phone_number", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "token_offerings",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column(
            "property_id",
            sa.Uuid(),
            sa.ForeignKey("properties.id", ondelete="RESTRICT"),
            nullable=False,
            unique=True,
        ),
        sa.Column("token_name", sa.String(length=128), nullable=False),
        sa.Column("token_symbol", sa.String(length=16), nullable=False),
        sa.Column("total_tokens", sa.Integer(), nullable=False),
        sa.Column("tokens_sold", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("tokens_available", sa.Integer(), nullable=False),
        sa.Column("token_price", sa.Numeric(20, 2), nullable=False),
        sa.Column("initial_token_price", sa.Numeric(20, 2), nullable=False),
        sa.Column("annual_appreciation_rate", sa.Numeric(6, 2), server_default=sa.text("0"), nullable=False),
        sa.Column("min_purchase", sa.Integer(), nullable=False),
        sa.Column("max_purchase", sa.Integer(), nullable=True),
        sa.Column("property_value", sa.Numeric(20, 2), nullable=False),
        sa.Column("expected_return", sa.String(length=64), nullable=False),
        sa.Column("dividend_frequency", sa.String(length=16), nullable=False),
        sa.Column("offering_start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("offering_end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=16), server_default=sa.text("'draft'"), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("risk_level", sa.String(length=8), nullable=False),
        sa.Column("property_type", sa.String(length=64), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("total_tokens >= 1", name="ck_offering_total_positive"),
        sa.CheckConstraint("tokens_sold >= 0", name="ck_offering_sold_nonnegative"),
        sa.CheckConstraint("tokens_available >= 0", name="ck_offering_available_nonnegative"),
        sa.CheckConstraint("tokens_sold + tokens_available = total_tokens", name="ck_offering_supply_conserved"),
        sa.CheckConstraint("min_purchase >= 1", name="ck_offering_min_purchase"),
    )
    op.create_index("ix_token_offerings_status_created", "token_offerings", ["status", "created_at"])

    op.create_table(
        "token_purchase_requests",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("request_number", sa.Integer(), nullable=False, unique=True),
        sa.Column(
            "token_offering_id",
            sa.Uuid(),
            sa.ForeignKey("token_offerings.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("property_id", sa.Uuid(), sa.ForeignKey("properties.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("buyer_id", sa.String(length=128), nullable=False),
        sa.Column("buyer_name", sa.String(length=256), nullable=False),
        sa.Column("buyer_email", sa.String(length=256), nullable=False),
        sa.Column("buyer_phone", sa.String(length=64), nullable=True),
        sa.Column("buyer_address", sa.String(length=512), nullable=True),
        sa.Column("seller_id", sa.String(length=128), nullable=False),
        sa.Column("seller_name", sa.String(length=256), nullable=False),
        sa.Column("seller_email", sa.String(length=256), nullable=False),
        sa.Column("tokens_requested", sa.Integer(), nullable=False),
        sa.Column("price_per_token", sa.Numeric(20, 2), nullable=False),
        sa.Column("total_amount", sa.Numeric(20, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("proposed_payment_method", sa.String(length=64), nullable=False),
        sa.Column("investment_purpose", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=32), server_default=sa.text("'pending'"), nullable=False),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", sa.String(length=128), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("seller_payment_instructions", sa.Text(), nullable=True),
        sa.Column("payment_method", sa.String(length=64), nullable=True),
        sa.Column("payment_proof", sa.String(length=1024), nullable=True),
        sa.Column("payment_submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_confirmed_by", sa.String(length=128), nullable=True),
        sa.Column("payment_transaction_id", sa.String(length=128), nullable=True),
        sa.Column("tokens_assigned", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("tokens_assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("agreement_document_url", sa.String(length=1024), nullable=True),
        sa.Column("agreement_signed_by_buyer", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("agreement_signed_by_seller", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("agreement_signed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.String(length=128), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("tokens_requested >= 1", name="ck_request_tokens_positive"),
        sa.CheckConstraint("tokens_assigned >= 0", name="ck_request_assigned_nonnegative"),
    )
    op.create_index("ix_token_purchase_requests_token_offering_id", "token_purchase_requests", ["token_offering_id"])
    op.create_index("ix_requests_buyer_status", "token_purchase_requests", ["buyer_id", "status"])
    op.create_index("ix_requests_seller_status", "token_purchase_requests", ["seller_id", "status"])
    op.create_index("ix_requests_created", "token_purchase_requests", ["created_at"])

    op.create_table(
        "token_investments",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("investor_id", sa.String(length=128), nullable=False),
        sa.Column("investor_email", sa.String(length=256), nullable=True),
        sa.Column("investor_phone", sa.String(length=64), nullable=True),
        sa.Column("property_id", sa.Uuid(), sa.ForeignKey("properties.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("token_id", sa.Uuid(), sa.ForeignKey("token_offerings.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("tokens_owned", sa.Integer(), nullable=False),
        sa.Column("purchase_price", sa.Numeric(20, 2), nullable=False),
        sa.Column("total_investment", sa.Numeric(20, 2), nullable=False),
        sa.Column("ownership_percentage", sa.Numeric(9, 4), nullable=False),
        sa.Column("transaction_id", sa.String(length=128), nullable=False, unique=True),
        sa.Column("payment_method", sa.String(length=64), nullable=False),
        sa.Column("payment_status", sa.String(length=16), nullable=False),
        sa.Column("total_dividends_earned", sa.Numeric(20, 2), server_default=sa.text("0"), nullable=False),
        sa.Column("last_dividend_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=16), server_default=sa.text("'active'"), nullable=False),
        sa.Column("purchase_date", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("tokens_owned >= 0", name="ck_investment_tokens_nonnegative"),
    )
    op.create_index(
        "uq_investments_active_owner",
        "token_investments",
        ["investor_id", "token_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )
    op.create_index("ix_investments_investor_status", "token_investments", ["investor_id", "status"])
    op.create_index("ix_investments_property_status", "token_investments", ["property_id", "status"])

    op.create_table(
        "token_listings",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("seller_id", sa.String(length=128), nullable=False),
        sa.Column("seller_name", sa.String(length=256), nullable=False),
        sa.Column("seller_email", sa.String(length=256), nullable=False),
        sa.Column(
            "token_investment_id",
            sa.Uuid(),
            sa.ForeignKey("token_investments.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("property_id", sa.Uuid(), sa.ForeignKey("properties.id", ondelete="RESTRICT"), nullable=False),
        sa.Column(
            "token_offering_id",
            sa.Uuid(),
            sa.ForeignKey("token_offerings.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("tokens_for_sale", sa.Integer(), nullable=False),
        sa.Column("price_per_token", sa.Numeric(20, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(20, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("property_name", sa.String(length=256), nullable=True),
        sa.Column("token_name", sa.String(length=128), nullable=False),
        sa.Column("token_symbol", sa.String(length=16), nullable=False),
        sa.Column("property_type", sa.String(length=64), nullable=True),
        sa.Column("risk_level", sa.String(length=8), nullable=True),
        sa.Column("status", sa.String(length=16), server_default=sa.text("'active'"), nullable=False),
        sa.Column("listed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sold_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("buyer_id", sa.String(length=128), nullable=True),
        sa.Column("buyer_name", sa.String(length=256), nullable=True),
        sa.Column("buyer_email", sa.String(length=256), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("tags", JSON, nullable=False),
        *_timestamps(),
        sa.CheckConstraint("tokens_for_sale >= 1", name="ck_listing_tokens_positive"),
        sa.CheckConstraint("price_per_token >= 0", name="ck_listing_price_nonnegative"),
    )
    op.create_index("ix_token_listings_token_investment_id", "token_listings", ["token_investment_id"])
    op.create_index("ix_listings_seller_status", "token_listings", ["seller_id", "status"])
    op.create_index("ix_listings_status_listed", "token_listings", ["status", "listed_at"])
    op.create_index("ix_listings_offering_status", "token_listings", ["token_offering_id", "status"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.String(length=1000), nullable=False),
        sa.Column("related_id", sa.String(length=128), nullable=True),
        sa.Column("related_url", sa.String(length=512), nullable=True),
        sa.Column("is_read", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("priority", sa.String(length=8), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_notifications_related_id", "notifications", ["related_id"])
    op.create_index("ix_notifications_user_read_created", "notifications", ["user_id", "is_read", "created_at"])
    op.create_index("ix_notifications_user_type_created", "notifications", ["user_id", "type", "created_at"])

    # Append-only journal
    op.create_table(
        "token_ledger_events",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("offering_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("actor_id", sa.String(length=128), nullable=False),
        sa.Column("actor_role", sa.String(length=32), nullable=False),
        sa.Column("ref_id", sa.String(length=128), nullable=True),
        sa.Column("details_json", JSON, nullable=False),
    )
    op.create_index("ix_ledger_events_offering_created", "token_ledger_events", ["offering_id", "created_at"])
    op.create_index("ix_ledger_events_action", "token_ledger_events", ["action"])


def downgrade():
    op.drop_table("token_ledger_events")
    op.drop_table("notifications")
    op.drop_table("token_listings")
    op.drop_index("uq_investments_active_owner", table_name="token_investments")
    op.drop_table("token_investments")
    op.drop_table("token_purchase_requests")
    op.drop_table("token_offerings")
    op.drop_table("user_profiles")
    op.drop_table("properties")

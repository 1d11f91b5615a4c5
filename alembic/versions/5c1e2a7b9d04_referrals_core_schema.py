"""referrals_core_schema

Revision ID: 5c1e2a7b9d04
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "5c1e2a7b9d04"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()"))


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "products",
        _uuid_pk(),
        sa.Column("slug", sa.String(64), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("entity_type", sa.String(16), nullable=False, server_default=sa.text("'individual'")),
        sa.Column("approval_mode", sa.String(16), nullable=False, server_default=sa.text("'manual'")),
        sa.Column("trial_days", sa.Integer(), nullable=False, server_default=sa.text("14")),
        sa.Column("referral_reward_months", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("referral_cap_per_year", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("referral_qualification_days", sa.Integer(), nullable=False, server_default=sa.text("30")),
        sa.Column("referral_chargeback_buffer_days", sa.Integer(), nullable=False, server_default=sa.text("14")),
        sa.Column(
            "config",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("entity_type IN ('individual','organization')", name="ck_products_entity_type"),
        sa.CheckConstraint("approval_mode IN ('manual','auto','sales')", name="ck_products_approval_mode"),
        sa.CheckConstraint("referral_cap_per_year >= 0", name="ck_products_referral_cap_non_negative"),
        sa.CheckConstraint(
            "referral_qualification_days >= 0",
            name="ck_products_qualification_days_non_negative",
        ),
        sa.CheckConstraint(
            "referral_chargeback_buffer_days >= 0",
            name="ck_products_chargeback_buffer_non_negative",
        ),
        sa.CheckConstraint("referral_reward_months > 0", name="ck_products_reward_months_positive"),
        sa.UniqueConstraint("slug", name="uq_products_slug"),
    )

    op.create_table(
        "members",
        _uuid_pk(),
        sa.Column("product_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("invitation_code_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("referred_by_member_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("referral_code", sa.String(32), nullable=True),
        sa.Column("stripe_customer_id", sa.String(64), nullable=True),
        sa.Column("trial_ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("first_paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'trial'")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("status IN ('trial','active','churned','suspended')", name="ck_members_status"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["referred_by_member_id"], ["members.id"]),
        sa.UniqueConstraint("product_id", "email", name="uq_members_product_email"),
        sa.UniqueConstraint("referral_code", name="uq_members_referral_code"),
    )
    op.create_index("idx_members_referred_by", "members", ["referred_by_member_id"])
    op.create_index("idx_members_product_stripe_customer", "members", ["product_id", "stripe_customer_id"])

    op.create_table(
        "invitation_codes",
        _uuid_pk(),
        sa.Column("product_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("code_type", sa.String(16), nullable=False, server_default=sa.text("'standard'")),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'active'")),
        sa.Column("issued_to_email", sa.Text(), nullable=True),
        sa.Column("generated_by_member_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("redeemed_by_member_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "code_type IN ('standard','referral','sales')",
            name="ck_invitation_codes_code_type",
        ),
        sa.CheckConstraint(
            "status IN ('active','redeemed','revoked')",
            name="ck_invitation_codes_status",
        ),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["generated_by_member_id"], ["members.id"]),
        sa.ForeignKeyConstraint(["redeemed_by_member_id"], ["members.id"]),
        sa.UniqueConstraint("code", name="uq_invitation_codes_code"),
    )
    op.create_index("idx_invitation_codes_product_status", "invitation_codes", ["product_id", "status"])
    op.create_index("idx_invitation_codes_generated_by", "invitation_codes", ["generated_by_member_id"])

    op.create_table(
        "referrals",
        _uuid_pk(),
        sa.Column("product_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("referrer_member_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("referred_member_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("referral_code_used", sa.String(32), nullable=False),
        sa.Column("qualification_status", sa.String(16), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("qualified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reward_status", sa.String(16), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("reward_credited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reward_year", sa.Integer(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "qualification_status IN ('pending','qualified','failed')",
            name="ck_referrals_qualification_status",
        ),
        sa.CheckConstraint(
            "reward_status IN ('pending','credited','forfeited','capped')",
            name="ck_referrals_reward_status",
        ),
        sa.CheckConstraint("referrer_member_id <> referred_member_id", name="ck_referrals_no_self_referral"),
        sa.CheckConstraint(
            "qualification_status <> 'qualified' OR qualified_at IS NOT NULL",
            name="ck_referrals_qualified_at_set",
        ),
        sa.CheckConstraint(
            "reward_status <> 'credited' OR reward_credited_at IS NOT NULL",
            name="ck_referrals_credited_at_set",
        ),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["referrer_member_id"], ["members.id"]),
        sa.ForeignKeyConstraint(["referred_member_id"], ["members.id"]),
        sa.UniqueConstraint("referred_member_id", name="uq_referrals_referred_member_id"),
    )
    op.create_index("idx_referrals_referrer", "referrals", ["referrer_member_id"])
    op.create_index(
        "idx_referrals_referrer_reward_year",
        "referrals",
        ["referrer_member_id", "reward_year"],
        postgresql_where=sa.text("reward_status = 'credited'"),
    )
    op.create_index(
        "idx_referrals_pending_rewards",
        "referrals",
        ["qualified_at"],
        postgresql_where=sa.text("qualification_status = 'qualified' AND reward_status = 'pending'"),
    )


def downgrade() -> None:
    op.drop_index("idx_referrals_pending_rewards", table_name="referrals")
    op.drop_index("idx_referrals_referrer_reward_year", table_name="referrals")
    op.drop_index("idx_referrals_referrer", table_name="referrals")
    op.drop_table("referrals")
    op.drop_index("idx_invitation_codes_generated_by", table_name="invitation_codes")
    op.drop_index("idx_invitation_codes_product_status", table_name="invitation_codes")
    op.drop_table("invitation_codes")
    op.drop_index("idx_members_product_stripe_customer", table_name="members")
    op.drop_index("idx_members_referred_by", table_name="members")
    op.drop_table("members")
    op.drop_table("products")

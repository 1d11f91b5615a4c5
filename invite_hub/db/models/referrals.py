from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from invite_hub.db.models.base import Base


class Referral(Base):
    __tablename__ = "referrals"
    __table_args__ = (
        CheckConstraint(
            "qualification_status IN ('pending','qualified','failed')",
            name="ck_referrals_qualification_status",
        ),
        CheckConstraint(
            "reward_status IN ('pending','credited','forfeited','capped')",
            name="ck_referrals_reward_status",
        ),
        CheckConstraint(
            "referrer_member_id <> referred_member_id",
            name="ck_referrals_no_self_referral",
        ),
        CheckConstraint(
            "qualification_status <> 'qualified' OR qualified_at IS NOT NULL",
            name="ck_referrals_qualified_at_set",
        ),
        CheckConstraint(
            "reward_status <> 'credited' OR reward_credited_at IS NOT NULL",
            name="ck_referrals_credited_at_set",
        ),
        Index("idx_referrals_referrer", "referrer_member_id"),
        Index(
            "idx_referrals_referrer_reward_year",
            "referrer_member_id",
            "reward_year",
            postgresql_where=text("reward_status = 'credited'"),
        ),
        Index(
            "idx_referrals_pending_rewards",
            "qualified_at",
            postgresql_where=text(
                "qualification_status = 'qualified' AND reward_status = 'pending'"
            ),
        ),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
        server_default=text("gen_random_uuid()"),
    )
    product_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("products.id"), nullable=False
    )
    referrer_member_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("members.id"), nullable=False
    )
    referred_member_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("members.id"),
        unique=True,
        nullable=False,
    )
    referral_code_used: Mapped[str] = mapped_column(String(32), nullable=False)
    qualification_status: Mapped[str] = mapped_column(
        String(16), nullable=False, server_default=text("'pending'")
    )
    qualified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reward_status: Mapped[str] = mapped_column(
        String(16), nullable=False, server_default=text("'pending'")
    )
    reward_credited_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    reward_year: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from invite_hub.db.models.base import Base


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint(
            "entity_type IN ('individual','organization')",
            name="ck_products_entity_type",
        ),
        CheckConstraint(
            "approval_mode IN ('manual','auto','sales')",
            name="ck_products_approval_mode",
        ),
        CheckConstraint("referral_cap_per_year >= 0", name="ck_products_referral_cap_non_negative"),
        CheckConstraint(
            "referral_qualification_days >= 0",
            name="ck_products_qualification_days_non_negative",
        ),
        CheckConstraint(
            "referral_chargeback_buffer_days >= 0",
            name="ck_products_chargeback_buffer_non_negative",
        ),
        CheckConstraint("referral_reward_months > 0", name="ck_products_reward_months_positive"),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
        server_default=text("gen_random_uuid()"),
    )
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    entity_type: Mapped[str] = mapped_column(
        String(16), nullable=False, server_default=text("'individual'")
    )
    approval_mode: Mapped[str] = mapped_column(
        String(16), nullable=False, server_default=text("'manual'")
    )
    trial_days: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("14"))
    referral_reward_months: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("1")
    )
    referral_cap_per_year: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("10")
    )
    referral_qualification_days: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("30")
    )
    referral_chargeback_buffer_days: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("14")
    )
    config: Mapped[dict[str, object]] = mapped_column(
        JSONB, nullable=False, server_default=text("'{}'::jsonb")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
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

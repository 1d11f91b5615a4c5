from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from invite_hub.db.models.base import Base


class InvitationCode(Base):
    __tablename__ = "invitation_codes"
    __table_args__ = (
        CheckConstraint(
            "code_type IN ('standard','referral','sales')",
            name="ck_invitation_codes_code_type",
        ),
        CheckConstraint(
            "status IN ('active','redeemed','revoked')",
            name="ck_invitation_codes_status",
        ),
        Index("idx_invitation_codes_product_status", "product_id", "status"),
        Index("idx_invitation_codes_generated_by", "generated_by_member_id"),
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
    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    code_type: Mapped[str] = mapped_column(
        String(16), nullable=False, server_default=text("'standard'")
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default=text("'active'"))
    issued_to_email: Mapped[str | None] = mapped_column(Text, nullable=True)
    generated_by_member_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("members.id"),
        nullable=True,
    )
    redeemed_by_member_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("members.id"),
        nullable=True,
    )
    redeemed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )

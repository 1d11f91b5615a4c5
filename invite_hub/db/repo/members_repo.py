from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from invite_hub.db.models.members import Member


class MembersRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, member_id: UUID) -> Member | None:
        return await session.get(Member, member_id)

    @staticmethod
    async def get_by_id_for_update(session: AsyncSession, member_id: UUID) -> Member | None:
        stmt = select(Member).where(Member.id == member_id).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_product_and_email(
        session: AsyncSession,
        *,
        product_id: UUID,
        email: str,
    ) -> Member | None:
        stmt = select(Member).where(
            Member.product_id == product_id,
            Member.email == email.lower(),
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_stripe_customer_for_update(
        session: AsyncSession,
        *,
        product_id: UUID,
        stripe_customer_id: str,
    ) -> Member | None:
        stmt = (
            select(Member)
            .where(
                Member.product_id == product_id,
                Member.stripe_customer_id == stripe_customer_id,
            )
            .with_for_update()
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def get_by_referral_code(session: AsyncSession, referral_code: str) -> Member | None:
        stmt = select(Member).where(Member.referral_code == referral_code)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(session: AsyncSession, *, member: Member) -> Member:
        session.add(member)
        await session.flush()
        return member

    @staticmethod
    async def set_first_paid_at_once(
        session: AsyncSession,
        *,
        member_id: UUID,
        paid_at: datetime,
    ) -> bool:
        stmt = (
            update(Member)
            .where(
                Member.id == member_id,
                Member.first_paid_at.is_(None),
            )
            .values(first_paid_at=paid_at, updated_at=paid_at)
            .returning(Member.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def set_status(
        session: AsyncSession,
        *,
        member_id: UUID,
        status: str,
        now_utc: datetime,
        trial_ends_at: datetime | None = None,
    ) -> int:
        values: dict[str, object] = {"status": status, "updated_at": now_utc}
        if trial_ends_at is not None:
            values["trial_ends_at"] = trial_ends_at
        stmt = update(Member).where(Member.id == member_id).values(**values)
        result = await session.execute(stmt)
        return int(result.rowcount or 0)

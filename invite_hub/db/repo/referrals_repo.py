from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from invite_hub.db.models.members import Member
from invite_hub.db.models.products import Product
from invite_hub.db.models.referrals import Referral
from invite_hub.referrals.constants import (
    QUALIFICATION_QUALIFIED,
    REWARD_CREDITED,
    REWARD_PENDING,
)
from invite_hub.referrals.states import assert_qualification_transition, assert_reward_transition


@dataclass(frozen=True, slots=True)
class RewardCandidate:
    referral_id: UUID
    qualified_at: datetime
    chargeback_buffer_days: int


@dataclass(frozen=True, slots=True)
class ReferralListItem:
    referral_id: UUID
    qualification_status: str
    qualified_at: datetime | None
    reward_status: str
    reward_credited_at: datetime | None
    created_at: datetime
    referred_name: str | None
    referred_email: str
    referred_status: str


class ReferralsRepo:
    @staticmethod
    async def create(session: AsyncSession, *, referral: Referral) -> Referral:
        session.add(referral)
        await session.flush()
        return referral

    @staticmethod
    async def get_by_id(session: AsyncSession, referral_id: UUID) -> Referral | None:
        return await session.get(Referral, referral_id)

    @staticmethod
    async def get_by_id_for_update(
        session: AsyncSession,
        *,
        referral_id: UUID,
    ) -> Referral | None:
        stmt = select(Referral).where(Referral.id == referral_id).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_referrer_id(session: AsyncSession, *, referral_id: UUID) -> UUID | None:
        stmt = select(Referral.referrer_member_id).where(Referral.id == referral_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_referred_member_id_for_update(
        session: AsyncSession,
        *,
        referred_member_id: UUID,
    ) -> Referral | None:
        stmt = (
            select(Referral)
            .where(Referral.referred_member_id == referred_member_id)
            .with_for_update()
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def transition_qualification(
        session: AsyncSession,
        *,
        referral_id: UUID,
        from_status: str,
        to_status: str,
        now_utc: datetime,
    ) -> bool:
        assert_qualification_transition(from_status, to_status)
        values: dict[str, object] = {
            "qualification_status": to_status,
            "updated_at": now_utc,
        }
        if to_status == QUALIFICATION_QUALIFIED:
            values["qualified_at"] = now_utc
        stmt = (
            update(Referral)
            .where(
                Referral.id == referral_id,
                Referral.qualification_status == from_status,
            )
            .values(**values)
            .returning(Referral.id)
            .execution_options(synchronize_session="fetch")
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def transition_reward(
        session: AsyncSession,
        *,
        referral_id: UUID,
        to_status: str,
        now_utc: datetime,
    ) -> bool:
        assert_reward_transition(REWARD_PENDING, to_status)
        values: dict[str, object] = {
            "reward_status": to_status,
            "updated_at": now_utc,
        }
        if to_status == REWARD_CREDITED:
            values["reward_credited_at"] = now_utc
        stmt = (
            update(Referral)
            .where(
                Referral.id == referral_id,
                Referral.reward_status == REWARD_PENDING,
            )
            .values(**values)
            .returning(Referral.id)
            .execution_options(synchronize_session="fetch")
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def count_credited_for_referrer_year(
        session: AsyncSession,
        *,
        referrer_member_id: UUID,
        reward_year: int,
    ) -> int:
        stmt = select(func.count(Referral.id)).where(
            Referral.referrer_member_id == referrer_member_id,
            Referral.reward_status == REWARD_CREDITED,
            Referral.reward_year == reward_year,
        )
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)

    @staticmethod
    async def list_pending_reward_candidates(
        session: AsyncSession,
        *,
        limit: int = 200,
        after: tuple[datetime, UUID] | None = None,
    ) -> list[RewardCandidate]:
        stmt = (
            select(
                Referral.id,
                Referral.qualified_at,
                Product.referral_chargeback_buffer_days,
            )
            .join(Product, Product.id == Referral.product_id)
            .where(
                Referral.qualification_status == QUALIFICATION_QUALIFIED,
                Referral.reward_status == REWARD_PENDING,
                Referral.qualified_at.is_not(None),
            )
            .order_by(Referral.qualified_at.asc(), Referral.id.asc())
            .limit(limit)
        )
        if after is not None:
            after_qualified_at, after_id = after
            stmt = stmt.where(
                or_(
                    Referral.qualified_at > after_qualified_at,
                    and_(
                        Referral.qualified_at == after_qualified_at,
                        Referral.id > after_id,
                    ),
                )
            )
        result = await session.execute(stmt)
        return [
            RewardCandidate(
                referral_id=row.id,
                qualified_at=row.qualified_at,
                chargeback_buffer_days=int(row.referral_chargeback_buffer_days),
            )
            for row in result.all()
        ]

    @staticmethod
    async def count_for_referrer(
        session: AsyncSession,
        *,
        referrer_member_id: UUID,
        qualification_status: str | None = None,
    ) -> int:
        stmt = select(func.count(Referral.id)).where(
            Referral.referrer_member_id == referrer_member_id,
        )
        if qualification_status is not None:
            stmt = stmt.where(Referral.qualification_status == qualification_status)
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)

    @staticmethod
    async def list_recent_for_referrer(
        session: AsyncSession,
        *,
        referrer_member_id: UUID,
        limit: int,
    ) -> list[ReferralListItem]:
        stmt = (
            select(Referral, Member.name, Member.email, Member.status)
            .join(Member, Member.id == Referral.referred_member_id)
            .where(Referral.referrer_member_id == referrer_member_id)
            .order_by(Referral.created_at.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return [
            ReferralListItem(
                referral_id=referral.id,
                qualification_status=referral.qualification_status,
                qualified_at=referral.qualified_at,
                reward_status=referral.reward_status,
                reward_credited_at=referral.reward_credited_at,
                created_at=referral.created_at,
                referred_name=name,
                referred_email=email,
                referred_status=status,
            )
            for referral, name, email, status in result.all()
        ]


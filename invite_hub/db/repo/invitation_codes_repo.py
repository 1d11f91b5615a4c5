from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from invite_hub.db.models.invitation_codes import InvitationCode
from invite_hub.referrals.constants import CODE_STATUS_ACTIVE, CODE_STATUS_REDEEMED


class InvitationCodesRepo:
    @staticmethod
    async def get_by_code(session: AsyncSession, code: str) -> InvitationCode | None:
        stmt = select(InvitationCode).where(InvitationCode.code == code.upper())
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_code_for_update(session: AsyncSession, code: str) -> InvitationCode | None:
        stmt = select(InvitationCode).where(InvitationCode.code == code.upper()).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(session: AsyncSession, *, invitation_code: InvitationCode) -> InvitationCode:
        session.add(invitation_code)
        await session.flush()
        return invitation_code

    @staticmethod
    async def mark_redeemed(
        session: AsyncSession,
        *,
        invitation_code_id: UUID,
        redeemed_by_member_id: UUID,
        redeemed_at: datetime,
    ) -> bool:
        stmt = (
            update(InvitationCode)
            .where(
                InvitationCode.id == invitation_code_id,
                InvitationCode.status == CODE_STATUS_ACTIVE,
            )
            .values(
                status=CODE_STATUS_REDEEMED,
                redeemed_by_member_id=redeemed_by_member_id,
                redeemed_at=redeemed_at,
            )
            .returning(InvitationCode.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

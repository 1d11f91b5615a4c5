from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from invite_hub.db.models.invitation_codes import InvitationCode
from invite_hub.db.models.members import Member
from invite_hub.db.models.products import Product
from invite_hub.db.models.referrals import Referral
from invite_hub.db.session import SessionLocal

UTC = timezone.utc


async def _create_product(**overrides: Any) -> Product:
    values: dict[str, Any] = {
        "slug": f"product-{uuid4().hex[:8]}",
        "name": "Notes",
        "trial_days": 14,
        "referral_reward_months": 1,
        "referral_cap_per_year": 10,
        "referral_qualification_days": 30,
        "referral_chargeback_buffer_days": 14,
        "config": {"monthly_price": 25},
    }
    values.update(overrides)
    async with SessionLocal.begin() as session:
        product = Product(**values)
        session.add(product)
        await session.flush()
        return product


async def _create_member(product: Product, **overrides: Any) -> Member:
    values: dict[str, Any] = {
        "product_id": product.id,
        "email": f"{uuid4().hex[:10]}@example.com",
        "name": "Member",
        "referral_code": f"M-{uuid4().hex[:10].upper()}",
        "stripe_customer_id": f"cus_{uuid4().hex[:14]}",
        "status": "active",
    }
    values.update(overrides)
    async with SessionLocal.begin() as session:
        member = Member(**values)
        session.add(member)
        await session.flush()
        return member


async def _create_referral_row(
    *,
    product: Product,
    referrer: Member,
    referred: Member,
    reward_year: int,
    **overrides: Any,
) -> Referral:
    values: dict[str, Any] = {
        "product_id": product.id,
        "referrer_member_id": referrer.id,
        "referred_member_id": referred.id,
        "referral_code_used": referrer.referral_code or "CODE",
        "reward_year": reward_year,
    }
    values.update(overrides)
    async with SessionLocal.begin() as session:
        referral = Referral(**values)
        session.add(referral)
        await session.flush()
        return referral


async def _create_qualified_referral(
    *,
    product: Product,
    referrer: Member,
    qualified_at: datetime,
    **overrides: Any,
) -> Referral:
    referred = await _create_member(
        product,
        first_paid_at=qualified_at,
        referred_by_member_id=referrer.id,
    )
    return await _create_referral_row(
        product=product,
        referrer=referrer,
        referred=referred,
        reward_year=qualified_at.year,
        qualification_status="qualified",
        qualified_at=qualified_at,
        **overrides,
    )


async def _create_referral_code(product: Product, referrer: Member, **overrides: Any) -> InvitationCode:
    values: dict[str, Any] = {
        "product_id": product.id,
        "code": referrer.referral_code,
        "code_type": "referral",
        "status": "active",
        "generated_by_member_id": referrer.id,
    }
    values.update(overrides)
    async with SessionLocal.begin() as session:
        code = InvitationCode(**values)
        session.add(code)
        await session.flush()
        return code

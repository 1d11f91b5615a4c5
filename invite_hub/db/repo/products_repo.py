from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from invite_hub.db.models.products import Product


class ProductsRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, product_id: UUID) -> Product | None:
        return await session.get(Product, product_id)

    @staticmethod
    async def get_by_slug(session: AsyncSession, slug: str) -> Product | None:
        stmt = select(Product).where(Product.slug == slug)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

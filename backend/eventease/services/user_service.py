"""
Account listing for administrators.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from eventease.models.user import User


async def list_users(db: AsyncSession, page: int = 1, page_size: int = 20) -> tuple[list[User], int]:
    """Newest accounts first."""
    total = (await db.execute(select(func.count(User.id)))).scalar_one()
    result = await db.execute(
        select(User)
        .order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total

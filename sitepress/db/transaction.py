"""Unit-of-work helper for multi-row writes."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession


@asynccontextmanager
async def transaction(db_session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Commit everything written inside the block, or roll it all back.

    Usage:
        async with transaction(db_session):
            db_session.add(version)
            website.draft_version_id = version.id
    """
    try:
        yield db_session
        await db_session.commit()
    except BaseException:
        await db_session.rollback()
        raise

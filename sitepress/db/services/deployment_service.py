"""Read-side queries for deployments."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sitepress.db.models import Deployment


async def list_deployments(
    db_session: AsyncSession,
    website_id: UUID,
    limit: int | None = 20,
    status: str | None = None,
) -> list[Deployment]:
    """List a website's deployments, newest first.

    Args:
        db_session: Database session
        website_id: Website whose deployments to list
        limit: Maximum number of deployments (None for all)
        status: Only return deployments in this status

    Returns:
        List of Deployment objects ordered by created_at descending
    """
    query = (
        select(Deployment)
        .where(Deployment.website_id == website_id)
        .order_by(Deployment.created_at.desc())
    )
    if status:
        query = query.where(Deployment.status == status)
    if limit:
        query = query.limit(limit)

    result = await db_session.execute(query)
    return list(result.scalars().all())


async def get_deployment(db_session: AsyncSession, deployment_id: UUID) -> Deployment | None:
    result = await db_session.execute(select(Deployment).where(Deployment.id == deployment_id))
    return result.scalar_one_or_none()


async def get_latest_deployment(db_session: AsyncSession, website_id: UUID) -> Deployment | None:
    deployments = await list_deployments(db_session, website_id, limit=1)
    return deployments[0] if deployments else None

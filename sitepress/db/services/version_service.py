"""Website version service: snapshots, draft/production pointers and diffs."""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sitepress.db.models import Page, TriggerType, VersionStatus, Website, WebsiteVersion
from sitepress.db.transaction import transaction
from sitepress.lib.errors import (
    NoRevisionsError,
    NotFoundError,
    PartialWriteError,
    Result,
    SitepressError,
)
from sitepress.lib.hooks import (
    AFTER_VERSION_CREATE,
    AFTER_VERSION_PUBLISH,
    AFTER_VERSION_SWITCH,
    hooks,
)

logger = logging.getLogger(__name__)

# Attempts at claiming a version number when concurrent writers collide
VERSION_NUMBER_ATTEMPTS = 3


@dataclass
class VersionPage:
    page_id: UUID
    revision_id: UUID
    title: str
    slug: str


@dataclass
class VersionDetails:
    """A version plus the current metadata of the pages it references."""

    version: WebsiteVersion
    pages: list[VersionPage]
    missing_page_ids: list[UUID] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return self.version.page_count


@dataclass
class VersionComparison:
    """Page ids of two snapshots split into four disjoint buckets."""

    added: list[UUID]
    removed: list[UUID]
    modified: list[UUID]
    unchanged: list[UUID]

    @property
    def summary(self) -> str:
        parts = []
        if self.added:
            parts.append(f"{len(self.added)} page(s) added")
        if self.removed:
            parts.append(f"{len(self.removed)} page(s) removed")
        if self.modified:
            parts.append(f"{len(self.modified)} page(s) modified")
        return ", ".join(parts) if parts else "No changes detected"

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed or self.modified)

    def to_dict(self) -> dict:
        return {
            "added": [str(i) for i in self.added],
            "removed": [str(i) for i in self.removed],
            "modified": [str(i) for i in self.modified],
            "unchanged": [str(i) for i in self.unchanged],
            "summary": self.summary,
        }


def diff_snapshots(old: dict[UUID, UUID], new: dict[UUID, UUID]) -> VersionComparison:
    """Classify page ids by comparing the revision each snapshot points at."""
    added = sorted((pid for pid in new if pid not in old), key=str)
    removed = sorted((pid for pid in old if pid not in new), key=str)
    shared = sorted((pid for pid in new if pid in old), key=str)
    return VersionComparison(
        added=added,
        removed=removed,
        modified=[pid for pid in shared if old[pid] != new[pid]],
        unchanged=[pid for pid in shared if old[pid] == new[pid]],
    )


async def _next_version_number(db_session: AsyncSession, website_id: UUID) -> int:
    result = await db_session.execute(
        select(func.coalesce(func.max(WebsiteVersion.version_number), 0))
        .where(WebsiteVersion.website_id == website_id)
    )
    return (result.scalar() or 0) + 1


async def _snapshot_current_pages(db_session: AsyncSession, website_id: UUID) -> dict[str, str]:
    result = await db_session.execute(
        select(Page.id, Page.current_revision_id)
        .where(Page.website_id == website_id, Page.current_revision_id.is_not(None))
        .order_by(Page.order)
    )
    return {str(page_id): str(revision_id) for page_id, revision_id in result.all()}


async def create_version(
    db_session: AsyncSession,
    website_id: UUID,
    version_name: str | None = None,
    description: str | None = None,
    trigger_type: TriggerType | str = TriggerType.MANUAL,
    created_by: str | None = None,
) -> Result[WebsiteVersion]:
    """Snapshot the website's current page revisions as a new draft version.

    The version row and the website's draft pointer are written in one
    transaction. A concurrent writer claiming the same version number makes
    the unique constraint fail, in which case the number is recomputed.

    Args:
        db_session: Database session
        website_id: Website to snapshot
        version_name: Display name, defaults to ``v<number>``
        description: Optional free-form notes
        trigger_type: Why the version was created
        created_by: Actor identifier (optional)

    Returns:
        Result carrying the created WebsiteVersion
    """
    if await db_session.get(Website, website_id) is None:
        return Result.failure(NotFoundError(f"Website {website_id} not found"))

    snapshot = await _snapshot_current_pages(db_session, website_id)
    if not snapshot:
        return Result.failure(NoRevisionsError())

    trigger = TriggerType(trigger_type).value

    for attempt in range(1, VERSION_NUMBER_ATTEMPTS + 1):
        number = await _next_version_number(db_session, website_id)
        version = WebsiteVersion(
            website_id=website_id,
            version_number=number,
            version_name=version_name or f"v{number}",
            description=description,
            status=VersionStatus.DRAFT.value,
            trigger_type=trigger,
            page_revisions=snapshot,
            created_by=created_by,
        )
        try:
            async with transaction(db_session):
                db_session.add(version)
                await db_session.flush()
                website = await db_session.get(Website, website_id)
                website.draft_version_id = version.id
        except IntegrityError:
            logger.info(
                "Version number %d for website %s already taken (attempt %d/%d)",
                number, website_id, attempt, VERSION_NUMBER_ATTEMPTS,
            )
            continue
        except SQLAlchemyError as exc:
            logger.exception("Failed to create version for website %s", website_id)
            return Result.failure(SitepressError(f"Failed to create version: {exc}"))

        logger.info("Created version %d for website %s", number, website_id)
        await hooks.do_action(AFTER_VERSION_CREATE, version)
        return Result.success(version)

    return Result.failure(
        SitepressError(f"Could not allocate a version number after {VERSION_NUMBER_ATTEMPTS} attempts")
    )


async def get_versions(
    db_session: AsyncSession,
    website_id: UUID,
    status: VersionStatus | str | None = None,
    limit: int | None = None,
    offset: int = 0,
    include_archived: bool = True,
) -> Result[list[WebsiteVersion]]:
    """List a website's versions, newest first.

    Args:
        db_session: Database session
        website_id: Website whose versions to list
        status: Only return versions with this status
        limit: Maximum number of versions (None for all)
        offset: Number of versions to skip
        include_archived: Include versions that were soft-archived

    Returns:
        Result carrying the versions ordered by version_number descending
    """
    query = (
        select(WebsiteVersion)
        .where(WebsiteVersion.website_id == website_id)
        .order_by(WebsiteVersion.version_number.desc())
    )
    if status is not None:
        query = query.where(WebsiteVersion.status == VersionStatus(status).value)
    if not include_archived:
        query = query.where(WebsiteVersion.archived_at.is_(None))
    if offset:
        query = query.offset(offset)
    if limit:
        query = query.limit(limit)

    result = await db_session.execute(query)
    return Result.success(list(result.scalars().all()))


async def get_version_by_id(db_session: AsyncSession, version_id: UUID) -> Result[VersionDetails]:
    """Load a version and resolve its snapshot against the current pages."""
    version = await db_session.get(WebsiteVersion, version_id)
    if version is None:
        return Result.failure(NotFoundError(f"Version {version_id} not found"))

    snapshot = version.snapshot
    result = await db_session.execute(
        select(Page).where(Page.id.in_(list(snapshot))).order_by(Page.order)
    )
    pages = {page.id: page for page in result.scalars().all()}

    resolved = [
        VersionPage(page_id=page.id, revision_id=snapshot[page.id], title=page.title, slug=page.slug)
        for page in pages.values()
    ]
    missing = sorted((pid for pid in snapshot if pid not in pages), key=str)
    return Result.success(VersionDetails(version=version, pages=resolved, missing_page_ids=missing))


async def _get_pointed_version(
    db_session: AsyncSession, website_id: UUID, pointer: str
) -> Result[WebsiteVersion | None]:
    website = await db_session.get(Website, website_id)
    if website is None:
        return Result.failure(NotFoundError(f"Website {website_id} not found"))
    version_id = getattr(website, pointer)
    if version_id is None:
        return Result.success(None)
    return Result.success(await db_session.get(WebsiteVersion, version_id))


async def get_current_draft_version(db_session: AsyncSession, website_id: UUID) -> Result[WebsiteVersion | None]:
    return await _get_pointed_version(db_session, website_id, "draft_version_id")


async def get_current_production_version(db_session: AsyncSession, website_id: UUID) -> Result[WebsiteVersion | None]:
    return await _get_pointed_version(db_session, website_id, "production_version_id")


async def switch_to_version(
    db_session: AsyncSession,
    website_id: UUID,
    version_id: UUID,
) -> Result[WebsiteVersion]:
    """Point every page of the snapshot back at its recorded revision.

    Page revision pointers and the website's draft pointer are written in
    one transaction. Pages deleted since the snapshot was taken are skipped
    and reported as a PartialWriteError warning on a successful result.

    Args:
        db_session: Database session
        website_id: Website to switch
        version_id: Version to switch to

    Returns:
        Result carrying the version that is now the draft
    """
    version = await db_session.get(WebsiteVersion, version_id)
    if version is None or version.website_id != website_id:
        return Result.failure(NotFoundError(f"Version {version_id} not found for website {website_id}"))

    snapshot = version.snapshot
    result = await db_session.execute(
        select(Page).where(Page.website_id == website_id, Page.id.in_(list(snapshot)))
    )
    pages = list(result.scalars().all())
    found = {page.id for page in pages}
    missing = sorted((pid for pid in snapshot if pid not in found), key=str)

    try:
        async with transaction(db_session):
            for page in pages:
                page.current_revision_id = snapshot[page.id]
            website = await db_session.get(Website, website_id)
            website.draft_version_id = version.id
    except SQLAlchemyError as exc:
        logger.exception("Failed to switch website %s to version %s", website_id, version_id)
        return Result.failure(SitepressError(f"Failed to switch version: {exc}"))

    warnings: list[SitepressError] = []
    if missing:
        logger.warning(
            "Skipped %d deleted page(s) while switching website %s to version %d",
            len(missing), website_id, version.version_number,
        )
        warnings.append(
            PartialWriteError(f"{len(missing)} page(s) from the version no longer exist", missing_ids=missing)
        )

    await hooks.do_action(AFTER_VERSION_SWITCH, version)
    return Result.success(version, warnings=warnings)


async def publish_version(db_session: AsyncSession, version_id: UUID) -> Result[WebsiteVersion]:
    """Promote a version to production, demoting the previous production version.

    Demotion, promotion and the website's production pointer are written in
    one transaction, so a website never has two production versions.
    """
    version = await db_session.get(WebsiteVersion, version_id)
    if version is None:
        return Result.failure(NotFoundError(f"Version {version_id} not found"))

    try:
        async with transaction(db_session):
            await db_session.execute(
                update(WebsiteVersion)
                .where(
                    WebsiteVersion.website_id == version.website_id,
                    WebsiteVersion.status == VersionStatus.PRODUCTION.value,
                    WebsiteVersion.id != version.id,
                )
                .values(status=VersionStatus.DRAFT.value)
                .execution_options(synchronize_session="fetch")
            )
            version.status = VersionStatus.PRODUCTION.value
            version.published_at = datetime.now(UTC)
            website = await db_session.get(Website, version.website_id)
            website.production_version_id = version.id
    except SQLAlchemyError as exc:
        logger.exception("Failed to publish version %s", version_id)
        return Result.failure(SitepressError(f"Failed to publish version: {exc}"))

    logger.info("Published version %d of website %s", version.version_number, version.website_id)
    await hooks.do_action(AFTER_VERSION_PUBLISH, version)
    return Result.success(version)


async def compare_versions(
    db_session: AsyncSession,
    old_version_id: UUID,
    new_version_id: UUID,
) -> Result[VersionComparison]:
    """Diff two versions by page identity."""
    old = await db_session.get(WebsiteVersion, old_version_id)
    new = await db_session.get(WebsiteVersion, new_version_id)
    if old is None or new is None:
        return Result.failure(NotFoundError("One or both versions not found"))
    return Result.success(diff_snapshots(old.snapshot, new.snapshot))


async def archive_old_versions(
    db_session: AsyncSession,
    website_id: UUID,
    older_than_days: int = 30,
) -> Result[int]:
    """Mark old versions as archived, keeping the current draft and production.

    Returns:
        Result carrying the number of versions archived by this call
    """
    website = await db_session.get(Website, website_id)
    if website is None:
        return Result.failure(NotFoundError(f"Website {website_id} not found"))

    now = datetime.now(UTC)
    query = select(WebsiteVersion).where(
        WebsiteVersion.website_id == website_id,
        WebsiteVersion.created_at < now - timedelta(days=older_than_days),
        WebsiteVersion.archived_at.is_(None),
    )
    kept = [vid for vid in (website.draft_version_id, website.production_version_id) if vid]
    if kept:
        query = query.where(WebsiteVersion.id.not_in(kept))

    try:
        async with transaction(db_session):
            versions = list((await db_session.execute(query)).scalars().all())
            for version in versions:
                version.archived_at = now
    except SQLAlchemyError as exc:
        logger.exception("Failed to archive versions for website %s", website_id)
        return Result.failure(SitepressError(f"Failed to archive versions: {exc}"))

    if versions:
        logger.info("Archived %d version(s) of website %s", len(versions), website_id)
    return Result.success(len(versions))


async def rollback_to_version(
    db_session: AsyncSession,
    website_id: UUID,
    version_id: UUID,
    created_by: str | None = None,
) -> Result[WebsiteVersion]:
    """Restore an earlier version's content and record it as a new draft version."""
    switched = await switch_to_version(db_session, website_id, version_id)
    if not switched.ok:
        return switched

    target = switched.value
    created = await create_version(
        db_session,
        website_id,
        description=f"Rollback to {target.version_name}",
        trigger_type=TriggerType.ROLLBACK,
        created_by=created_by,
    )
    if created.ok:
        created.warnings.extend(switched.warnings)
    return created

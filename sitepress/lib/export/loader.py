"""Resolve a stored website version into export input."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sitepress.db.models import Page, PageRevision, Website, WebsiteVersion
from sitepress.lib.export.types import BrandConfig, ExportPage, ExportSection, ExportWebsite


async def build_export_website(
    db_session: AsyncSession,
    website: Website,
    version: WebsiteVersion,
) -> ExportWebsite:
    """Load the page revisions referenced by ``version``.

    Pages are ordered by their current ``order``. Pages deleted since the
    snapshot was taken are left out of the export.

    Args:
        db_session: Database session
        website: The website being exported
        version: Version whose snapshot supplies page content

    Returns:
        ExportWebsite ready for the transformer
    """
    snapshot = version.snapshot
    pages_result = await db_session.execute(
        select(Page).where(Page.id.in_(list(snapshot))).order_by(Page.order, Page.slug)
    )
    pages = list(pages_result.scalars().all())

    revisions_result = await db_session.execute(
        select(PageRevision).where(PageRevision.id.in_(list(snapshot.values())))
    )
    revisions = {revision.id: revision for revision in revisions_result.scalars().all()}

    export_pages = []
    for page in pages:
        revision = revisions.get(snapshot[page.id])
        if revision is None:
            continue
        meta = revision.page_metadata
        export_pages.append(
            ExportPage(
                slug=page.slug,
                title=revision.title,
                path=page.path,
                is_homepage=page.is_homepage,
                sections=[ExportSection.from_dict(s) for s in revision.sections],
                meta_title=meta.get("title"),
                meta_description=meta.get("description"),
            )
        )

    return ExportWebsite(
        name=website.name,
        pages=export_pages,
        brand=BrandConfig.from_dict(website.brand_config),
        domain=website.domain,
    )

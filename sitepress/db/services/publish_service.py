"""Publish pipeline: finalize a draft into production, export it and deploy it."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from sitepress.config import get_settings
from sitepress.db.models import TriggerType, Website, WebsiteVersion
from sitepress.db.services import version_service
from sitepress.lib.errors import NotFoundError, PartialWriteError, Result, ValidationError
from sitepress.lib.export import ExportConfig, ExportResult, transform
from sitepress.lib.export.loader import build_export_website
from sitepress.lib.hooks import EXPORT_FILES, hooks

if TYPE_CHECKING:
    from sitepress.db.models import Deployment
    from sitepress.deploy.orchestrator import DeploymentOrchestrator

logger = logging.getLogger(__name__)


async def finalize(
    db_session: AsyncSession,
    website_id: UUID,
    created_by: str | None = None,
    version_name: str | None = None,
    description: str | None = None,
) -> Result[WebsiteVersion]:
    """Snapshot the current draft and promote it to production.

    Creating and publishing commit separately. If publishing fails the new
    draft version remains and is reported as a ``PartialWriteError`` warning.
    """
    created = await version_service.create_version(
        db_session,
        website_id,
        version_name=version_name,
        description=description,
        trigger_type=TriggerType.FINALIZATION,
        created_by=created_by,
    )
    if not created.ok:
        return created

    published = await version_service.publish_version(db_session, created.value.id)
    if not published.ok:
        version = created.value
        logger.warning(
            "Version %d of website %s was created but could not be published: %s",
            version.version_number, website_id, published.error.message,
        )
        published.warnings.append(
            PartialWriteError(f"Version {version.version_number} ({version.id}) was left as an unpublished draft")
        )
        return published

    logger.info("Finalized website %s as version %d", website_id, published.value.version_number)
    return published


async def export_version(
    db_session: AsyncSession,
    website_id: UUID,
    version_id: UUID | None = None,
    config: ExportConfig | None = None,
    project_name: str | None = None,
) -> Result[tuple[WebsiteVersion, ExportResult]]:
    """Render a version (the production version by default) into project files.

    Args:
        db_session: Database session
        website_id: Website to export
        version_id: Specific version to export, or None for production
        config: Export options, defaults to the configured export settings
        project_name: Generated package name, defaults to the website slug

    Returns:
        Result carrying the exported version and the generated files
    """
    website = await db_session.get(Website, website_id)
    if website is None:
        return Result.failure(NotFoundError(f"Website {website_id} not found"))

    if version_id is None:
        if website.production_version_id is None:
            return Result.failure(ValidationError("Website has no production version to export"))
        version_id = website.production_version_id

    version = await db_session.get(WebsiteVersion, version_id)
    if version is None or version.website_id != website_id:
        return Result.failure(NotFoundError(f"Version {version_id} not found for website {website_id}"))

    config = config or ExportConfig.from_settings(get_settings().export, project_name=project_name or website.slug)
    export_website = await build_export_website(db_session, website, version)
    result = transform(export_website, config)
    result.files = await hooks.apply_filters(EXPORT_FILES, result.files, export_website)
    return Result.success((version, result))


async def deploy_production(
    db_session: AsyncSession,
    orchestrator: DeploymentOrchestrator,
    website_id: UUID,
    provider_name: str | None = None,
    project_name: str | None = None,
    target: str = "production",
    created_by: str | None = None,
    config: ExportConfig | None = None,
) -> Result[Deployment]:
    """Export the production version and hand it to the orchestrator.

    Returns as soon as the pending Deployment is stored; build and polling
    continue in the background.
    """
    exported = await export_version(db_session, website_id, config=config, project_name=project_name)
    if not exported.ok:
        return Result.failure(exported.error)

    version, result = exported.value
    website = await db_session.get(Website, website_id)
    return await orchestrator.create(
        website,
        result.files,
        provider_name=provider_name,
        project_name=project_name or website.slug,
        target=target,
        version_id=version.id,
        created_by=created_by,
    )

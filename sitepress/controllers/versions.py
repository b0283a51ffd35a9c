"""Website version endpoints."""

from uuid import UUID

from litestar import Controller, get, post
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from sitepress.db.models import TriggerType, VersionStatus
from sitepress.db.services import publish_service, version_service


class CreateVersionRequest(BaseModel):
    version_name: str | None = None
    description: str | None = None
    trigger_type: TriggerType = TriggerType.MANUAL
    created_by: str | None = None


class FinalizeRequest(BaseModel):
    version_name: str | None = None
    description: str | None = None
    created_by: str | None = None


class ArchiveRequest(BaseModel):
    older_than_days: int = Field(default=30, ge=0)


def _with_warnings(payload: dict, warnings: list) -> dict:
    if warnings:
        payload["warnings"] = [w.to_dict() for w in warnings]
    return payload


class VersionsController(Controller):
    path = "/"

    @get("/websites/{website_id:uuid}/versions")
    async def list_versions(
        self,
        db_session: AsyncSession,
        website_id: UUID,
        status: VersionStatus | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> dict:
        versions = (
            await version_service.get_versions(db_session, website_id, status=status, limit=limit, offset=offset)
        ).unwrap()
        return {"versions": [v.to_dict() for v in versions]}

    @post("/websites/{website_id:uuid}/versions")
    async def create_version(self, db_session: AsyncSession, website_id: UUID, data: CreateVersionRequest) -> dict:
        result = await version_service.create_version(
            db_session,
            website_id,
            version_name=data.version_name,
            description=data.description,
            trigger_type=data.trigger_type,
            created_by=data.created_by,
        )
        return {"version": result.unwrap().to_dict()}

    @get("/websites/{website_id:uuid}/versions/current")
    async def current_versions(self, db_session: AsyncSession, website_id: UUID) -> dict:
        draft = (await version_service.get_current_draft_version(db_session, website_id)).unwrap()
        production = (await version_service.get_current_production_version(db_session, website_id)).unwrap()
        return {
            "draft": draft.to_dict() if draft else None,
            "production": production.to_dict() if production else None,
        }

    @get("/versions/compare")
    async def compare(self, db_session: AsyncSession, old: UUID, new: UUID) -> dict:
        comparison = (await version_service.compare_versions(db_session, old, new)).unwrap()
        return comparison.to_dict()

    @get("/versions/{version_id:uuid}")
    async def get_version(self, db_session: AsyncSession, version_id: UUID) -> dict:
        details = (await version_service.get_version_by_id(db_session, version_id)).unwrap()
        return {
            "version": details.version.to_dict(),
            "pages": [
                {
                    "page_id": str(p.page_id),
                    "revision_id": str(p.revision_id),
                    "title": p.title,
                    "slug": p.slug,
                }
                for p in details.pages
            ],
            "page_count": details.page_count,
            "missing_page_ids": [str(i) for i in details.missing_page_ids],
        }

    @post("/versions/{version_id:uuid}/publish", status_code=200)
    async def publish(self, db_session: AsyncSession, version_id: UUID) -> dict:
        version = (await version_service.publish_version(db_session, version_id)).unwrap()
        return {"version": version.to_dict()}

    @post("/websites/{website_id:uuid}/versions/{version_id:uuid}/switch", status_code=200)
    async def switch(self, db_session: AsyncSession, website_id: UUID, version_id: UUID) -> dict:
        result = await version_service.switch_to_version(db_session, website_id, version_id)
        return _with_warnings({"version": result.unwrap().to_dict()}, result.warnings)

    @post("/websites/{website_id:uuid}/versions/{version_id:uuid}/rollback")
    async def rollback(self, db_session: AsyncSession, website_id: UUID, version_id: UUID) -> dict:
        result = await version_service.rollback_to_version(db_session, website_id, version_id)
        return _with_warnings({"version": result.unwrap().to_dict()}, result.warnings)

    @post("/websites/{website_id:uuid}/versions/archive", status_code=200)
    async def archive(self, db_session: AsyncSession, website_id: UUID, data: ArchiveRequest) -> dict:
        count = (
            await version_service.archive_old_versions(db_session, website_id, older_than_days=data.older_than_days)
        ).unwrap()
        return {"archived": count}

    @post("/websites/{website_id:uuid}/finalize")
    async def finalize(self, db_session: AsyncSession, website_id: UUID, data: FinalizeRequest) -> dict:
        result = await publish_service.finalize(
            db_session,
            website_id,
            created_by=data.created_by,
            version_name=data.version_name,
            description=data.description,
        )
        return {"version": result.unwrap().to_dict()}

"""Deployment and export endpoints."""

from typing import Literal
from uuid import UUID

from litestar import Controller, Request, delete, get, post
from litestar.response import Response
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from sitepress.db.services import deployment_service, publish_service
from sitepress.deploy.orchestrator import DeploymentOrchestrator
from sitepress.lib.errors import NotFoundError
from sitepress.lib.export import zip_export


class DeployRequest(BaseModel):
    provider: str | None = None
    project_name: str | None = None
    target: Literal["production", "preview"] = "production"
    created_by: str | None = None


def _orchestrator(request: Request) -> DeploymentOrchestrator:
    return request.app.state.orchestrator


class DeploymentsController(Controller):
    path = "/"

    @get("/websites/{website_id:uuid}/deployments")
    async def list_deployments(self, db_session: AsyncSession, website_id: UUID, limit: int = 20) -> dict:
        deployments = await deployment_service.list_deployments(db_session, website_id, limit=limit)
        return {"deployments": [d.to_dict() for d in deployments]}

    @post("/websites/{website_id:uuid}/deployments", status_code=202)
    async def deploy(
        self, request: Request, db_session: AsyncSession, website_id: UUID, data: DeployRequest
    ) -> dict:
        """Start a production deployment; progress is visible on the deployment resource."""
        result = await publish_service.deploy_production(
            db_session,
            _orchestrator(request),
            website_id,
            provider_name=data.provider,
            project_name=data.project_name,
            target=data.target,
            created_by=data.created_by,
        )
        return {"deployment": result.unwrap().to_dict()}

    @get("/deployments/{deployment_id:uuid}")
    async def get_deployment(
        self, request: Request, db_session: AsyncSession, deployment_id: UUID, refresh: bool = False
    ) -> dict:
        if refresh:
            deployment = (await _orchestrator(request).refresh(deployment_id)).unwrap()
        else:
            deployment = await deployment_service.get_deployment(db_session, deployment_id)
            if deployment is None:
                raise NotFoundError(f"Deployment {deployment_id} not found")
        return {"deployment": deployment.to_dict()}

    @delete("/deployments/{deployment_id:uuid}", status_code=200)
    async def cancel(self, request: Request, deployment_id: UUID) -> dict:
        deployment = (await _orchestrator(request).cancel(deployment_id)).unwrap()
        return {"deployment": deployment.to_dict()}

    @get("/websites/{website_id:uuid}/export")
    async def export(
        self, db_session: AsyncSession, website_id: UUID, version_id: UUID | None = None
    ) -> Response:
        """Download the generated project as a zip archive."""
        result = await publish_service.export_version(db_session, website_id, version_id=version_id)
        version, exported = result.unwrap()
        filename = f"website-v{version.version_number}.zip"
        return Response(
            content=zip_export(exported),
            media_type="application/zip",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

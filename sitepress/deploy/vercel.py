"""Vercel REST API provider."""

from __future__ import annotations

import base64
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from sitepress.deploy.base import (
    HttpProvider,
    ProviderDeployment,
    ProviderDomain,
    ProviderProject,
    ProviderStatus,
)
from sitepress.deploy.states import DeploymentStatus

if TYPE_CHECKING:
    from sitepress.lib.export.types import ExportedFile

STATE_MAP = {
    "QUEUED": DeploymentStatus.PENDING,
    "INITIALIZING": DeploymentStatus.BUILDING,
    "BUILDING": DeploymentStatus.BUILDING,
    "READY": DeploymentStatus.READY,
    "ERROR": DeploymentStatus.ERROR,
    "CANCELED": DeploymentStatus.CANCELED,
}


def map_state(state: str | None) -> DeploymentStatus:
    return STATE_MAP.get((state or "").upper(), DeploymentStatus.PENDING)


def _https(url: str | None) -> str | None:
    if not url:
        return None
    return url if url.startswith("http") else f"https://{url}"


class VercelProvider(HttpProvider):
    """Deploys file trees through the Vercel deployments API."""

    name = "vercel"
    default_api_url = "https://api.vercel.com"

    build_command = "npm run build"
    output_directory = ".next"

    def default_params(self) -> dict[str, str]:
        if self._config.team_id:
            return {"teamId": self._config.team_id}
        return {}

    async def create_project(self, name: str, framework: str | None = None) -> ProviderProject:
        data = await self._request(
            "POST", "/v9/projects", json={"name": name, "framework": framework or self.framework}
        )
        return ProviderProject(id=data["id"], name=data["name"], framework=data.get("framework"))

    async def get_project(self, name_or_id: str) -> ProviderProject | None:
        data = await self._request("GET", f"/v9/projects/{name_or_id}", allow_404=True)
        if data is None:
            return None
        return ProviderProject(id=data["id"], name=data["name"], framework=data.get("framework"))

    async def deploy(
        self,
        project: ProviderProject,
        files: Sequence[ExportedFile],
        *,
        target: str = "production",
        meta: dict[str, str] | None = None,
    ) -> ProviderDeployment:
        payload: dict[str, Any] = {
            "name": project.name,
            "project": project.id,
            "files": [
                {
                    "file": f.path,
                    "data": base64.b64encode(f.content.encode("utf-8")).decode("ascii"),
                    "encoding": "base64",
                }
                for f in files
                if not f.is_directory
            ],
            "projectSettings": {
                "framework": project.framework or self.framework,
                "buildCommand": self.build_command,
                "outputDirectory": self.output_directory,
            },
            "meta": {"deployedBy": "sitepress", **(meta or {})},
        }
        if target == "production":
            payload["target"] = "production"

        data = await self._request("POST", "/v13/deployments", json=payload)
        return ProviderDeployment(
            deployment_id=data["id"],
            status=map_state(data.get("readyState")),
            url=_https(data.get("url")),
            inspector_url=data.get("inspectorUrl"),
        )

    async def get_deployment_status(self, deployment_id: str) -> ProviderStatus:
        data = await self._request("GET", f"/v13/deployments/{deployment_id}")
        return ProviderStatus(
            status=map_state(data.get("readyState")),
            url=_https(data.get("url")),
            error=data.get("errorMessage"),
        )

    async def cancel_deployment(self, deployment_id: str) -> None:
        await self._request("PATCH", f"/v12/deployments/{deployment_id}/cancel")

    async def add_domain(self, project_id: str, domain: str) -> ProviderDomain:
        data = await self._request("POST", f"/v10/projects/{project_id}/domains", json={"name": domain})
        return ProviderDomain(name=data.get("name", domain), verified=bool(data.get("verified")))

    async def verify_domain(self, project_id: str, domain: str) -> ProviderDomain:
        data = await self._request("POST", f"/v9/projects/{project_id}/domains/{domain}/verify")
        return ProviderDomain(name=data.get("name", domain), verified=bool(data.get("verified")))

    async def remove_domain(self, project_id: str, domain: str) -> None:
        await self._request("DELETE", f"/v9/projects/{project_id}/domains/{domain}")

    async def list_deployments(
        self, project_id: str, limit: int = 20, target: str | None = None
    ) -> list[ProviderDeployment]:
        params: dict[str, Any] = {"projectId": project_id, "limit": limit}
        if target:
            params["target"] = target
        data = await self._request("GET", "/v6/deployments", params=params)
        return [
            ProviderDeployment(
                deployment_id=item["uid"],
                status=map_state(item.get("state") or item.get("readyState")),
                url=_https(item.get("url")),
                inspector_url=item.get("inspectorUrl"),
            )
            for item in data.get("deployments", [])
        ]

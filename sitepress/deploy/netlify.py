"""Netlify API provider using digest-based file deploys."""

from __future__ import annotations

import hashlib
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
    "new": DeploymentStatus.PENDING,
    "enqueued": DeploymentStatus.PENDING,
    "pending_review": DeploymentStatus.PENDING,
    "uploading": DeploymentStatus.BUILDING,
    "uploaded": DeploymentStatus.BUILDING,
    "preparing": DeploymentStatus.BUILDING,
    "prepared": DeploymentStatus.BUILDING,
    "processing": DeploymentStatus.BUILDING,
    "processed": DeploymentStatus.DEPLOYING,
    "building": DeploymentStatus.BUILDING,
    "retrying": DeploymentStatus.BUILDING,
    "ready": DeploymentStatus.READY,
    "error": DeploymentStatus.ERROR,
    "rejected": DeploymentStatus.ERROR,
    "canceled": DeploymentStatus.CANCELED,
    "cancelled": DeploymentStatus.CANCELED,
}


def map_state(state: str | None) -> DeploymentStatus:
    return STATE_MAP.get((state or "").lower(), DeploymentStatus.PENDING)


def _project(data: dict) -> ProviderProject:
    return ProviderProject(id=data["id"], name=data["name"], framework=data.get("framework"))


def _deployment(data: dict) -> ProviderDeployment:
    return ProviderDeployment(
        deployment_id=data["id"],
        status=map_state(data.get("state")),
        url=data.get("ssl_url") or data.get("deploy_ssl_url") or data.get("url"),
        inspector_url=data.get("admin_url"),
    )


class NetlifyProvider(HttpProvider):
    """Deploys by posting a SHA1 manifest, then uploading the files Netlify asks for."""

    name = "netlify"
    default_api_url = "https://api.netlify.com/api/v1"

    async def create_project(self, name: str, framework: str | None = None) -> ProviderProject:
        data = await self._request("POST", "/sites", json={"name": name})
        return _project(data)

    async def get_project(self, name_or_id: str) -> ProviderProject | None:
        data = await self._request("GET", "/sites", params={"name": name_or_id, "filter": "all"})
        for site in data or []:
            if name_or_id in (site.get("name"), site.get("id")):
                return _project(site)
        return None

    async def deploy(
        self,
        project: ProviderProject,
        files: Sequence[ExportedFile],
        *,
        target: str = "production",
        meta: dict[str, str] | None = None,
    ) -> ProviderDeployment:
        contents = {f"/{f.path}": f.content.encode("utf-8") for f in files if not f.is_directory}
        digests = {path: hashlib.sha1(body).hexdigest() for path, body in contents.items()}

        payload: dict[str, Any] = {"files": digests, "draft": target != "production"}
        if meta:
            payload["title"] = meta.get("title") or ", ".join(f"{k}={v}" for k, v in sorted(meta.items()))
        data = await self._request("POST", f"/sites/{project.id}/deploys", json=payload)

        required = set(data.get("required") or [])
        for path, body in contents.items():
            if digests[path] in required:
                await self._request(
                    "PUT",
                    f"/deploys/{data['id']}/files{path}",
                    content=body,
                    headers={"Content-Type": "application/octet-stream"},
                )
        return _deployment(data)

    async def get_deployment_status(self, deployment_id: str) -> ProviderStatus:
        data = await self._request("GET", f"/deploys/{deployment_id}")
        return ProviderStatus(
            status=map_state(data.get("state")),
            url=data.get("ssl_url") or data.get("url"),
            error=data.get("error_message"),
        )

    async def cancel_deployment(self, deployment_id: str) -> None:
        await self._request("POST", f"/deploys/{deployment_id}/cancel")

    async def add_domain(self, project_id: str, domain: str) -> ProviderDomain:
        data = await self._request("PATCH", f"/sites/{project_id}", json={"custom_domain": domain})
        return ProviderDomain(name=data.get("custom_domain") or domain, verified=False)

    async def verify_domain(self, project_id: str, domain: str) -> ProviderDomain:
        data = await self._request("GET", f"/sites/{project_id}")
        verified = data.get("custom_domain") == domain and bool(data.get("ssl"))
        return ProviderDomain(name=domain, verified=verified)

    async def remove_domain(self, project_id: str, domain: str) -> None:
        await self._request("PATCH", f"/sites/{project_id}", json={"custom_domain": None})

    async def list_deployments(
        self, project_id: str, limit: int = 20, target: str | None = None
    ) -> list[ProviderDeployment]:
        data = await self._request("GET", f"/sites/{project_id}/deploys", params={"per_page": limit})
        deployments = data or []
        if target == "production":
            deployments = [d for d in deployments if d.get("context") == "production"]
        elif target:
            deployments = [d for d in deployments if d.get("context") != "production"]
        return [_deployment(d) for d in deployments]

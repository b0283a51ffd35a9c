"""Deployment provider protocol and shared HTTP plumbing."""

from __future__ import annotations

import importlib
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx

from sitepress.deploy.states import DeploymentStatus
from sitepress.lib.errors import ProviderError

if TYPE_CHECKING:
    from sitepress.config import ProviderConfig
    from sitepress.lib.export.types import ExportedFile

logger = logging.getLogger(__name__)


@dataclass
class ProviderProject:
    id: str
    name: str
    framework: str | None = None


@dataclass
class ProviderDeployment:
    deployment_id: str
    status: DeploymentStatus
    url: str | None = None
    inspector_url: str | None = None


@dataclass
class ProviderStatus:
    status: DeploymentStatus
    url: str | None = None
    error: str | None = None


@dataclass
class ProviderDomain:
    name: str
    verified: bool = False


@runtime_checkable
class DeploymentProvider(Protocol):
    """Interface every hosting provider implements.

    Native provider states are mapped onto DeploymentStatus before they
    leave the provider.
    """

    name: str

    async def create_project(self, name: str, framework: str | None = None) -> ProviderProject: ...

    async def get_project(self, name_or_id: str) -> ProviderProject | None: ...

    async def deploy(
        self,
        project: ProviderProject,
        files: Sequence[ExportedFile],
        *,
        target: str = "production",
        meta: dict[str, str] | None = None,
    ) -> ProviderDeployment: ...

    async def get_deployment_status(self, deployment_id: str) -> ProviderStatus: ...

    async def cancel_deployment(self, deployment_id: str) -> None: ...

    async def add_domain(self, project_id: str, domain: str) -> ProviderDomain: ...

    async def verify_domain(self, project_id: str, domain: str) -> ProviderDomain: ...

    async def remove_domain(self, project_id: str, domain: str) -> None: ...

    async def list_deployments(
        self, project_id: str, limit: int = 20, target: str | None = None
    ) -> list[ProviderDeployment]: ...

    async def close(self) -> None: ...


class HttpProvider:
    """Base class for REST providers authenticated with a bearer token."""

    name = "http"
    default_api_url = ""

    def __init__(self, config: ProviderConfig, transport: httpx.AsyncBaseTransport | None = None) -> None:
        if not config.token:
            raise ValueError(f"{self.name} provider requires an API token")
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.api_url or self.default_api_url,
            headers={"Authorization": f"Bearer {config.token}"},
            timeout=config.timeout,
            transport=transport,
        )

    @property
    def framework(self) -> str:
        return self._config.framework

    def default_params(self) -> dict[str, str]:
        return {}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
        allow_404: bool = False,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            ProviderError: On transport failures and non-2xx responses, except
                404 when ``allow_404`` is set, which returns None.
        """
        merged = {**self.default_params(), **(params or {})}
        try:
            response = await self._client.request(
                method, path, json=json, params=merged or None, content=content, headers=headers
            )
        except httpx.HTTPError as exc:
            raise ProviderError(f"{self.name} request failed: {exc}", provider=self.name) from exc

        if allow_404 and response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise ProviderError(
                self._error_message(response),
                status_code=response.status_code,
                provider=self.name,
            )
        if not response.content:
            return {}
        return response.json()

    def _error_message(self, response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"{self.name} API error {response.status_code}: {response.text[:200]}"
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if body.get("message"):
                return str(body["message"])
        return f"{self.name} API error {response.status_code}"

    async def close(self) -> None:
        await self._client.aclose()


def load_provider_class(spec: str) -> type:
    """Import a provider class from a 'module:ClassName' string."""
    parts = spec.split(":")
    if len(parts) != 2:
        raise ValueError(f"Invalid provider spec '{spec}': must contain exactly one colon")
    module_path, class_name = parts
    module = importlib.import_module(module_path)
    return getattr(module, class_name)

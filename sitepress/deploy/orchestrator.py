"""Background deployment orchestration.

``create`` stores a pending Deployment and returns immediately; the provider
work and status polling run in an asyncio task tracked per deployment. The
Deployment row is the only channel through which background outcomes are
observed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine, Sequence
from contextlib import AbstractAsyncContextManager
from datetime import UTC, datetime
from functools import partial
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sitepress.db.models import Deployment, Website
from sitepress.db.transaction import transaction
from sitepress.deploy.states import (
    CANCELABLE_STATUSES,
    TERMINAL_STATUSES,
    DeploymentStatus,
    can_transition,
    is_terminal,
)
from sitepress.lib import observability
from sitepress.lib.errors import (
    NotFoundError,
    PollTimeoutExhaustion,
    ProviderError,
    Result,
    ValidationError,
)
from sitepress.lib.hooks import (
    DEPLOYMENT_COMPLETED,
    DEPLOYMENT_META,
    DEPLOYMENT_STATUS_CHANGED,
    hooks,
)

if TYPE_CHECKING:
    from sitepress.config import Settings
    from sitepress.deploy.base import DeploymentProvider
    from sitepress.deploy.registry import ProviderRegistry
    from sitepress.lib.export.types import ExportedFile

logger = logging.getLogger(__name__)

SessionMaker = Callable[[], AbstractAsyncContextManager[AsyncSession]]

# Compare-and-set retries when another writer changes the status concurrently
TRANSITION_ATTEMPTS = 3


class DeploymentOrchestrator:
    """Drives deployments through pending -> building -> deploying -> terminal."""

    def __init__(
        self,
        session_maker: SessionMaker,
        providers: ProviderRegistry,
        *,
        poll_interval: float = 5.0,
        poll_max_attempts: int = 60,
        fail_on_poll_timeout: bool = False,
    ) -> None:
        self._session_maker = session_maker
        self._providers = providers
        self.poll_interval = poll_interval
        self.poll_max_attempts = poll_max_attempts
        self.fail_on_poll_timeout = fail_on_poll_timeout
        self._tasks: dict[UUID, asyncio.Task] = {}

    @classmethod
    def from_settings(
        cls, settings: Settings, session_maker: SessionMaker, providers: ProviderRegistry
    ) -> DeploymentOrchestrator:
        return cls(
            session_maker,
            providers,
            poll_interval=settings.deploy.poll_interval,
            poll_max_attempts=settings.deploy.poll_max_attempts,
            fail_on_poll_timeout=settings.deploy.fail_on_poll_timeout,
        )

    @property
    def providers(self) -> ProviderRegistry:
        return self._providers

    def is_tracking(self, deployment_id: UUID) -> bool:
        task = self._tasks.get(deployment_id)
        return task is not None and not task.done()

    async def create(
        self,
        website: Website,
        files: Sequence[ExportedFile],
        *,
        provider_name: str | None = None,
        project_name: str | None = None,
        target: str = "production",
        version_id: UUID | None = None,
        created_by: str | None = None,
    ) -> Result[Deployment]:
        """Record a pending deployment and start it in the background.

        Args:
            website: Website being deployed
            files: Exported project files
            provider_name: Configured provider name (default provider if None)
            project_name: Provider project name, defaults to the website slug
            target: ``production`` or ``preview``
            version_id: Version the files were exported from
            created_by: Actor identifier (optional)

        Returns:
            Result carrying the pending Deployment
        """
        provider_name = provider_name or self._providers.default_provider
        try:
            provider = await self._providers.get(provider_name)
        except (KeyError, ValueError) as exc:
            return Result.failure(ValidationError(str(exc)))

        deployment = Deployment(
            website_id=website.id,
            version_id=version_id,
            provider=provider_name,
            status=DeploymentStatus.PENDING.value,
            target=target,
            project_name=project_name or website.slug,
            created_by=created_by,
        )
        async with self._session_maker() as session:
            async with transaction(session):
                session.add(deployment)
            await session.refresh(deployment)

        meta = await hooks.apply_filters(
            DEPLOYMENT_META,
            {
                "websiteId": str(website.id),
                "deploymentId": str(deployment.id),
                "versionId": str(version_id) if version_id else "",
            },
            deployment,
        )
        logger.info("Queued deployment %s of website %s to %s", deployment.id, website.id, provider_name)
        self._spawn(
            deployment.id,
            self._run(deployment.id, provider, deployment.project_name, list(files), target, meta),
        )
        return Result.success(deployment)

    async def cancel(self, deployment_id: UUID) -> Result[Deployment]:
        """Cancel a deployment that has not reached a terminal state.

        The provider is asked to stop on a best-effort basis; the stored
        status becomes canceled regardless of what the provider answers.
        """
        deployment = await self._load(deployment_id)
        if deployment is None:
            return Result.failure(NotFoundError(f"Deployment {deployment_id} not found"))
        if DeploymentStatus(deployment.status) not in CANCELABLE_STATUSES:
            return Result.failure(
                ValidationError(f"Cannot cancel a deployment that is already {deployment.status}")
            )

        if deployment.provider_deployment_id:
            try:
                provider = await self._providers.get(deployment.provider)
                await provider.cancel_deployment(deployment.provider_deployment_id)
            except (ProviderError, KeyError, ValueError):
                logger.warning(
                    "Provider cancel for deployment %s failed; marking it canceled anyway",
                    deployment_id, exc_info=True,
                )

        updated = await self._transition(deployment_id, DeploymentStatus.CANCELED)

        task = self._tasks.get(deployment_id)
        if task is not None and task is not asyncio.current_task():
            task.cancel()

        if updated is None or updated.status != DeploymentStatus.CANCELED.value:
            return Result.failure(ValidationError("Deployment finished before it could be canceled"))
        logger.info("Canceled deployment %s", deployment_id)
        return Result.success(updated)

    async def refresh(self, deployment_id: UUID) -> Result[Deployment]:
        """Synchronise a non-terminal deployment with the provider once."""
        deployment = await self._load(deployment_id)
        if deployment is None:
            return Result.failure(NotFoundError(f"Deployment {deployment_id} not found"))
        if deployment.is_terminal or not deployment.provider_deployment_id:
            return Result.success(deployment)

        try:
            provider = await self._providers.get(deployment.provider)
            remote = await provider.get_deployment_status(deployment.provider_deployment_id)
        except ProviderError as exc:
            return Result.failure(exc)
        except (KeyError, ValueError) as exc:
            return Result.failure(ValidationError(str(exc)))

        updated = await self._apply_remote(deployment_id, remote.status, remote.url, remote.error)
        return Result.success(updated or deployment)

    async def resume_inflight(self) -> int:
        """Restart status polling for deployments left in flight by a previous process.

        Returns:
            Number of polling tasks started
        """
        in_flight = [s.value for s in DeploymentStatus if s not in TERMINAL_STATUSES]
        async with self._session_maker() as session:
            result = await session.execute(
                select(Deployment).where(
                    Deployment.status.in_(in_flight),
                    Deployment.provider_deployment_id.is_not(None),
                )
            )
            deployments = list(result.scalars().all())

        started = 0
        for deployment in deployments:
            if self.is_tracking(deployment.id):
                continue
            try:
                provider = await self._providers.get(deployment.provider)
            except (KeyError, ValueError):
                logger.warning(
                    "Cannot resume deployment %s: provider %r is not configured",
                    deployment.id, deployment.provider,
                )
                continue
            self._spawn(
                deployment.id,
                self._guarded(deployment.id, self._poll(deployment.id, provider, deployment.provider_deployment_id)),
            )
            started += 1

        if started:
            logger.info("Resumed polling for %d in-flight deployment(s)", started)
        return started

    async def wait(self, deployment_id: UUID) -> None:
        """Wait for the background task of a deployment, if one is running."""
        task = self._tasks.get(deployment_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel and await every tracked task."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    # -- background work ---------------------------------------------------

    def _spawn(self, deployment_id: UUID, work: Coroutine[Any, Any, None]) -> None:
        if self.is_tracking(deployment_id):
            work.close()
            return
        task = asyncio.create_task(work, name=f"deployment:{deployment_id}")
        self._tasks[deployment_id] = task
        task.add_done_callback(partial(self._forget, deployment_id))

    def _forget(self, deployment_id: UUID, task: asyncio.Task) -> None:
        if self._tasks.get(deployment_id) is task:
            del self._tasks[deployment_id]

    async def _run(
        self,
        deployment_id: UUID,
        provider: DeploymentProvider,
        project_name: str,
        files: list[ExportedFile],
        target: str,
        meta: dict[str, str],
    ) -> None:
        await self._guarded(
            deployment_id, self._execute(deployment_id, provider, project_name, files, target, meta)
        )

    async def _guarded(self, deployment_id: UUID, work: Coroutine[Any, Any, None]) -> None:
        """Record any failure of ``work`` on the deployment instead of raising it."""
        try:
            await work
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Deployment %s failed", deployment_id, exc_info=True)
            observability.error("Deployment failed", deployment_id=str(deployment_id), error=str(exc))
            await self._transition(
                deployment_id, DeploymentStatus.ERROR, error=str(exc) or exc.__class__.__name__
            )

    async def _execute(
        self,
        deployment_id: UUID,
        provider: DeploymentProvider,
        project_name: str,
        files: list[ExportedFile],
        target: str,
        meta: dict[str, str],
    ) -> None:
        with observability.span("deployment.run", deployment_id=str(deployment_id), provider=provider.name):
            current = await self._transition(deployment_id, DeploymentStatus.BUILDING)
            if current is None or current.is_terminal:
                return

            project = await provider.get_project(project_name)
            if project is None:
                logger.info("Creating %s project %s", provider.name, project_name)
                project = await provider.create_project(project_name)

            current = await self._transition(
                deployment_id, DeploymentStatus.DEPLOYING, provider_project_id=project.id
            )
            if current is None or current.is_terminal:
                return

            remote = await provider.deploy(project, files, target=target, meta=meta)
            current = await self._transition(
                deployment_id,
                remote.status,
                provider_deployment_id=remote.deployment_id,
                url=remote.url,
                inspector_url=remote.inspector_url,
            )
            if current is None or current.is_terminal:
                return

        await self._poll(deployment_id, provider, remote.deployment_id)

    async def _poll(self, deployment_id: UUID, provider: DeploymentProvider, provider_deployment_id: str) -> None:
        for attempt in range(1, self.poll_max_attempts + 1):
            await asyncio.sleep(self.poll_interval)

            current = await self._load(deployment_id)
            if current is None or current.is_terminal:
                return

            try:
                remote = await provider.get_deployment_status(provider_deployment_id)
            except ProviderError as exc:
                logger.warning(
                    "Status check %d/%d for deployment %s failed",
                    attempt, self.poll_max_attempts, deployment_id, exc_info=True,
                )
                await self._transition(deployment_id, DeploymentStatus.ERROR, error=exc.message)
                return

            current = await self._apply_remote(deployment_id, remote.status, remote.url, remote.error)
            if current is None or current.is_terminal:
                return

        logger.warning(
            "Stopped polling deployment %s after %d attempts", deployment_id, self.poll_max_attempts
        )
        if self.fail_on_poll_timeout:
            await self._transition(
                deployment_id,
                DeploymentStatus.ERROR,
                error=PollTimeoutExhaustion(self.poll_max_attempts).message,
            )

    async def _apply_remote(
        self, deployment_id: UUID, status: DeploymentStatus, url: str | None, error: str | None
    ) -> Deployment | None:
        if status == DeploymentStatus.ERROR and not error:
            error = "Deployment failed"
        return await self._transition(deployment_id, status, url=url, error=error)

    # -- persistence -------------------------------------------------------

    async def _load(self, deployment_id: UUID) -> Deployment | None:
        async with self._session_maker() as session:
            return await session.get(Deployment, deployment_id)

    async def _transition(
        self,
        deployment_id: UUID,
        status: DeploymentStatus | str | None = None,
        **fields: Any,
    ) -> Deployment | None:
        """Persist ``fields`` and, when allowed, move the deployment to ``status``.

        The write is a compare-and-set on the status read beforehand, so a
        concurrent cancel is never overwritten. Terminal deployments are
        left untouched.

        Returns:
            The deployment as stored after the write, or None if it no longer exists
        """
        for _ in range(TRANSITION_ATTEMPTS):
            async with self._session_maker() as session:
                deployment = await session.get(Deployment, deployment_id)
                if deployment is None:
                    return None
                previous = deployment.status
                if is_terminal(previous):
                    return deployment

                now = datetime.now(UTC)
                values = {k: v for k, v in fields.items() if v is not None}
                moved = status is not None and can_transition(previous, status)
                if moved:
                    values["status"] = DeploymentStatus(status).value
                    if is_terminal(status):
                        values["completed_at"] = now
                if not values:
                    return deployment
                values["updated_at"] = now

                async with transaction(session):
                    result = await session.execute(
                        update(Deployment)
                        .where(Deployment.id == deployment_id, Deployment.status == previous)
                        .values(**values)
                        .execution_options(synchronize_session=False)
                    )
                    applied = result.rowcount > 0
                    if applied and moved and status == DeploymentStatus.READY and deployment.target == "production":
                        await session.execute(
                            update(Website)
                            .where(Website.id == deployment.website_id)
                            .values(
                                production_url=values.get("url") or deployment.url,
                                provider_project_id=deployment.provider_project_id,
                                last_deployed_at=now,
                                updated_at=now,
                            )
                            .execution_options(synchronize_session=False)
                        )
                if not applied:
                    continue
                await session.refresh(deployment)

            if moved:
                logger.info("Deployment %s: %s -> %s", deployment_id, previous, deployment.status)
                await hooks.do_action(DEPLOYMENT_STATUS_CHANGED, deployment, previous)
                if deployment.is_terminal:
                    await hooks.do_action(DEPLOYMENT_COMPLETED, deployment)
            return deployment

        logger.warning("Gave up updating deployment %s after concurrent writes", deployment_id)
        return await self._load(deployment_id)

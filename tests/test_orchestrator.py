"""Tests for background deployment orchestration."""

import asyncio
from uuid import uuid4

import pytest

from sitepress.config import DeployConfig
from sitepress.db.models import Deployment, Website
from sitepress.deploy.base import ProviderProject, ProviderStatus
from sitepress.deploy.orchestrator import DeploymentOrchestrator
from sitepress.deploy.registry import ProviderRegistry
from sitepress.deploy.states import DeploymentStatus
from sitepress.lib.errors import NotFoundError, ProviderError, ValidationError
from sitepress.lib.export import ExportedFile
from sitepress.lib.hooks import DEPLOYMENT_COMPLETED, DEPLOYMENT_META, DEPLOYMENT_STATUS_CHANGED, hooks

from fakes import FakeProvider, ready

FILES = [
    ExportedFile("app", is_directory=True),
    ExportedFile("package.json", '{"name": "acme"}'),
    ExportedFile("app/page.tsx", "export default function HomePage() {}"),
]


@pytest.fixture
async def make_orchestrator(session_maker):
    created = []

    def _make(provider, **options):
        registry = ProviderRegistry(DeployConfig(default_provider="fake"))
        registry.register("fake", provider)
        options.setdefault("poll_interval", 0)
        options.setdefault("poll_max_attempts", 5)
        orchestrator = DeploymentOrchestrator(session_maker, registry, **options)
        created.append(orchestrator)
        return orchestrator

    yield _make
    for orchestrator in created:
        await orchestrator.shutdown()


@pytest.fixture
async def website(site):
    return await site.website(slug="acme")


async def load(session_maker, model, ident):
    async with session_maker() as session:
        return await session.get(model, ident)


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_returns_pending_row(self, make_orchestrator, website):
        provider = FakeProvider(statuses=[ready()])
        orchestrator = make_orchestrator(provider)

        result = await orchestrator.create(website, FILES)

        assert result.ok
        assert result.value.status == DeploymentStatus.PENDING.value
        assert result.value.project_name == "acme"
        assert result.value.provider == "fake"
        await orchestrator.shutdown()

    @pytest.mark.asyncio
    async def test_building_then_ready_after_two_polls(self, make_orchestrator, session_maker, website):
        provider = FakeProvider(statuses=[ProviderStatus(DeploymentStatus.BUILDING), ready()])
        orchestrator = make_orchestrator(provider)

        deployment = (await orchestrator.create(website, FILES)).value
        await orchestrator.wait(deployment.id)

        stored = await load(session_maker, Deployment, deployment.id)
        assert stored.status == DeploymentStatus.READY.value
        assert stored.url == "https://x.example"
        assert stored.completed_at is not None
        assert stored.provider_deployment_id == "dpl_1"
        assert stored.provider_project_id == "prj_acme"
        assert stored.inspector_url == "https://inspect"
        assert provider.status_calls == 2
        assert not orchestrator.is_tracking(deployment.id)

    @pytest.mark.asyncio
    async def test_ready_production_deploy_updates_website(self, make_orchestrator, session_maker, website):
        orchestrator = make_orchestrator(FakeProvider(statuses=[ready()]))

        deployment = (await orchestrator.create(website, FILES)).value
        await orchestrator.wait(deployment.id)

        stored = await load(session_maker, Website, website.id)
        assert stored.production_url == "https://x.example"
        assert stored.provider_project_id == "prj_acme"
        assert stored.last_deployed_at is not None

    @pytest.mark.asyncio
    async def test_preview_deploy_leaves_website_untouched(self, make_orchestrator, session_maker, website):
        orchestrator = make_orchestrator(FakeProvider(statuses=[ready()]))

        deployment = (await orchestrator.create(website, FILES, target="preview")).value
        await orchestrator.wait(deployment.id)

        stored = await load(session_maker, Website, website.id)
        assert stored.production_url is None

    @pytest.mark.asyncio
    async def test_existing_project_is_reused(self, make_orchestrator, website):
        provider = FakeProvider(statuses=[ready()])
        provider.projects["acme"] = ProviderProject(id="prj_existing", name="acme")
        orchestrator = make_orchestrator(provider)

        deployment = (await orchestrator.create(website, FILES)).value
        await orchestrator.wait(deployment.id)

        assert provider.deployed[0][0].id == "prj_existing"

    @pytest.mark.asyncio
    async def test_unknown_provider_is_rejected(self, make_orchestrator, website):
        orchestrator = make_orchestrator(FakeProvider())

        result = await orchestrator.create(website, FILES, provider_name="missing")

        assert isinstance(result.error, ValidationError)

    @pytest.mark.asyncio
    async def test_status_hooks_fire_in_order(self, make_orchestrator, website, clean_hooks):
        changes = []
        completed = []
        hooks.add_action(DEPLOYMENT_STATUS_CHANGED, lambda d, previous: changes.append((previous, d.status)))
        hooks.add_action(DEPLOYMENT_COMPLETED, lambda d: completed.append(d.status))
        orchestrator = make_orchestrator(FakeProvider(statuses=[ready()]))

        deployment = (await orchestrator.create(website, FILES)).value
        await orchestrator.wait(deployment.id)

        assert changes == [
            ("pending", "building"),
            ("building", "deploying"),
            ("deploying", "ready"),
        ]
        assert completed == ["ready"]

    @pytest.mark.asyncio
    async def test_deployment_meta_filter(self, make_orchestrator, website, clean_hooks):
        async def add_branch(meta, deployment):
            return {**meta, "branch": "main"}

        hooks.add_filter(DEPLOYMENT_META, add_branch)
        provider = FakeProvider(statuses=[ready()])
        orchestrator = make_orchestrator(provider)

        deployment = (await orchestrator.create(website, FILES)).value
        await orchestrator.wait(deployment.id)

        meta = provider.deployed[0][3]
        assert meta["branch"] == "main"
        assert meta["deploymentId"] == str(deployment.id)
        assert meta["websiteId"] == str(website.id)


class TestFailures:
    @pytest.mark.asyncio
    async def test_provider_exception_marks_error(self, make_orchestrator, session_maker, website):
        provider = FakeProvider()
        provider.deploy_error = ProviderError("Quota exceeded", status_code=402, provider="fake")
        orchestrator = make_orchestrator(provider)

        deployment = (await orchestrator.create(website, FILES)).value
        await orchestrator.wait(deployment.id)

        stored = await load(session_maker, Deployment, deployment.id)
        assert stored.status == DeploymentStatus.ERROR.value
        assert stored.error == "Quota exceeded"
        assert stored.completed_at is not None

    @pytest.mark.asyncio
    async def test_remote_error_without_message(self, make_orchestrator, session_maker, website):
        orchestrator = make_orchestrator(FakeProvider(statuses=[ProviderStatus(DeploymentStatus.ERROR)]))

        deployment = (await orchestrator.create(website, FILES)).value
        await orchestrator.wait(deployment.id)

        stored = await load(session_maker, Deployment, deployment.id)
        assert stored.status == DeploymentStatus.ERROR.value
        assert stored.error == "Deployment failed"

    @pytest.mark.asyncio
    async def test_status_check_error_is_recorded(self, make_orchestrator, session_maker, website):
        provider = FakeProvider(statuses=[ProviderError("502 Bad Gateway"), ready()])
        orchestrator = make_orchestrator(provider)

        deployment = (await orchestrator.create(website, FILES)).value
        await orchestrator.wait(deployment.id)

        stored = await load(session_maker, Deployment, deployment.id)
        assert stored.status == DeploymentStatus.ERROR.value
        assert stored.error == "502 Bad Gateway"
        assert stored.completed_at is not None
        assert provider.status_calls == 1

    @pytest.mark.asyncio
    async def test_poll_timeout_leaves_status_by_default(self, make_orchestrator, session_maker, website):
        provider = FakeProvider()
        orchestrator = make_orchestrator(provider, poll_max_attempts=3)

        deployment = (await orchestrator.create(website, FILES)).value
        await orchestrator.wait(deployment.id)

        stored = await load(session_maker, Deployment, deployment.id)
        assert stored.status == DeploymentStatus.DEPLOYING.value
        assert stored.completed_at is None
        assert provider.status_calls == 3

    @pytest.mark.asyncio
    async def test_poll_timeout_can_fail_the_deployment(self, make_orchestrator, session_maker, website):
        orchestrator = make_orchestrator(FakeProvider(), poll_max_attempts=2, fail_on_poll_timeout=True)

        deployment = (await orchestrator.create(website, FILES)).value
        await orchestrator.wait(deployment.id)

        stored = await load(session_maker, Deployment, deployment.id)
        assert stored.status == DeploymentStatus.ERROR.value
        assert stored.error == "Timed out waiting for deployment after 2 status checks"


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_in_flight_deployment(self, make_orchestrator, session_maker, website):
        provider = FakeProvider(statuses=[ready()])
        provider.release = asyncio.Event()
        orchestrator = make_orchestrator(provider)
        deployment = (await orchestrator.create(website, FILES)).value
        await asyncio.wait_for(provider.polling.wait(), timeout=5)

        result = await orchestrator.cancel(deployment.id)
        await orchestrator.wait(deployment.id)

        assert result.ok
        assert result.value.status == DeploymentStatus.CANCELED.value
        assert provider.canceled == ["dpl_1"]
        stored = await load(session_maker, Deployment, deployment.id)
        assert stored.status == DeploymentStatus.CANCELED.value
        assert stored.completed_at is not None

    @pytest.mark.asyncio
    async def test_cancel_terminal_deployment_fails(self, make_orchestrator, session_maker, website):
        orchestrator = make_orchestrator(FakeProvider(statuses=[ready()]))
        deployment = (await orchestrator.create(website, FILES)).value
        await orchestrator.wait(deployment.id)

        result = await orchestrator.cancel(deployment.id)

        assert isinstance(result.error, ValidationError)
        stored = await load(session_maker, Deployment, deployment.id)
        assert stored.status == DeploymentStatus.READY.value

    @pytest.mark.asyncio
    async def test_terminal_status_never_regresses(self, make_orchestrator, session_maker, website):
        orchestrator = make_orchestrator(FakeProvider(statuses=[ready()]))
        deployment = (await orchestrator.create(website, FILES)).value
        await orchestrator.wait(deployment.id)

        await orchestrator._transition(deployment.id, DeploymentStatus.BUILDING)
        await orchestrator._transition(deployment.id, DeploymentStatus.ERROR, error="late failure")

        stored = await load(session_maker, Deployment, deployment.id)
        assert stored.status == DeploymentStatus.READY.value
        assert stored.error is None

    @pytest.mark.asyncio
    async def test_cancel_unknown_deployment(self, make_orchestrator):
        orchestrator = make_orchestrator(FakeProvider())

        result = await orchestrator.cancel(uuid4())

        assert isinstance(result.error, NotFoundError)


class TestResumeAndRefresh:
    @pytest.fixture
    async def inflight(self, session_maker, website):
        async with session_maker() as session:
            tracked = Deployment(
                website_id=website.id,
                provider="fake",
                status=DeploymentStatus.DEPLOYING.value,
                project_name="acme",
                provider_deployment_id="dpl_1",
            )
            untracked = Deployment(
                website_id=website.id,
                provider="fake",
                status=DeploymentStatus.PENDING.value,
                project_name="acme",
            )
            session.add_all([tracked, untracked])
            await session.commit()
        return tracked, untracked

    @pytest.mark.asyncio
    async def test_resume_inflight_polls_to_completion(self, make_orchestrator, session_maker, inflight):
        tracked, untracked = inflight
        orchestrator = make_orchestrator(FakeProvider(statuses=[ready()]))

        started = await orchestrator.resume_inflight()
        await orchestrator.wait(tracked.id)

        assert started == 1
        stored = await load(session_maker, Deployment, tracked.id)
        assert stored.status == DeploymentStatus.READY.value
        pending = await load(session_maker, Deployment, untracked.id)
        assert pending.status == DeploymentStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_refresh_applies_remote_status_once(self, make_orchestrator, inflight):
        tracked, _ = inflight
        provider = FakeProvider(statuses=[ready("https://acme.example")])
        orchestrator = make_orchestrator(provider)

        result = await orchestrator.refresh(tracked.id)

        assert result.ok
        assert result.value.status == DeploymentStatus.READY.value
        assert result.value.url == "https://acme.example"
        assert provider.status_calls == 1

    @pytest.mark.asyncio
    async def test_shutdown_cancels_tasks(self, make_orchestrator, website):
        provider = FakeProvider()
        provider.release = asyncio.Event()
        orchestrator = make_orchestrator(provider)
        deployment = (await orchestrator.create(website, FILES)).value
        await asyncio.wait_for(provider.polling.wait(), timeout=5)

        await orchestrator.shutdown()

        assert not orchestrator.is_tracking(deployment.id)

"""Shared pytest fixtures."""

import pytest
import yaml
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import sitepress.db.models  # noqa: F401 - register all models on Base
from sitepress.db.base import Base
from sitepress.db.models import Page, PageRevision, Website
from sitepress.lib.hooks import hooks


@pytest.fixture
def temp_app_yaml(tmp_path):
    """Create a temporary app.yaml file for testing."""
    config_path = tmp_path / "app.yaml"

    def _create_config(config: dict):
        with open(config_path, "w") as f:
            yaml.safe_dump(config, f)
        return config_path

    return _create_config


@pytest.fixture
def clean_hooks():
    """Save and restore hooks state around a test."""
    original_filters = {k: list(v) for k, v in hooks._filters.items()}
    original_actions = {k: list(v) for k, v in hooks._actions.items()}
    yield
    hooks._filters.clear()
    hooks._filters.update(original_filters)
    hooks._actions.clear()
    hooks._actions.update(original_actions)


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
async def engine(db_url):
    engine = create_async_engine(db_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


class SiteBuilder:
    """Creates websites, pages and revisions directly in the database."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def website(self, slug: str = "acme", name: str = "Acme", **fields) -> Website:
        website = Website(name=name, slug=slug, brand_config=fields.pop("brand_config", {}), **fields)
        self.session.add(website)
        await self.session.commit()
        return website

    async def page(
        self,
        website: Website,
        slug: str,
        *,
        title: str | None = None,
        order: int = 0,
        is_homepage: bool = False,
        path: str | None = None,
        sections: list[dict] | None = None,
    ) -> tuple[Page, PageRevision]:
        page = Page(
            website_id=website.id,
            slug=slug,
            title=title or slug.title(),
            path=path or ("/" if is_homepage else f"/{slug}"),
            order=order,
            is_homepage=is_homepage,
        )
        self.session.add(page)
        await self.session.flush()
        revision = await self.revise(page, sections=sections, commit=False)
        await self.session.commit()
        return page, revision

    async def revise(
        self, page: Page, *, sections: list[dict] | None = None, title: str | None = None, commit: bool = True
    ) -> PageRevision:
        """Add a new revision to ``page`` and make it current."""
        number = (
            await self.session.execute(
                select(func.coalesce(func.max(PageRevision.revision_number), 0)).where(PageRevision.page_id == page.id)
            )
        ).scalar() + 1
        revision = PageRevision(
            page_id=page.id,
            revision_number=number,
            title=title or page.title,
            content={
                "sections": sections
                if sections is not None
                else [{"section_id": f"{page.slug}-hero", "component_id": "hero", "content": {"headline": page.title}}],
                "metadata": {"title": page.title, "description": f"{page.title} page"},
            },
        )
        self.session.add(revision)
        await self.session.flush()
        page.current_revision_id = revision.id
        if commit:
            await self.session.commit()
        return revision


@pytest.fixture
def site(db_session):
    return SiteBuilder(db_session)

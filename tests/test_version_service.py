"""Tests for website version snapshots, publishing and switching."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from sqlalchemy import func, select, update

from sitepress.db.models import Page, TriggerType, VersionStatus, Website, WebsiteVersion
from sitepress.db.services import version_service
from sitepress.db.services.version_service import diff_snapshots
from sitepress.lib.errors import NoRevisionsError, NotFoundError, PartialWriteError
from sitepress.lib.hooks import AFTER_VERSION_CREATE, AFTER_VERSION_PUBLISH, hooks


@pytest.fixture
async def two_page_site(site):
    website = await site.website()
    home, home_rev = await site.page(website, "home", is_homepage=True, order=0)
    about, about_rev = await site.page(website, "about", order=1)
    return website, (home, home_rev), (about, about_rev)


class TestCreateVersion:
    @pytest.mark.asyncio
    async def test_snapshot_maps_pages_to_current_revisions(self, db_session, two_page_site):
        website, (home, home_rev), (about, about_rev) = two_page_site

        result = await version_service.create_version(db_session, website.id)

        assert result.ok
        version = result.value
        assert version.snapshot == {home.id: home_rev.id, about.id: about_rev.id}
        assert version.status == VersionStatus.DRAFT.value
        assert version.trigger_type == TriggerType.MANUAL.value
        assert version.version_name == "v1"
        assert version.page_count == 2

    @pytest.mark.asyncio
    async def test_sets_draft_pointer(self, db_session, two_page_site):
        website = two_page_site[0]

        version = (await version_service.create_version(db_session, website.id)).unwrap()

        refreshed = await db_session.get(Website, website.id)
        assert refreshed.draft_version_id == version.id

    @pytest.mark.asyncio
    async def test_version_numbers_increment_from_one(self, db_session, two_page_site):
        website = two_page_site[0]

        numbers = []
        for _ in range(3):
            numbers.append((await version_service.create_version(db_session, website.id)).value.version_number)

        assert numbers == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_version_numbers_are_scoped_per_website(self, db_session, site, two_page_site):
        first = two_page_site[0]
        other = await site.website(slug="other", name="Other")
        await site.page(other, "home", is_homepage=True)

        await version_service.create_version(db_session, first.id)
        await version_service.create_version(db_session, first.id)
        result = await version_service.create_version(db_session, other.id)

        assert result.value.version_number == 1

    @pytest.mark.asyncio
    async def test_custom_name_and_trigger(self, db_session, two_page_site):
        website = two_page_site[0]

        result = await version_service.create_version(
            db_session,
            website.id,
            version_name="Launch",
            description="First public cut",
            trigger_type="feedback",
            created_by="editor@example.com",
        )

        assert result.value.version_name == "Launch"
        assert result.value.trigger_type == "feedback"
        assert result.value.created_by == "editor@example.com"

    @pytest.mark.asyncio
    async def test_pages_without_revisions_are_left_out(self, db_session, site, two_page_site):
        website = two_page_site[0]
        draft = Page(website_id=website.id, slug="draft", title="Draft", path="/draft")
        db_session.add(draft)
        await db_session.commit()

        version = (await version_service.create_version(db_session, website.id)).value

        assert draft.id not in version.snapshot
        assert version.page_count == 2

    @pytest.mark.asyncio
    async def test_website_without_revisions_fails(self, db_session, site):
        website = await site.website()

        result = await version_service.create_version(db_session, website.id)

        assert not result.ok
        assert isinstance(result.error, NoRevisionsError)
        count = (await db_session.execute(select(func.count()).select_from(WebsiteVersion))).scalar()
        assert count == 0

    @pytest.mark.asyncio
    async def test_unknown_website_fails(self, db_session):
        result = await version_service.create_version(db_session, uuid4())

        assert isinstance(result.error, NotFoundError)

    @pytest.mark.asyncio
    async def test_retries_when_version_number_is_taken(self, db_session, two_page_site):
        website = two_page_site[0]
        await version_service.create_version(db_session, website.id)

        with patch(
            "sitepress.db.services.version_service._next_version_number",
            AsyncMock(side_effect=[1, 2]),
        ) as next_number:
            result = await version_service.create_version(db_session, website.id)

        assert result.ok
        assert result.value.version_number == 2
        assert next_number.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_repeated_collisions(self, db_session, two_page_site):
        website = two_page_site[0]
        await version_service.create_version(db_session, website.id)

        with patch(
            "sitepress.db.services.version_service._next_version_number",
            AsyncMock(return_value=1),
        ):
            result = await version_service.create_version(db_session, website.id)

        assert not result.ok
        assert "version number" in result.error.message

    @pytest.mark.asyncio
    async def test_fires_after_create_action(self, db_session, two_page_site, clean_hooks):
        website = two_page_site[0]
        seen = []
        hooks.add_action(AFTER_VERSION_CREATE, lambda version: seen.append(version.version_number))

        await version_service.create_version(db_session, website.id)

        assert seen == [1]

    @pytest.mark.asyncio
    async def test_snapshot_cannot_be_modified_after_insert(self, db_session, two_page_site):
        website = two_page_site[0]
        version = (await version_service.create_version(db_session, website.id)).value

        with pytest.raises(ValueError):
            version.page_revisions = {}


class TestPublishVersion:
    @pytest.mark.asyncio
    async def test_at_most_one_production_version(self, db_session, two_page_site):
        website = two_page_site[0]
        v1 = (await version_service.create_version(db_session, website.id)).value
        v2 = (await version_service.create_version(db_session, website.id)).value

        await version_service.publish_version(db_session, v1.id)
        result = await version_service.publish_version(db_session, v2.id)

        assert result.ok
        production = (
            await db_session.execute(
                select(WebsiteVersion).where(
                    WebsiteVersion.website_id == website.id,
                    WebsiteVersion.status == VersionStatus.PRODUCTION.value,
                )
            )
        ).scalars().all()
        assert [v.id for v in production] == [v2.id]
        assert v1.status == VersionStatus.DRAFT.value

        refreshed = await db_session.get(Website, website.id)
        assert refreshed.production_version_id == v2.id

    @pytest.mark.asyncio
    async def test_sets_published_at(self, db_session, two_page_site):
        website = two_page_site[0]
        version = (await version_service.create_version(db_session, website.id)).value

        published = (await version_service.publish_version(db_session, version.id)).value

        assert published.published_at is not None
        assert published.is_production

    @pytest.mark.asyncio
    async def test_does_not_touch_other_websites(self, db_session, site, two_page_site):
        website = two_page_site[0]
        other = await site.website(slug="other", name="Other")
        await site.page(other, "home", is_homepage=True)
        other_version = (await version_service.create_version(db_session, other.id)).value
        await version_service.publish_version(db_session, other_version.id)

        version = (await version_service.create_version(db_session, website.id)).value
        await version_service.publish_version(db_session, version.id)

        assert other_version.status == VersionStatus.PRODUCTION.value

    @pytest.mark.asyncio
    async def test_unknown_version(self, db_session):
        result = await version_service.publish_version(db_session, uuid4())

        assert isinstance(result.error, NotFoundError)

    @pytest.mark.asyncio
    async def test_fires_after_publish_action(self, db_session, two_page_site, clean_hooks):
        website = two_page_site[0]
        version = (await version_service.create_version(db_session, website.id)).value
        published = []
        hooks.add_action(AFTER_VERSION_PUBLISH, lambda v: published.append(v.id))

        await version_service.publish_version(db_session, version.id)

        assert published == [version.id]


class TestCompareVersions:
    def test_buckets_are_disjoint_and_cover_union(self):
        shared_same, shared_changed, only_old, only_new = uuid4(), uuid4(), uuid4(), uuid4()
        rev = uuid4()
        old = {shared_same: rev, shared_changed: uuid4(), only_old: uuid4()}
        new = {shared_same: rev, shared_changed: uuid4(), only_new: uuid4()}

        comparison = diff_snapshots(old, new)

        assert comparison.added == [only_new]
        assert comparison.removed == [only_old]
        assert comparison.modified == [shared_changed]
        assert comparison.unchanged == [shared_same]
        buckets = [comparison.added, comparison.removed, comparison.modified, comparison.unchanged]
        flattened = [pid for bucket in buckets for pid in bucket]
        assert len(flattened) == len(set(flattened))
        assert set(flattened) == set(old) | set(new)

    def test_summary_text(self):
        a, b = uuid4(), uuid4()

        assert diff_snapshots({a: b}, {a: b}).summary == "No changes detected"
        assert not diff_snapshots({a: b}, {a: b}).has_changes
        assert diff_snapshots({}, {a: b}).summary == "1 page(s) added"
        assert diff_snapshots({a: b}, {a: uuid4()}).summary == "1 page(s) modified"

    @pytest.mark.asyncio
    async def test_edit_after_publish_is_reported_as_modified(self, db_session, site, two_page_site):
        website, (home, _), (about, _) = two_page_site
        v1 = (await version_service.create_version(db_session, website.id)).value
        await version_service.publish_version(db_session, v1.id)
        await site.revise(home, title="Home, improved")
        v2 = (await version_service.create_version(db_session, website.id)).value

        comparison = (await version_service.compare_versions(db_session, v1.id, v2.id)).value

        assert comparison.modified == [home.id]
        assert comparison.unchanged == [about.id]
        assert comparison.added == []
        assert comparison.removed == []
        assert comparison.summary == "1 page(s) modified"

    @pytest.mark.asyncio
    async def test_missing_version(self, db_session, two_page_site):
        website = two_page_site[0]
        v1 = (await version_service.create_version(db_session, website.id)).value

        result = await version_service.compare_versions(db_session, v1.id, uuid4())

        assert isinstance(result.error, NotFoundError)


class TestSwitchToVersion:
    @pytest.mark.asyncio
    async def test_switch_then_create_reproduces_snapshot(self, db_session, site, two_page_site):
        website, (home, home_rev), _ = two_page_site
        v1 = (await version_service.create_version(db_session, website.id)).value
        await site.revise(home, title="Changed")
        await version_service.create_version(db_session, website.id)

        switched = await version_service.switch_to_version(db_session, website.id, v1.id)
        v3 = (await version_service.create_version(db_session, website.id)).value

        assert switched.ok
        assert switched.warnings == []
        assert v3.page_revisions == v1.page_revisions
        page = await db_session.get(Page, home.id)
        assert page.current_revision_id == home_rev.id

    @pytest.mark.asyncio
    async def test_switch_moves_draft_pointer(self, db_session, two_page_site):
        website = two_page_site[0]
        v1 = (await version_service.create_version(db_session, website.id)).value
        await version_service.create_version(db_session, website.id)

        await version_service.switch_to_version(db_session, website.id, v1.id)

        draft = (await version_service.get_current_draft_version(db_session, website.id)).value
        assert draft.id == v1.id

    @pytest.mark.asyncio
    async def test_deleted_pages_are_reported_as_warning(self, db_session, two_page_site):
        website, _, (about, _) = two_page_site
        about_id = about.id
        v1 = (await version_service.create_version(db_session, website.id)).value
        await db_session.delete(about)
        await db_session.commit()

        result = await version_service.switch_to_version(db_session, website.id, v1.id)

        assert result.ok
        assert len(result.warnings) == 1
        warning = result.warnings[0]
        assert isinstance(warning, PartialWriteError)
        assert warning.missing_ids == [about_id]

    @pytest.mark.asyncio
    async def test_version_of_another_website_is_not_found(self, db_session, site, two_page_site):
        website = two_page_site[0]
        other = await site.website(slug="other", name="Other")
        await site.page(other, "home", is_homepage=True)
        foreign = (await version_service.create_version(db_session, other.id)).value

        result = await version_service.switch_to_version(db_session, website.id, foreign.id)

        assert isinstance(result.error, NotFoundError)


class TestQueries:
    @pytest.mark.asyncio
    async def test_get_versions_newest_first_with_status_filter(self, db_session, two_page_site):
        website = two_page_site[0]
        v1 = (await version_service.create_version(db_session, website.id)).value
        await version_service.create_version(db_session, website.id)
        await version_service.create_version(db_session, website.id)
        await version_service.publish_version(db_session, v1.id)

        versions = (await version_service.get_versions(db_session, website.id)).value
        production = (await version_service.get_versions(db_session, website.id, status="production")).value
        limited = (await version_service.get_versions(db_session, website.id, limit=1, offset=1)).value

        assert [v.version_number for v in versions] == [3, 2, 1]
        assert [v.id for v in production] == [v1.id]
        assert [v.version_number for v in limited] == [2]

    @pytest.mark.asyncio
    async def test_get_version_by_id_resolves_pages(self, db_session, two_page_site):
        website, (home, home_rev), (about, _) = two_page_site
        v1 = (await version_service.create_version(db_session, website.id)).value

        details = (await version_service.get_version_by_id(db_session, v1.id)).value

        assert details.page_count == 2
        assert [p.slug for p in details.pages] == ["home", "about"]
        assert details.pages[0].revision_id == home_rev.id
        assert details.missing_page_ids == []

    @pytest.mark.asyncio
    async def test_current_pointers_start_empty(self, db_session, site):
        website = await site.website()

        assert (await version_service.get_current_draft_version(db_session, website.id)).value is None
        assert (await version_service.get_current_production_version(db_session, website.id)).value is None

    @pytest.mark.asyncio
    async def test_current_production_version(self, db_session, two_page_site):
        website = two_page_site[0]
        v1 = (await version_service.create_version(db_session, website.id)).value
        await version_service.publish_version(db_session, v1.id)

        production = (await version_service.get_current_production_version(db_session, website.id)).value

        assert production.id == v1.id


class TestArchiveAndRollback:
    @pytest.mark.asyncio
    async def test_archive_keeps_current_pointers(self, db_session, two_page_site):
        website = two_page_site[0]
        v1 = (await version_service.create_version(db_session, website.id)).value
        v2 = (await version_service.create_version(db_session, website.id)).value
        v3 = (await version_service.create_version(db_session, website.id)).value
        await version_service.publish_version(db_session, v1.id)
        await db_session.execute(
            update(WebsiteVersion)
            .where(WebsiteVersion.website_id == website.id)
            .values(created_at=datetime.now(UTC) - timedelta(days=60))
        )
        await db_session.commit()

        archived = (await version_service.archive_old_versions(db_session, website.id, older_than_days=30)).value
        again = (await version_service.archive_old_versions(db_session, website.id, older_than_days=30)).value

        assert archived == 1
        assert again == 0
        await db_session.refresh(v2)
        await db_session.refresh(v3)
        assert v2.is_archived
        assert not v3.is_archived
        visible = (await version_service.get_versions(db_session, website.id, include_archived=False)).value
        assert {v.id for v in visible} == {v1.id, v3.id}

    @pytest.mark.asyncio
    async def test_recent_versions_are_not_archived(self, db_session, two_page_site):
        website = two_page_site[0]
        for _ in range(3):
            await version_service.create_version(db_session, website.id)

        archived = (await version_service.archive_old_versions(db_session, website.id)).value

        assert archived == 0

    @pytest.mark.asyncio
    async def test_rollback_records_a_new_version(self, db_session, site, two_page_site):
        website, (home, home_rev), _ = two_page_site
        v1 = (await version_service.create_version(db_session, website.id)).value
        await site.revise(home, title="Changed")
        await version_service.create_version(db_session, website.id)

        result = await version_service.rollback_to_version(db_session, website.id, v1.id, created_by="ops")

        assert result.ok
        rolled = result.value
        assert rolled.version_number == 3
        assert rolled.trigger_type == TriggerType.ROLLBACK.value
        assert rolled.description == "Rollback to v1"
        assert rolled.page_revisions == v1.page_revisions
        page = await db_session.get(Page, home.id)
        assert page.current_revision_id == home_rev.id

    @pytest.mark.asyncio
    async def test_rollback_to_unknown_version(self, db_session, two_page_site):
        website = two_page_site[0]

        result = await version_service.rollback_to_version(db_session, website.id, uuid4())

        assert isinstance(result.error, NotFoundError)

"""Website version model: an append-only snapshot of page revision pointers."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from advanced_alchemy.types import DateTimeUTC, JsonB
from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint, inspect
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from sitepress.db.base import Base

if TYPE_CHECKING:
    from sitepress.db.models.website import Website


class VersionStatus(str, Enum):
    DRAFT = "draft"
    PRODUCTION = "production"


class TriggerType(str, Enum):
    INITIAL = "initial"
    FEEDBACK = "feedback"
    ROLLBACK = "rollback"
    MANUAL = "manual"
    FINALIZATION = "finalization"


class WebsiteVersion(Base):
    """A numbered snapshot mapping each page id to the revision it showed."""

    __tablename__ = "website_versions"
    __table_args__ = (UniqueConstraint("website_id", "version_number"),)

    website_id: Mapped[UUID] = mapped_column(
        ForeignKey("websites.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    website: Mapped["Website"] = relationship("Website", back_populates="versions")

    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    version_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=VersionStatus.DRAFT.value, index=True
    )
    trigger_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TriggerType.MANUAL.value
    )

    # {str(page_id): str(revision_id)}; written once at insert
    page_revisions: Mapped[dict] = mapped_column(JsonB, nullable=False)

    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)
    archived_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)

    @validates("page_revisions")
    def _freeze_page_revisions(self, key: str, value: dict) -> dict:
        state = inspect(self)
        if state.persistent or state.detached:
            raise ValueError("page_revisions of a stored website version cannot be changed")
        return {str(page_id): str(revision_id) for page_id, revision_id in value.items()}

    @property
    def snapshot(self) -> dict[UUID, UUID]:
        """Copy of the page -> revision map with UUID keys and values."""
        return {UUID(page_id): UUID(revision_id) for page_id, revision_id in self.page_revisions.items()}

    @property
    def page_count(self) -> int:
        return len(self.page_revisions)

    @property
    def is_production(self) -> bool:
        return self.status == VersionStatus.PRODUCTION.value

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "website_id": str(self.website_id),
            "version_number": self.version_number,
            "version_name": self.version_name,
            "description": self.description,
            "status": self.status,
            "trigger_type": self.trigger_type,
            "page_revisions": dict(self.page_revisions),
            "page_count": self.page_count,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "archived_at": self.archived_at.isoformat() if self.archived_at else None,
        }

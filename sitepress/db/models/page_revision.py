"""Page revision model: immutable content snapshots of a page."""

from typing import TYPE_CHECKING
from uuid import UUID

from advanced_alchemy.types import JsonB
from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sitepress.db.base import Base

if TYPE_CHECKING:
    from sitepress.db.models.page import Page


class PageRevision(Base):
    """Stores one generated version of a page's sections and metadata."""

    __tablename__ = "page_revisions"
    __table_args__ = (UniqueConstraint("page_id", "revision_number"),)

    page_id: Mapped[UUID] = mapped_column(
        ForeignKey("pages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    page: Mapped["Page"] = relationship("Page", back_populates="revisions")

    revision_number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)

    # {"sections": [{"section_id", "component_id", "content"}], "metadata": {"title", "description"}}
    content: Mapped[dict] = mapped_column(JsonB, nullable=False, default=dict)

    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    @property
    def sections(self) -> list[dict]:
        return list(self.content.get("sections") or [])

    @property
    def page_metadata(self) -> dict:
        return dict(self.content.get("metadata") or {})

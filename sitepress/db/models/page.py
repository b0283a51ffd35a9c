from typing import TYPE_CHECKING
from uuid import UUID

from advanced_alchemy.types import GUID
from sqlalchemy import Boolean, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sitepress.db.base import Base

if TYPE_CHECKING:
    from sitepress.db.models.page_revision import PageRevision
    from sitepress.db.models.website import Website


class Page(Base):
    """A page of a website. Its content lives in PageRevision rows."""

    __tablename__ = "pages"
    __table_args__ = (UniqueConstraint("website_id", "slug"),)

    website_id: Mapped[UUID] = mapped_column(
        ForeignKey("websites.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    website: Mapped["Website"] = relationship("Website", back_populates="pages")

    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    path: Mapped[str] = mapped_column(String(1024), nullable=False, default="/")
    is_homepage: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Identity of the content currently shown; swapped by version switches
    current_revision_id: Mapped[UUID | None] = mapped_column(GUID(length=16), nullable=True)

    revisions: Mapped[list["PageRevision"]] = relationship(
        "PageRevision",
        back_populates="page",
        cascade="all, delete-orphan",
        order_by="desc(PageRevision.revision_number)",
    )

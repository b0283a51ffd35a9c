from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from advanced_alchemy.types import GUID, DateTimeUTC, JsonB
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sitepress.db.base import Base

if TYPE_CHECKING:
    from sitepress.db.models.deployment import Deployment
    from sitepress.db.models.page import Page
    from sitepress.db.models.website_version import WebsiteVersion


class Website(Base):
    """A generated marketing site and its draft/production version pointers."""

    __tablename__ = "websites"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    domain: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # primary_color, secondary_color, accent_color, font_family, heading_font, logo_url
    brand_config: Mapped[dict] = mapped_column(JsonB, nullable=False, default=dict)

    # Plain columns rather than foreign keys: versions already reference websites
    draft_version_id: Mapped[UUID | None] = mapped_column(GUID(length=16), nullable=True)
    production_version_id: Mapped[UUID | None] = mapped_column(GUID(length=16), nullable=True)

    # Hosting state from the most recent production deployment
    provider_project_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    production_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    last_deployed_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)

    pages: Mapped[list["Page"]] = relationship(
        "Page",
        back_populates="website",
        cascade="all, delete-orphan",
        order_by="Page.order",
    )
    versions: Mapped[list["WebsiteVersion"]] = relationship(
        "WebsiteVersion",
        back_populates="website",
        cascade="all, delete-orphan",
    )
    deployments: Mapped[list["Deployment"]] = relationship(
        "Deployment",
        back_populates="website",
        cascade="all, delete-orphan",
    )

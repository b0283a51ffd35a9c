from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from advanced_alchemy.types import DateTimeUTC
from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sitepress.db.base import Base
from sitepress.deploy.states import DeploymentStatus, is_terminal

if TYPE_CHECKING:
    from sitepress.db.models.website import Website


class Deployment(Base):
    """One attempt to build and publish an exported site on a hosting provider."""

    __tablename__ = "deployments"

    website_id: Mapped[UUID] = mapped_column(
        ForeignKey("websites.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    website: Mapped["Website"] = relationship("Website", back_populates="deployments")

    version_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("website_versions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    provider: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DeploymentStatus.PENDING.value, index=True
    )
    target: Mapped[str] = mapped_column(String(20), nullable=False, default="production")
    project_name: Mapped[str] = mapped_column(String(255), nullable=False)

    url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    inspector_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    provider_deployment_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    provider_project_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTimeUTC(timezone=True), nullable=True)

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "website_id": str(self.website_id),
            "version_id": str(self.version_id) if self.version_id else None,
            "provider": self.provider,
            "status": self.status,
            "target": self.target,
            "project_name": self.project_name,
            "url": self.url,
            "inspector_url": self.inspector_url,
            "provider_deployment_id": self.provider_deployment_id,
            "error": self.error,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

from sitepress.db.models.deployment import Deployment
from sitepress.db.models.page import Page
from sitepress.db.models.page_revision import PageRevision
from sitepress.db.models.website import Website
from sitepress.db.models.website_version import TriggerType, VersionStatus, WebsiteVersion

__all__ = ["Deployment", "Page", "PageRevision", "TriggerType", "VersionStatus", "Website", "WebsiteVersion"]

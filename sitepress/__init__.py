"""Sitepress - website versioning, static export and deployment orchestration."""

__version__ = "0.1.0"

"""Static-site export of website versions."""

from sitepress.lib.export.archive import zip_export
from sitepress.lib.export.transformer import ProjectTransformer, transform
from sitepress.lib.export.types import (
    BrandConfig,
    ExportConfig,
    ExportedFile,
    ExportPage,
    ExportResult,
    ExportSection,
    ExportWebsite,
)

__all__ = [
    "BrandConfig",
    "ExportConfig",
    "ExportPage",
    "ExportResult",
    "ExportSection",
    "ExportWebsite",
    "ExportedFile",
    "ProjectTransformer",
    "transform",
    "zip_export",
]

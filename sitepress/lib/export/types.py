"""Data types for static-site export."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from sitepress.config import ExportSettings

SectionNaming = Literal["positional", "stable"]

DEFAULT_PRIMARY_COLOR = "#3B82F6"
DEFAULT_SECONDARY_COLOR = "#10B981"
DEFAULT_ACCENT_COLOR = "#F59E0B"


@dataclass
class ExportConfig:
    """Options controlling the generated project."""

    project_name: str = "my-website"
    description: str | None = None
    typescript: bool = True
    tailwind: bool = True
    include_env_example: bool = True
    include_docker: bool = False
    author: str | None = None
    version: str = "0.1.0"
    section_naming: SectionNaming = "positional"

    @classmethod
    def from_settings(cls, settings: ExportSettings, **overrides: Any) -> ExportConfig:
        values: dict[str, Any] = {
            "typescript": settings.typescript,
            "tailwind": settings.tailwind,
            "include_env_example": settings.include_env_example,
            "include_docker": settings.include_docker,
            "section_naming": settings.section_naming,
            "author": settings.author,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def script_ext(self) -> str:
        return "ts" if self.typescript else "js"

    @property
    def component_ext(self) -> str:
        return "tsx" if self.typescript else "jsx"


@dataclass
class BrandConfig:
    primary_color: str = DEFAULT_PRIMARY_COLOR
    secondary_color: str = DEFAULT_SECONDARY_COLOR
    accent_color: str = DEFAULT_ACCENT_COLOR
    font_family: str | None = None
    heading_font: str | None = None
    logo_url: str | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> BrandConfig:
        data = data or {}
        return cls(
            primary_color=data.get("primary_color") or DEFAULT_PRIMARY_COLOR,
            secondary_color=data.get("secondary_color") or DEFAULT_SECONDARY_COLOR,
            accent_color=data.get("accent_color") or DEFAULT_ACCENT_COLOR,
            font_family=data.get("font_family"),
            heading_font=data.get("heading_font"),
            logo_url=data.get("logo_url"),
        )


@dataclass
class ExportSection:
    component_id: str
    content: dict[str, Any] = field(default_factory=dict)
    section_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> ExportSection:
        return cls(
            component_id=str(data.get("component_id") or "section"),
            content=dict(data.get("content") or {}),
            section_id=data.get("section_id"),
        )


@dataclass
class ExportPage:
    slug: str
    title: str
    path: str = "/"
    is_homepage: bool = False
    sections: list[ExportSection] = field(default_factory=list)
    meta_title: str | None = None
    meta_description: str | None = None

    @property
    def is_home(self) -> bool:
        return self.is_homepage or self.path == "/" or self.slug in ("home", "index")


@dataclass
class ExportWebsite:
    name: str
    pages: list[ExportPage]
    brand: BrandConfig = field(default_factory=BrandConfig)
    domain: str | None = None


@dataclass
class ExportedFile:
    """A generated file, or a directory marker with no content."""

    path: str
    content: str = ""
    is_directory: bool = False

    @property
    def size(self) -> int:
        return 0 if self.is_directory else len(self.content)


@dataclass
class ExportResult:
    files: list[ExportedFile]

    @property
    def total_size(self) -> int:
        return sum(f.size for f in self.files)

    @property
    def file_count(self) -> int:
        return len(self.files)

    def get(self, path: str) -> ExportedFile | None:
        for exported in self.files:
            if exported.path == path:
                return exported
        return None

    def to_dict(self) -> dict:
        return {
            "files": [
                {"path": f.path, "size": f.size, "is_directory": f.is_directory} for f in self.files
            ],
            "total_size": self.total_size,
            "file_count": self.file_count,
        }

"""Render a website snapshot into a standalone Next.js project tree."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from sitepress.lib.export.escaping import (
    collapse_newlines,
    component_name,
    css_string,
    css_value,
    escape_jsx,
    js_string,
    pascal_case,
)
from sitepress.lib.export.types import (
    ExportConfig,
    ExportedFile,
    ExportPage,
    ExportResult,
    ExportSection,
    ExportWebsite,
)

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

DIRECTORIES = ("app", "components", "components/sections", "lib", "public")
DEFAULT_DESCRIPTION = "Generated with Sitepress"


@lru_cache
def get_environment() -> Environment:
    """Jinja environment with bracket delimiters so JSX braces pass through untouched."""
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        block_start_string="[%",
        block_end_string="%]",
        variable_start_string="[[",
        variable_end_string="]]",
        comment_start_string="[#",
        comment_end_string="#]",
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        autoescape=False,
        undefined=StrictUndefined,
    )
    env.filters.update({
        "jsx": escape_jsx,
        "js": js_string,
        "css": css_value,
        "css_string": css_string,
        "oneline": collapse_newlines,
    })
    return env


def _render(template: str, **context: Any) -> str:
    return get_environment().get_template(template).render(**context)


@dataclass
class _Section:
    name: str
    section: ExportSection


@dataclass
class _Route:
    page: ExportPage
    path: str
    function_name: str
    sections: list[_Section]


class ProjectTransformer:
    """Builds the file list for one export. Output is a pure function of the inputs."""

    def __init__(self, website: ExportWebsite, config: ExportConfig | None = None) -> None:
        self.website = website
        self.config = config or ExportConfig()
        self.description = self.config.description or f"{website.name} - {DEFAULT_DESCRIPTION}"

    def transform(self) -> ExportResult:
        config = self.config
        files = [ExportedFile(path=d, is_directory=True) for d in DIRECTORIES]

        files.append(self._package_json())
        files.append(ExportedFile(f"next.config.{'mjs' if config.typescript else 'js'}", _render("next.config.j2")))
        if config.typescript:
            files.append(self._tsconfig())
        if config.tailwind:
            files.append(ExportedFile("tailwind.config.js", _render("tailwind.config.js.j2", brand=self.website.brand)))
            files.append(ExportedFile("postcss.config.js", _render("postcss.config.js.j2")))
        files.append(
            ExportedFile("app/globals.css", _render("globals.css.j2", brand=self.website.brand, config=config))
        )
        files.append(
            ExportedFile(
                f"app/layout.{config.component_ext}",
                _render("layout.j2", website=self.website, description=self.description, config=config),
            )
        )

        routes = self._plan_routes()
        for route in routes:
            files.append(self._page_file(route))
        files.extend(self._section_files(routes))

        files.append(ExportedFile(f"lib/utils.{config.script_ext}", _render("utils.j2", config=config)))
        files.append(
            ExportedFile(
                "README.md",
                _render("README.md.j2", website=self.website, description=self.description, config=config),
            )
        )
        files.append(ExportedFile(".gitignore", _render("gitignore.j2")))
        if config.include_env_example:
            site_url = f"https://{self.website.domain}" if self.website.domain else "http://localhost:3000"
            files.append(ExportedFile(".env.example", _render("env.example.j2", site_url=site_url)))
        if config.include_docker:
            files.append(ExportedFile("Dockerfile", _render("Dockerfile.j2")))
            files.append(ExportedFile(".dockerignore", _render("dockerignore.j2")))
            files.append(ExportedFile("docker-compose.yml", _render("docker-compose.yml.j2")))

        return ExportResult(files=files)

    def _plan_routes(self) -> list[_Route]:
        """Assign route paths and section component names in traversal order."""
        routes: list[_Route] = []
        used_names: set[str] = set()
        position = 0
        home_taken = False

        for page in self.website.pages:
            sections = []
            for section in page.sections:
                position += 1
                name = self._section_name(section, position, used_names)
                used_names.add(name)
                sections.append(_Section(name=name, section=section))

            if page.is_home and not home_taken:
                home_taken = True
                path = f"app/page.{self.config.component_ext}"
                function_name = "HomePage"
            else:
                slug = page.slug.strip("/") or "page"
                path = f"app/{slug}/page.{self.config.component_ext}"
                function_name = f"{component_name('Page', slug)}Page"
            routes.append(_Route(page=page, path=path, function_name=function_name, sections=sections))
        return routes

    def _section_name(self, section: ExportSection, position: int, used: set[str]) -> str:
        if self.config.section_naming == "stable" and section.section_id:
            base = f"Section{pascal_case(str(section.section_id))}"
        else:
            base = f"Section{position}"
        name, suffix = base, 2
        while name in used:
            name, suffix = f"{base}{suffix}", suffix + 1
        return name

    def _page_file(self, route: _Route) -> ExportedFile:
        page = route.page
        content = _render(
            "page.j2",
            sections=route.sections,
            title=page.meta_title or page.title,
            description=page.meta_description or "",
            function_name=route.function_name,
        )
        return ExportedFile(route.path, content)

    def _section_files(self, routes: list[_Route]) -> list[ExportedFile]:
        files = []
        names = []
        for route in routes:
            for planned in route.sections:
                names.append(planned.name)
                files.append(
                    ExportedFile(
                        f"components/sections/{planned.name}.{self.config.component_ext}",
                        _render("section.j2", name=planned.name, **_section_context(planned.section)),
                    )
                )
        files.append(
            ExportedFile(f"components/sections/index.{self.config.script_ext}", _render("sections_index.j2", names=names))
        )
        return files

    def _package_json(self) -> ExportedFile:
        config = self.config
        dependencies = {
            "next": "^14.2.0",
            "react": "^18.2.0",
            "react-dom": "^18.2.0",
            "framer-motion": "^11.0.0",
            "clsx": "^2.1.0",
            "tailwind-merge": "^2.2.0",
        }
        dev_dependencies: dict[str, str] = {}
        if config.tailwind:
            dependencies["tailwindcss"] = "^3.4.0"
            dev_dependencies.update({"autoprefixer": "^10.4.0", "postcss": "^8.4.0"})
        if config.typescript:
            dev_dependencies.update({
                "typescript": "^5.3.0",
                "@types/node": "^20.10.0",
                "@types/react": "^18.2.0",
                "@types/react-dom": "^18.2.0",
            })
        dev_dependencies.update({"eslint": "^8.56.0", "eslint-config-next": "^14.2.0"})

        package = {
            "name": config.project_name,
            "version": config.version,
            "description": collapse_newlines(self.description),
            "private": True,
            "scripts": {
                "dev": "next dev",
                "build": "next build",
                "start": "next start",
                "lint": "next lint",
            },
            "dependencies": dependencies,
            "devDependencies": dev_dependencies,
        }
        if config.author:
            package["author"] = config.author
        return ExportedFile("package.json", json.dumps(package, indent=2) + "\n")

    def _tsconfig(self) -> ExportedFile:
        tsconfig = {
            "compilerOptions": {
                "lib": ["dom", "dom.iterable", "esnext"],
                "allowJs": True,
                "skipLibCheck": True,
                "strict": True,
                "noEmit": True,
                "esModuleInterop": True,
                "module": "esnext",
                "moduleResolution": "bundler",
                "resolveJsonModule": True,
                "isolatedModules": True,
                "jsx": "preserve",
                "incremental": True,
                "plugins": [{"name": "next"}],
                "paths": {"@/*": ["./*"]},
            },
            "include": ["next-env.d.ts", "**/*.ts", "**/*.tsx", ".next/types/**/*.ts"],
            "exclude": ["node_modules"],
        }
        return ExportedFile("tsconfig.json", json.dumps(tsconfig, indent=2) + "\n")


def _section_context(section: ExportSection) -> dict[str, Any]:
    content = section.content
    cta = content.get("cta") if isinstance(content.get("cta"), dict) else {}
    return {
        "component_id": section.component_id,
        "headline": content.get("headline") or content.get("title") or "Section Title",
        "subheadline": content.get("subheadline") or content.get("subtitle") or content.get("description") or "",
        "cta_text": cta.get("text") or content.get("cta_text") or "",
        "cta_url": cta.get("url") or content.get("cta_url") or "#",
    }


def transform(website: ExportWebsite, config: ExportConfig | None = None) -> ExportResult:
    """Generate the project files for ``website``."""
    result = ProjectTransformer(website, config).transform()
    logger.debug("Exported %s: %d entries, %d bytes", website.name, result.file_count, result.total_size)
    return result

"""Main scaffolding orchestrator.

Takes a ``ProjectIdentifier`` and a ``Config`` and materialises the Go +
htmx project tree: directories, placeholder files, rendered seed files and
the generated documentation.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..config import Config
from ..naming import ProjectIdentifier
from ..utils import make_executable
from .layout import directory_layout, ensure_directories, ensure_files, placeholder_files
from .templates import TemplateRenderer, write_rendered_file


@dataclass(frozen=True)
class TemplateFile:
    """A template id, where it renders to, and whether reruns regenerate it."""

    template_id: str
    output: str
    regenerate: bool = False
    executable: bool = False


def source_templates(project: ProjectIdentifier) -> list[TemplateFile]:
    """Seed files the user is expected to edit."""
    return [
        TemplateFile("main.go", f"cmd/{project.slug}/main.go"),
        TemplateFile("index.html", "web/templates/index.html"),
        TemplateFile("reset.css", "web/static/css/reset.css"),
        TemplateFile("config.yaml", "config/config.yaml"),
        TemplateFile("build.sh", "scripts/build.sh", executable=True),
    ]


def doc_templates(project: ProjectIdentifier) -> list[TemplateFile]:
    """Documentation; ``architecture.md`` is regenerated on every run."""
    return [
        TemplateFile("README.md", "docs/README.md"),
        TemplateFile("architecture.md", "docs/architecture.md", regenerate=True),
    ]


class ProjectGenerator:
    """Writes the local part of a project (everything that needs no external tool).

    Each public coroutine is one pipeline step and returns a short
    human-readable detail string for the run report.
    """

    def __init__(
        self,
        project: ProjectIdentifier,
        config: Config,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self.project = project
        self.config = config
        self.root = Path(config.root_dir)
        self.renderer = renderer or TemplateRenderer()

    def build_context(self) -> dict[str, Any]:
        """Build the Jinja2 template context."""
        return {
            **self.project.as_context(),
            "app_port": self.config.app_port,
            "db_port": self.config.database.host_port,
        }

    # -- Steps -------------------------------------------------------------

    async def create_directories(self) -> str:
        layout = directory_layout(self.project)
        await ensure_directories(self.root, layout)
        return f"{len(layout)} directories present"

    async def create_files(self) -> str:
        created = await ensure_files(self.root, placeholder_files(self.project))
        return f"{len(created)} placeholder file(s) created"

    async def render_sources(self) -> str:
        return await self._render_all(source_templates(self.project))

    async def render_docs(self) -> str:
        return await self._render_all(doc_templates(self.project))

    # -- Internals ---------------------------------------------------------

    async def _render_all(self, files: list[TemplateFile]) -> str:
        context = self.build_context()
        written: list[str] = []
        kept: list[str] = []
        for item in files:
            content = self.renderer.render_template(item.template_id, context)
            out = self.root / item.output
            overwrite = self.config.force or item.regenerate
            if await write_rendered_file(out, content, overwrite=overwrite):
                written.append(item.output)
                if item.executable:
                    await asyncio.to_thread(make_executable, out)
            else:
                kept.append(item.output)

        detail = f"{len(written)} written"
        if kept:
            detail += f", kept existing: {', '.join(kept)}"
        return detail

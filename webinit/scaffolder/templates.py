"""Jinja2 template rendering for project scaffolding.

Provides the TemplateRenderer class which loads Jinja2 templates from the
``webinit/scaffolder/templates/`` directory and renders them with
project-specific context data, plus ``write_rendered_file`` which applies the
overwrite policy when the result lands on disk.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from ..errors import FileSystemError
from ..utils import atomic_write_bytes


# ---------------------------------------------------------------------------
# Template directory discovery
# ---------------------------------------------------------------------------

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders Jinja2 templates for project scaffolding.

    Templates are addressed by id: the output file name without the ``.j2``
    suffix (``"index.html"`` renders ``templates/index.html.j2``).  Rendering
    is pure; nothing outside the template directory is read.
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape([]),
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )

    def render_template(self, template_id: str, variables: dict[str, Any]) -> str:
        """Render the template *template_id* with *variables*.

        Raises:
            jinja2.TemplateNotFound: If no ``<template_id>.j2`` exists.
            jinja2.UndefinedError: If the template references a missing variable.
        """
        template = self.env.get_template(f"{template_id}.j2")
        return template.render(**variables)

    def list_templates(self) -> list[str]:
        """Return the sorted ids of every packaged template."""
        if not self.template_dir.is_dir():
            return []
        return sorted(
            str(p.relative_to(self.template_dir))[: -len(".j2")]
            for p in self.template_dir.rglob("*.j2")
        )


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


async def write_rendered_file(path: str | Path, content: str, overwrite: bool) -> bool:
    """Write *content* to *path*, honouring the overwrite policy.

    With ``overwrite=False`` an existing non-empty file is treated as user
    work and left untouched.  Zero-length placeholders are filled.

    Returns:
        ``True`` if the file was written, ``False`` if it was kept.

    Raises:
        FileSystemError: If the file cannot be written.
    """
    out = Path(path)
    try:
        return await asyncio.to_thread(_write_file, out, content, overwrite)
    except OSError as exc:
        raise FileSystemError(f"Cannot write {out}: {exc}") from exc


def _write_file(path: Path, content: str, overwrite: bool) -> bool:
    """Synchronous helper: create parent dirs and replace the file atomically."""
    if not overwrite and path.is_file() and path.stat().st_size > 0:
        return False
    atomic_write_bytes(path, content.encode("utf-8"))
    return True

"""webinit scaffolder -- writes the local project tree.

Creates the Go + htmx directory layout, placeholder files, seed sources and
documentation for a project.

Quick usage::

    from webinit.config import Config
    from webinit.naming import make_identifier
    from webinit.scaffolder import ProjectGenerator

    generator = ProjectGenerator(make_identifier("myapp"), Config(root_dir=path))
    await generator.create_directories()
    await generator.create_files()
    await generator.render_sources()
    await generator.render_docs()
"""

from webinit.scaffolder.generator import ProjectGenerator, TemplateFile
from webinit.scaffolder.layout import (
    directory_layout,
    ensure_directories,
    ensure_files,
    placeholder_files,
)
from webinit.scaffolder.templates import TemplateRenderer, write_rendered_file

__all__ = [
    "ProjectGenerator",
    "TemplateFile",
    "TemplateRenderer",
    "directory_layout",
    "ensure_directories",
    "ensure_files",
    "placeholder_files",
    "write_rendered_file",
]

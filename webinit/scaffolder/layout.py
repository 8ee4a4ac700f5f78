"""Directory layout and placeholder files of a generated project."""

from __future__ import annotations

import asyncio
from pathlib import Path

from ..errors import FileSystemError
from ..naming import ProjectIdentifier


def directory_layout(project: ProjectIdentifier) -> list[str]:
    """Return the relative directories every project gets."""
    return [
        f"cmd/{project.slug}",
        "api",
        "web/templates",
        "web/fragments",
        "web/static/css",
        "web/static/js",
        "web/static/images",
        "features/users",
        "features/products",
        "features/orders",
        "internal/middleware",
        "database/migrations",
        "database/seeds",
        "config",
        "tests",
        "scripts",
        "docs",
    ]


def placeholder_files(project: ProjectIdentifier) -> list[str]:
    """Return the relative files created empty when missing."""
    return [
        f"cmd/{project.slug}/main.go",
        "api/endpoints.go",
        "web/templates/some_template.html",
        "features/users/users.go",
        "features/products/products.go",
        "features/orders/orders.go",
        "database/migrations/some_migration.sql",
        "database/seeds/some_seed.sql",
        "config/config.yaml",
        "tests/some_test.go",
        "scripts/build.sh",
        "docs/README.md",
    ]


async def ensure_directories(root: str | Path, layout: list[str]) -> list[Path]:
    """Create every directory in *layout* under *root*.

    Existing directories are fine; running twice leaves the same tree.

    Raises:
        FileSystemError: If a path is blocked by a file or cannot be created.
    """
    base = Path(root)

    def _mkdir(rel: str) -> Path:
        target = base / rel
        try:
            target.mkdir(parents=True, exist_ok=True)
        except FileExistsError as exc:
            raise FileSystemError(
                f"Cannot create directory {rel}: a file is in the way"
            ) from exc
        except OSError as exc:
            raise FileSystemError(f"Cannot create directory {rel}: {exc}") from exc
        return target

    return await asyncio.gather(*(asyncio.to_thread(_mkdir, rel) for rel in layout))


async def ensure_files(root: str | Path, paths: list[str]) -> list[Path]:
    """Create each missing file in *paths* as an empty file.

    Existing files are never opened for writing, so user edits survive
    reruns.

    Returns:
        The files that were created by this call.

    Raises:
        FileSystemError: If a file cannot be created.
    """
    base = Path(root)

    def _touch(rel: str) -> Path | None:
        target = base / rel
        try:
            # "x" fails on existing files instead of truncating them
            with target.open("x", encoding="utf-8"):
                pass
        except FileExistsError:
            if target.is_dir():
                raise FileSystemError(f"Cannot create file {rel}: a directory is in the way")
            return None
        except OSError as exc:
            raise FileSystemError(f"Cannot create file {rel}: {exc}") from exc
        return target

    created: list[Path] = []
    for rel in paths:
        path = await asyncio.to_thread(_touch, rel)
        if path is not None:
            created.append(path)
    return created

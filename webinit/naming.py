"""Project identifier validation and derived resource names.

The project name is reused as a directory name, a Go module path, a SQL
identifier and a docker container name.  ``ProjectIdentifier`` validates the
raw name once and derives each domain-specific variant from it, so no caller
ever passes the raw string into a naming domain it was not checked against.
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import InvalidProjectName

# Safe as a directory, a Go module path and a docker container name.
# Go rejects a trailing dot in a path element.
_NAME_PATTERN = re.compile(r"[A-Za-z0-9](?:[A-Za-z0-9_.-]*[A-Za-z0-9_-])?")
MAX_NAME_LENGTH = 63
# PostgreSQL truncates identifiers longer than 63 bytes.
MAX_SQL_IDENTIFIER_LENGTH = 63
DB_USER_SUFFIX = "_user"


class ProjectIdentifier(BaseModel):
    """A validated project name plus the names derived from it."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Raw project name")

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        validate_project_name(value)
        return value

    @property
    def slug(self) -> str:
        """Name used for ``cmd/<slug>/``, the Go module and page titles."""
        return self.name

    @property
    def module_name(self) -> str:
        return self.name

    @property
    def sql_identifier(self) -> str:
        """Lowercased name with anything outside ``[a-z0-9_]`` replaced by ``_``."""
        return sql_identifier(self.name)

    @property
    def db_name(self) -> str:
        return f"{self.sql_identifier}_db"

    @property
    def db_user(self) -> str:
        return f"{self.sql_identifier}{DB_USER_SUFFIX}"

    @property
    def container_name(self) -> str:
        return f"{self.slug}_db_container"

    def as_context(self) -> dict[str, str]:
        """Template variables describing this project."""
        return {
            "project_name": self.name,
            "module_name": self.module_name,
            "db_name": self.db_name,
            "db_user": self.db_user,
            "container_name": self.container_name,
        }


def sql_identifier(name: str) -> str:
    """Lowercase *name* and replace anything outside ``[a-z0-9_]`` with ``_``.

    A leading digit gets a ``p_`` prefix so the result is a plain SQL identifier.
    """
    ident = re.sub(r"[^a-z0-9_]", "_", name.lower())
    if ident[:1].isdigit():
        ident = f"p_{ident}"
    return ident


def validate_project_name(name: str) -> None:
    """Raise ``InvalidProjectName`` unless *name* is usable in every naming domain."""
    if not name:
        raise InvalidProjectName("Project name is empty", step="name")
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidProjectName(
            f"Project name {name!r} is longer than {MAX_NAME_LENGTH} characters",
            step="name",
        )
    if not _NAME_PATTERN.fullmatch(name):
        raise InvalidProjectName(
            f"Project name {name!r} must start with a letter or digit and contain "
            "only letters, digits, '_', '-' or '.', and must not end with '.'",
            step="name",
        )
    longest = f"{sql_identifier(name)}{DB_USER_SUFFIX}"
    if len(longest) > MAX_SQL_IDENTIFIER_LENGTH:
        raise InvalidProjectName(
            f"Project name {name!r} gives database user {longest!r}, which is longer than "
            f"{MAX_SQL_IDENTIFIER_LENGTH} characters",
            step="name",
        )


def make_identifier(name: str) -> ProjectIdentifier:
    """Build a ``ProjectIdentifier``, raising ``InvalidProjectName`` on bad input.

    Pydantic would wrap the validator's error in a ``ValidationError``; this
    helper validates first so callers see the domain exception directly.
    """
    validate_project_name(name)
    return ProjectIdentifier(name=name)


def derive_project_name(cwd: str | Path | None = None) -> ProjectIdentifier:
    """Return the identifier for the base name of *cwd* (default: the process cwd)."""
    directory = Path(cwd) if cwd is not None else Path.cwd()
    return make_identifier(directory.resolve().name)

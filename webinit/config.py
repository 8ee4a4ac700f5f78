"""webinit configuration.

Centralised, typed configuration for the scaffolding pipeline. All settings
use Pydantic v2 models so they can be validated at construction time and
serialised to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

DEFAULT_HTMX_URL = "https://unpkg.com/htmx.org@1.6.1"


class StepPolicy(str, Enum):
    """What the pipeline does when a step fails."""

    FATAL = "fatal"
    WARN = "warn"
    RETRY = "retry"


DEFAULT_POLICIES: dict[str, StepPolicy] = {
    "directories": StepPolicy.FATAL,
    "files": StepPolicy.FATAL,
    "templates": StepPolicy.FATAL,
    "database": StepPolicy.WARN,
    "go-module": StepPolicy.WARN,
    "htmx": StepPolicy.WARN,
    "docs": StepPolicy.FATAL,
    "run": StepPolicy.FATAL,
}


class DatabaseConfig(BaseModel):
    """PostgreSQL container settings."""

    image: str = Field(default="postgres:latest")
    host_port: int = Field(default=5432, ge=1, le=65535)
    password: str = Field(default="admin", min_length=1)
    timeout: int = Field(default=300, ge=10, description="Per-command timeout in seconds")


class AssetConfig(BaseModel):
    """The htmx script downloaded into the static assets directory."""

    url: str = Field(default=DEFAULT_HTMX_URL)
    dest: str = Field(default="web/static/js/htmx.min.js")
    timeout: float = Field(default=30.0, gt=0, description="Download timeout in seconds")


class ToolchainConfig(BaseModel):
    """External binaries invoked by the pipeline."""

    go_binary: str = Field(default="go")
    docker_binary: str = Field(default="docker")
    timeout: int = Field(default=120, ge=5, description="Toolchain command timeout in seconds")


class Config(BaseModel):
    """Global webinit configuration.

    Instances are typically created once by the CLI entry point and then
    passed to ``Pipeline``.
    """

    root_dir: Path = Field(default=Path("."))
    project_name: str = Field(default="", description="Overrides the directory-derived name")
    state_dir: str = Field(default=".webinit")
    app_port: int = Field(default=3000, ge=1, le=65535, description="Port the generated server listens on")

    skip_db: bool = Field(default=False)
    skip_fetch: bool = Field(default=False)
    run: bool = Field(default=False, description="Run the generated server after scaffolding")
    force: bool = Field(default=False, description="Overwrite every rendered file")
    strict: bool = Field(default=False, description="Treat every step failure as fatal")
    max_attempts: int = Field(default=2, ge=1, description="Attempts for steps with the retry policy")

    policies: dict[str, StepPolicy] = Field(default_factory=lambda: dict(DEFAULT_POLICIES))

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    asset: AssetConfig = Field(default_factory=AssetConfig)
    toolchain: ToolchainConfig = Field(default_factory=ToolchainConfig)

    # ------------------------------------------------------------------
    # Derived paths and policies
    # ------------------------------------------------------------------

    @property
    def state_path(self) -> Path:
        """Directory holding run metadata inside the project."""
        return self.root_dir / self.state_dir

    @property
    def report_path(self) -> Path:
        """Path to the persisted report of the last run."""
        return self.state_path / "last-run.json"

    @property
    def asset_path(self) -> Path:
        return self.root_dir / self.asset.dest

    def policy_for(self, step: str) -> StepPolicy:
        """Return the failure policy for *step* (``fatal`` for everything in strict mode)."""
        if self.strict:
            return StepPolicy.FATAL
        return self.policies.get(step, StepPolicy.FATAL)

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path | None = None) -> Path:
        """Persist the configuration to a JSON file.

        Args:
            path: Destination file. Defaults to ``<state_path>/config.json``.

        Returns:
            The path where the file was written.
        """
        target = path or (self.state_path / "config.json")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls, **overrides: Any) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            WEBINIT_PROJECT_NAME, WEBINIT_MAX_ATTEMPTS,
            WEBINIT_DB_IMAGE, WEBINIT_DB_PORT, WEBINIT_DB_PASSWORD, WEBINIT_DB_TIMEOUT,
            WEBINIT_HTMX_URL, WEBINIT_FETCH_TIMEOUT,
            WEBINIT_GO_BINARY, WEBINIT_DOCKER_BINARY.

        Keyword *overrides* are applied on top (used by the CLI).
        """
        db_kwargs: dict[str, Any] = {}
        if os.environ.get("WEBINIT_DB_IMAGE"):
            db_kwargs["image"] = os.environ["WEBINIT_DB_IMAGE"]
        if os.environ.get("WEBINIT_DB_PORT"):
            db_kwargs["host_port"] = int(os.environ["WEBINIT_DB_PORT"])
        if os.environ.get("WEBINIT_DB_PASSWORD"):
            db_kwargs["password"] = os.environ["WEBINIT_DB_PASSWORD"]
        if os.environ.get("WEBINIT_DB_TIMEOUT"):
            db_kwargs["timeout"] = int(os.environ["WEBINIT_DB_TIMEOUT"])

        asset_kwargs: dict[str, Any] = {}
        if os.environ.get("WEBINIT_HTMX_URL"):
            asset_kwargs["url"] = os.environ["WEBINIT_HTMX_URL"]
        if os.environ.get("WEBINIT_FETCH_TIMEOUT"):
            asset_kwargs["timeout"] = float(os.environ["WEBINIT_FETCH_TIMEOUT"])

        tool_kwargs: dict[str, Any] = {}
        if os.environ.get("WEBINIT_GO_BINARY"):
            tool_kwargs["go_binary"] = os.environ["WEBINIT_GO_BINARY"]
        if os.environ.get("WEBINIT_DOCKER_BINARY"):
            tool_kwargs["docker_binary"] = os.environ["WEBINIT_DOCKER_BINARY"]

        kwargs: dict[str, Any] = {
            "project_name": os.environ.get("WEBINIT_PROJECT_NAME", ""),
            "database": DatabaseConfig(**db_kwargs),
            "asset": AssetConfig(**asset_kwargs),
            "toolchain": ToolchainConfig(**tool_kwargs),
        }
        if os.environ.get("WEBINIT_MAX_ATTEMPTS"):
            kwargs["max_attempts"] = int(os.environ["WEBINIT_MAX_ATTEMPTS"])

        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**kwargs)

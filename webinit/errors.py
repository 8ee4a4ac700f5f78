"""Exception hierarchy for the scaffolding pipeline.

Every step raises a subclass of ``ScaffoldError`` so the pipeline can apply
the step's failure policy without catching unrelated exceptions.  The
``kind`` attribute is what ends up in the run report.
"""

from __future__ import annotations


class ScaffoldError(Exception):
    """Base class for failures raised by a scaffolding step."""

    kind = "scaffold"

    def __init__(self, message: str, step: str | None = None) -> None:
        self.step = step
        self.message = message
        prefix = f"[{step}] " if step else ""
        super().__init__(f"{prefix}{message}")


class InvalidProjectName(ScaffoldError, ValueError):
    """Raised when a project name cannot be used across all naming domains."""

    kind = "invalid-name"


class FileSystemError(ScaffoldError):
    """Directory or file creation failed (permissions, collisions, disk full)."""

    kind = "io"


class ProvisionError(ScaffoldError):
    """The container runtime could not create or start the database."""

    kind = "provision"


class NetworkError(ScaffoldError):
    """An asset download failed."""

    kind = "network"


class ToolError(ScaffoldError):
    """A language toolchain command failed."""

    kind = "tool"


class EntrypointError(ScaffoldError):
    """The generated application could not be started or exited non-zero."""

    kind = "runtime"

"""Go toolchain invocations: module initialisation and running the server."""

from __future__ import annotations

from pathlib import Path

from ..errors import EntrypointError, ToolError
from ..naming import ProjectIdentifier
from ..utils import run_command, which

MODULE_MARKER = "go.mod"


async def init_dependency_module(
    root: str | Path,
    module_name: str,
    timeout: int = 120,
    go_binary: str = "go",
) -> bool:
    """Run ``go mod init <module_name>`` in *root* unless ``go.mod`` exists.

    Returns:
        ``True`` if the module was initialised, ``False`` if it already was.

    Raises:
        ToolError: If go is missing or the command does not succeed.
    """
    base = Path(root)
    if (base / MODULE_MARKER).exists():
        return False

    go = which(go_binary)
    if go is None:
        raise ToolError(f"'{go_binary}' was not found on PATH")

    try:
        returncode, stdout, stderr = await run_command(
            [go, "mod", "init", module_name], cwd=base, timeout=timeout
        )
    except OSError as exc:
        raise ToolError(f"go mod init could not be started: {exc}") from exc
    if returncode != 0:
        raise ToolError(f"go mod init failed (exit {returncode}): {stderr or stdout}")
    return True


async def run_entrypoint(
    root: str | Path,
    project: ProjectIdentifier,
    go_binary: str = "go",
) -> int:
    """Run the generated server with ``go run`` and block until it exits.

    Output goes straight to the terminal.  There is no timeout; the server
    runs until it is stopped.

    Raises:
        EntrypointError: If the entrypoint cannot be started or exits non-zero.
    """
    base = Path(root)
    entrypoint = Path("cmd") / project.slug / "main.go"
    if not (base / entrypoint).is_file():
        raise EntrypointError(f"Entrypoint {entrypoint} does not exist")

    go = which(go_binary)
    if go is None:
        raise EntrypointError(f"'{go_binary}' was not found on PATH")

    try:
        returncode, _, _ = await run_command(
            [go, "run", str(entrypoint)], cwd=base, timeout=None, capture=False
        )
    except OSError as exc:
        raise EntrypointError(f"go run could not be started: {exc}") from exc
    if returncode != 0:
        raise EntrypointError(f"{entrypoint} exited with status {returncode}")
    return returncode

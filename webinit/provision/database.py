"""PostgreSQL container provisioning through the docker CLI.

The container is keyed by the project's derived container name.  A
container left over from an earlier run is started again instead of being
recreated.  Its settings are not changed, so a different ``--db-port`` or
password on a rerun does not apply to it.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from ..config import DatabaseConfig
from ..errors import ProvisionError
from ..naming import ProjectIdentifier
from ..utils import run_command, which


class ProvisionOutcome(BaseModel):
    """What ``provision_database`` did."""

    container_name: str
    db_name: str
    db_user: str
    host_port: int
    reused: bool = Field(
        default=False,
        description="An existing container was started with its original settings; "
        "host_port is read back from it",
    )


async def provision_database(
    project: ProjectIdentifier,
    settings: DatabaseConfig,
    docker_binary: str = "docker",
) -> ProvisionOutcome:
    """Create and start the project's PostgreSQL container.

    Args:
        project: Validated project identifier; supplies the database, user
            and container names.
        settings: Image, host port, password and per-command timeout.
        docker_binary: Name or path of the docker CLI.

    Returns:
        A ``ProvisionOutcome`` describing the container.

    Raises:
        ProvisionError: If docker is missing or any docker command fails or
            times out.  Nothing is invoked when docker is missing.
    """
    docker = which(docker_binary)
    if docker is None:
        raise ProvisionError(f"'{docker_binary}' was not found on PATH")

    outcome = ProvisionOutcome(
        container_name=project.container_name,
        db_name=project.db_name,
        db_user=project.db_user,
        host_port=settings.host_port,
    )

    if await _container_exists(docker, project.container_name, settings.timeout):
        await _docker(docker, ["start", project.container_name], settings.timeout)
        published = await _published_port(docker, project.container_name, settings.timeout)
        outcome.reused = True
        if published is not None:
            outcome.host_port = published
        return outcome

    await _docker(docker, ["pull", settings.image], settings.timeout)
    await _docker(
        docker,
        [
            "run",
            "--name", project.container_name,
            "-e", f"POSTGRES_PASSWORD={settings.password}",
            "-e", f"POSTGRES_USER={project.db_user}",
            "-e", f"POSTGRES_DB={project.db_name}",
            "-p", f"{settings.host_port}:5432",
            "-d", settings.image,
        ],
        settings.timeout,
    )
    return outcome


async def _container_exists(docker: str, name: str, timeout: int) -> bool:
    stdout = await _docker(
        docker,
        ["ps", "-a", "--filter", f"name=^{name}$", "--format", "{{.Names}}"],
        timeout,
    )
    return name in stdout.splitlines()


async def _published_port(docker: str, name: str, timeout: int) -> int | None:
    """Host port the running container maps to 5432, or ``None`` if unknown."""
    try:
        stdout = await _docker(docker, ["port", name, "5432/tcp"], timeout)
    except ProvisionError:
        # no published port
        return None
    # one line per binding, e.g. "0.0.0.0:15432" and "[::]:15432"
    for line in stdout.splitlines():
        _, _, port = line.strip().rpartition(":")
        if port.isdigit():
            return int(port)
    return None


async def _docker(docker: str, args: list[str], timeout: int) -> str:
    """Run one docker command, returning stdout or raising ``ProvisionError``."""
    try:
        returncode, stdout, stderr = await run_command([docker, *args], timeout=timeout)
    except OSError as exc:
        raise ProvisionError(f"docker {args[0]} could not be started: {exc}") from exc
    if returncode != 0:
        raise ProvisionError(f"docker {args[0]} failed (exit {returncode}): {stderr or stdout}")
    return stdout

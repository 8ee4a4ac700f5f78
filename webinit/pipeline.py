"""webinit pipeline orchestrator.

Runs the scaffolding steps in order:

1. directories -- create the directory layout
2. files       -- create empty placeholder files
3. templates   -- render seed sources (main.go, index.html, reset.css, ...)
4. database    -- create/start the PostgreSQL container
5. go-module   -- ``go mod init`` unless go.mod exists
6. htmx        -- download htmx.min.js
7. docs        -- render docs/README.md and docs/architecture.md
8. run         -- optional, ``go run cmd/<name>/main.go``

Each step has a failure policy (fatal, warn, retry).  Results are collected
into a ``ScaffoldReport`` which is printed and saved to
``.webinit/last-run.json``.

Usage::

    python -m webinit
    python -m webinit --name myapp --skip-db --run
"""

from __future__ import annotations

import asyncio
import sys
import time
import traceback
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field
from rich.panel import Panel
from rich.table import Table

from webinit.config import Config, DatabaseConfig, StepPolicy
from webinit.errors import InvalidProjectName, ScaffoldError
from webinit.naming import ProjectIdentifier, derive_project_name, make_identifier
from webinit.provision import (
    fetch_asset,
    init_dependency_module,
    provision_database,
    run_entrypoint,
)
from webinit.scaffolder import ProjectGenerator
from webinit.utils import (
    check_port_available,
    console,
    format_duration,
    print_error,
    print_step_header,
    print_success,
    print_warning,
    save_json,
    which,
)

# ---------------------------------------------------------------------------
# Report models
# ---------------------------------------------------------------------------


class StepStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"


class Outcome(str, Enum):
    """Terminal state of a run."""

    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"
    FATAL = "fatal"


EXIT_CODES: dict[Outcome, int] = {
    Outcome.SUCCESS: 0,
    Outcome.FATAL: 1,
    Outcome.PARTIAL_FAILURE: 2,
}


class StepResult(BaseModel):
    """Result of one pipeline step."""

    name: str
    status: StepStatus
    policy: StepPolicy
    detail: str = ""
    error_kind: str | None = None
    attempts: int = 0
    duration_seconds: float = 0.0

    @property
    def is_fatal_failure(self) -> bool:
        return self.status == StepStatus.FAILED and self.policy == StepPolicy.FATAL


class ScaffoldReport(BaseModel):
    """Aggregated result of a pipeline run."""

    project_name: str
    root_dir: str
    started_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    finished_at: str | None = None
    outcome: Outcome = Outcome.SUCCESS
    failed_step: str | None = None
    steps: list[StepResult] = Field(default_factory=list)

    @property
    def failures(self) -> list[StepResult]:
        return [s for s in self.steps if s.status == StepStatus.FAILED]

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.outcome]

    def finalize(self) -> None:
        """Derive the outcome from the recorded steps."""
        fatal = next((s for s in self.steps if s.is_fatal_failure), None)
        if fatal is not None:
            self.outcome = Outcome.FATAL
            self.failed_step = fatal.name
        elif self.failures:
            self.outcome = Outcome.PARTIAL_FAILURE
            self.failed_step = None
        else:
            self.outcome = Outcome.SUCCESS
            self.failed_step = None
        self.finished_at = datetime.now(timezone.utc).isoformat()


@dataclass
class Step:
    """A named pipeline step."""

    name: str
    action: Callable[[], Awaitable[str]]
    enabled: bool = True
    skip_reason: str = ""


# ---------------------------------------------------------------------------
# Pipeline Orchestrator
# ---------------------------------------------------------------------------


class Pipeline:
    """Drives the scaffolding steps and collects a ``ScaffoldReport``.

    Attributes:
        config: Run configuration.
        project: Validated project identifier.
        generator: Writes the local project tree.
    """

    def __init__(self, config: Config, project: ProjectIdentifier | None = None) -> None:
        self.config = config
        self.project = project or resolve_project(config)
        self.root = Path(config.root_dir)
        self.generator = ProjectGenerator(self.project, config)

    # ------------------------------------------------------------------
    # Step table
    # ------------------------------------------------------------------

    def steps(self) -> list[Step]:
        """Return the scaffolding steps in execution order (``run`` excluded)."""
        return [
            Step("directories", self.generator.create_directories),
            Step("files", self.generator.create_files),
            Step("templates", self.generator.render_sources),
            Step("database", self._provision_database,
                 enabled=not self.config.skip_db, skip_reason="--skip-db"),
            Step("go-module", self._init_go_module),
            Step("htmx", self._fetch_htmx,
                 enabled=not self.config.skip_fetch, skip_reason="--skip-fetch"),
            Step("docs", self.generator.render_docs),
        ]

    # ------------------------------------------------------------------
    # Pre-flight checks
    # ------------------------------------------------------------------

    async def _preflight(self) -> None:
        """Report missing tools and a busy database port.  Warnings only."""
        tools = [self.config.toolchain.go_binary]
        if not self.config.skip_db:
            tools.append(self.config.toolchain.docker_binary)
        for tool in tools:
            if which(tool):
                console.print(f"  [green]+[/green] {tool} found")
            else:
                print_warning(f"  {tool} not found on PATH -- steps that need it will fail.")

        if not self.config.skip_db:
            port = self.config.database.host_port
            if not await check_port_available(port):
                print_warning(
                    f"  Port {port} is already in use -- the database container may not start."
                )
        console.print()

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self) -> ScaffoldReport:
        """Execute every step and return the report.

        A failed step whose policy is fatal stops the run; the remaining
        steps are not executed.  The optional ``run`` step only starts when
        no fatal failure happened, and only after the summary was printed,
        because it blocks until the server stops.
        """
        report = ScaffoldReport(project_name=self.project.name, root_dir=str(self.root.resolve()))
        run_start = time.monotonic()

        console.print(
            Panel(
                f"[bold bright_cyan]webinit[/bold bright_cyan]\n"
                f"Project : {self.project.name}\n"
                f"Root    : {self.root.resolve()}\n"
                f"Database: {'skipped' if self.config.skip_db else self.project.container_name}",
                title="[bold]Scaffold Start[/bold]",
                border_style="bright_cyan",
            )
        )
        await self._preflight()

        steps = self.steps()
        for index, step in enumerate(steps, start=1):
            print_step_header(index, step.name)
            result = await self._run_step(step)
            report.steps.append(result)
            if result.is_fatal_failure:
                break

        if not self.config.run:
            report.steps.append(self._skipped("run", "pass --run to start the server"))

        report.finalize()
        await self._save_report(report)
        self._print_final_summary(report, time.monotonic() - run_start)

        if self.config.run and report.outcome != Outcome.FATAL:
            print_step_header(len(steps) + 1, "run")
            result = await self._run_step(Step("run", self._run_server))
            report.steps.append(result)
            report.finalize()
            await self._save_report(report)

        return report

    async def _run_step(self, step: Step) -> StepResult:
        """Run one step under its failure policy."""
        policy = self.config.policy_for(step.name)
        if not step.enabled:
            console.print(f"  [dim]skipped ({step.skip_reason})[/dim]")
            return self._skipped(step.name, step.skip_reason)

        max_attempts = self.config.max_attempts if policy == StepPolicy.RETRY else 1
        start = time.monotonic()
        attempt = 0
        while True:
            attempt += 1
            try:
                detail = await step.action()
            except ScaffoldError as exc:
                if attempt < max_attempts:
                    print_warning(f"  {step.name} failed ({exc.message}); retrying ({attempt}/{max_attempts})")
                    await asyncio.sleep(attempt)
                    continue
                return self._failed(step.name, policy, exc.message, exc.kind, attempt, start)
            except Exception as exc:  # noqa: BLE001
                console.print(f"[dim]{traceback.format_exc()}[/dim]")
                return self._failed(
                    step.name, StepPolicy.FATAL, f"Unexpected error: {exc}", "internal", attempt, start
                )

            elapsed = time.monotonic() - start
            print_success(f"  {step.name}: {detail} ({format_duration(elapsed)})")
            return StepResult(
                name=step.name,
                status=StepStatus.OK,
                policy=policy,
                detail=detail,
                attempts=attempt,
                duration_seconds=round(elapsed, 3),
            )

    def _failed(
        self,
        name: str,
        policy: StepPolicy,
        message: str,
        kind: str,
        attempts: int,
        start: float,
    ) -> StepResult:
        # Exhausted retries degrade to a warning.
        effective = StepPolicy.WARN if policy == StepPolicy.RETRY else policy
        if effective == StepPolicy.FATAL:
            print_error(f"  {name} FAILED: {message}")
        else:
            print_warning(f"  {name} failed, continuing: {message}")
        return StepResult(
            name=name,
            status=StepStatus.FAILED,
            policy=effective,
            detail=message,
            error_kind=kind,
            attempts=attempts,
            duration_seconds=round(time.monotonic() - start, 3),
        )

    def _skipped(self, name: str, reason: str) -> StepResult:
        return StepResult(
            name=name,
            status=StepStatus.SKIPPED,
            policy=self.config.policy_for(name),
            detail=reason,
        )

    # ------------------------------------------------------------------
    # External steps
    # ------------------------------------------------------------------

    async def _provision_database(self) -> str:
        outcome = await provision_database(
            self.project,
            self.config.database,
            docker_binary=self.config.toolchain.docker_binary,
        )
        verb = "reused with its existing settings" if outcome.reused else "created"
        return (
            f"container {outcome.container_name} {verb} "
            f"(db {outcome.db_name}, user {outcome.db_user}, port {outcome.host_port})"
        )

    async def _init_go_module(self) -> str:
        initialised = await init_dependency_module(
            self.root,
            self.project.module_name,
            timeout=self.config.toolchain.timeout,
            go_binary=self.config.toolchain.go_binary,
        )
        if initialised:
            return f"module {self.project.module_name} initialised"
        return "go.mod already present"

    async def _fetch_htmx(self) -> str:
        downloaded = await fetch_asset(
            self.config.asset.url,
            self.config.asset_path,
            timeout=self.config.asset.timeout,
            force=self.config.force,
        )
        if downloaded:
            return f"downloaded to {self.config.asset.dest}"
        return f"kept existing {self.config.asset.dest}"

    async def _run_server(self) -> str:
        await run_entrypoint(self.root, self.project, go_binary=self.config.toolchain.go_binary)
        return "server exited cleanly"

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def _save_report(self, report: ScaffoldReport) -> None:
        """Persist the report inside the project, if the project root exists."""
        if not self.root.is_dir():
            return
        try:
            await save_json(report.model_dump(mode="json"), self.config.report_path)
        except OSError as exc:
            print_warning(f"Could not save run report to {self.config.report_path}: {exc}")

    def _print_final_summary(self, report: ScaffoldReport, total_elapsed: float) -> None:
        """Print the per-step table and the final status panel."""
        colors = {StepStatus.OK: "green", StepStatus.SKIPPED: "dim", StepStatus.FAILED: "red"}
        table = Table(title="Scaffold Steps", show_header=True, header_style="bold cyan")
        table.add_column("Step", no_wrap=True)
        table.add_column("Status")
        table.add_column("Policy", style="dim")
        table.add_column("Detail")
        for step in report.steps:
            color = colors[step.status]
            table.add_row(step.name, f"[{color}]{step.status.value}[/{color}]", step.policy.value, step.detail)
        console.print()
        console.print(table)

        if report.outcome == Outcome.SUCCESS:
            border_style = "bold green"
            status_text = f"[bold green]Project {report.project_name} has been initialized[/bold green]"
        elif report.outcome == Outcome.PARTIAL_FAILURE:
            border_style = "bold yellow"
            status_text = "[bold yellow]SCAFFOLD COMPLETED WITH WARNINGS[/bold yellow]"
        else:
            border_style = "bold red"
            status_text = f"[bold red]SCAFFOLD FAILED at step '{report.failed_step}'[/bold red]"

        detail_lines = [
            status_text,
            "",
            f"Duration : {format_duration(total_elapsed)}",
            f"Root     : {report.root_dir}",
            f"Report   : {self.config.report_path}",
        ]
        for failure in report.failures:
            detail_lines.append(f"Failed   : {failure.name} ({failure.error_kind}): {failure.detail}")

        console.print(
            Panel("\n".join(detail_lines), title="[bold]Scaffold Complete[/bold]", border_style=border_style)
        )


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def resolve_project(config: Config) -> ProjectIdentifier:
    """Return the project identifier from the config override or the root directory name.

    Raises:
        InvalidProjectName: If the resulting name is unusable.
    """
    if config.project_name:
        return make_identifier(config.project_name)
    return derive_project_name(config.root_dir)


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``webinit`` and ``python -m webinit``."""
    import argparse

    parser = argparse.ArgumentParser(
        prog="webinit",
        description="Scaffold a Go + htmx + PostgreSQL web project in the current directory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  webinit\n"
            "  webinit --name myapp --skip-db\n"
            "  webinit --skip-fetch --run\n"
            "\n"
            "Exit codes: 0 success, 1 fatal failure, 2 completed with warnings.\n"
        ),
    )
    parser.add_argument("--dir", "-d", default=".", help="Project root (default: current directory)")
    parser.add_argument("--name", default=None, help="Project name (default: the root directory's name)")
    parser.add_argument("--skip-db", action="store_true", help="Do not create the PostgreSQL container")
    parser.add_argument("--skip-fetch", action="store_true", help="Do not download htmx")
    parser.add_argument("--run", action="store_true", help="Run the generated server when done")
    parser.add_argument("--force", action="store_true", help="Overwrite every generated file")
    parser.add_argument("--strict", action="store_true", help="Treat every step failure as fatal")
    parser.add_argument("--db-port", type=int, default=None, help="Host port for PostgreSQL (default: 5432)")
    parser.add_argument("--db-password", default=None, help="PostgreSQL password (default: admin)")

    args = parser.parse_args(argv)

    root = Path(args.dir)
    if not root.is_dir():
        console.print(f"[bold red]Error:[/bold red] Project root is not a directory: {root}")
        sys.exit(1)

    try:
        config = Config.from_env(
            root_dir=root,
            project_name=args.name,
            skip_db=args.skip_db,
            skip_fetch=args.skip_fetch,
            run=args.run,
            force=args.force,
            strict=args.strict,
        )
        db_updates = {}
        if args.db_port is not None:
            db_updates["host_port"] = args.db_port
        if args.db_password is not None:
            db_updates["password"] = args.db_password
        if db_updates:
            config.database = DatabaseConfig(**{**config.database.model_dump(), **db_updates})
        pipeline = Pipeline(config)
    except InvalidProjectName as exc:
        console.print(f"[bold red]Error:[/bold red] {exc.message}")
        sys.exit(1)
    except ValueError as exc:
        console.print(f"[bold red]Error:[/bold red] Invalid configuration: {exc}")
        sys.exit(1)

    try:
        report = asyncio.run(pipeline.run())
    except KeyboardInterrupt:
        print_warning("Interrupted.")
        sys.exit(130)

    sys.exit(report.exit_code)


if __name__ == "__main__":
    main()

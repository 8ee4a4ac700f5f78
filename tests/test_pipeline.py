"""Unit tests for the pipeline orchestrator (webinit.pipeline).

Tests cover:
- ScaffoldReport.finalize outcome derivation and exit codes
- resolve_project from the config override or the root directory
- Pipeline.run on a clean root with external steps skipped
- Failure policies: warn, fatal, retry, strict mode, unexpected errors
- The optional run step
- Report persistence to .webinit/last-run.json
- main() argument handling and exit codes
"""

from __future__ import annotations

import importlib
import json
import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from webinit.config import Config, StepPolicy
from webinit.errors import EntrypointError, InvalidProjectName, NetworkError, ProvisionError
from webinit.pipeline import (
    Outcome,
    Pipeline,
    ScaffoldReport,
    StepResult,
    StepStatus,
    main,
    resolve_project,
)
from webinit.provision import ProvisionOutcome


MODULE = "webinit.pipeline"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def externals():
    """Patch every external collaborator of the pipeline.

    Yields a dict of the mocks so tests can change return values or side
    effects.  Defaults: tools present, port free, every step succeeds.
    """
    mocks = {
        "which": patch(f"{MODULE}.which", return_value="/usr/bin/tool"),
        "check_port_available": patch(f"{MODULE}.check_port_available", new_callable=AsyncMock, return_value=True),
        "init_dependency_module": patch(f"{MODULE}.init_dependency_module", new_callable=AsyncMock, return_value=True),
        "fetch_asset": patch(f"{MODULE}.fetch_asset", new_callable=AsyncMock, return_value=True),
        "provision_database": patch(
            f"{MODULE}.provision_database",
            new_callable=AsyncMock,
            return_value=ProvisionOutcome(
                container_name="myapp_db_container",
                db_name="myapp_db",
                db_user="myapp_user",
                host_port=5432,
                reused=False,
            ),
        ),
        "run_entrypoint": patch(f"{MODULE}.run_entrypoint", new_callable=AsyncMock, return_value=0),
        "sleep": patch(f"{MODULE}.asyncio.sleep", new_callable=AsyncMock),
    }
    started = {name: p.start() for name, p in mocks.items()}
    yield started
    for p in mocks.values():
        p.stop()


def _names(report: ScaffoldReport) -> list[str]:
    return [s.name for s in report.steps]


def _step(report: ScaffoldReport, name: str) -> StepResult:
    return next(s for s in report.steps if s.name == name)


# ---------------------------------------------------------------------------
# Report model
# ---------------------------------------------------------------------------

class TestScaffoldReport:
    @pytest.mark.unit
    def test_success_when_nothing_failed(self):
        report = ScaffoldReport(project_name="myapp", root_dir="/tmp/myapp")
        report.steps.append(StepResult(name="files", status=StepStatus.OK, policy=StepPolicy.FATAL))
        report.finalize()
        assert report.outcome == Outcome.SUCCESS
        assert report.exit_code == 0
        assert report.finished_at is not None

    @pytest.mark.unit
    def test_warn_failure_is_partial(self):
        report = ScaffoldReport(project_name="myapp", root_dir="/tmp/myapp")
        report.steps.append(StepResult(name="htmx", status=StepStatus.FAILED, policy=StepPolicy.WARN))
        report.finalize()
        assert report.outcome == Outcome.PARTIAL_FAILURE
        assert report.failed_step is None
        assert report.exit_code == 2

    @pytest.mark.unit
    def test_fatal_failure_wins(self):
        report = ScaffoldReport(project_name="myapp", root_dir="/tmp/myapp")
        report.steps += [
            StepResult(name="htmx", status=StepStatus.FAILED, policy=StepPolicy.WARN),
            StepResult(name="docs", status=StepStatus.FAILED, policy=StepPolicy.FATAL),
        ]
        report.finalize()
        assert report.outcome == Outcome.FATAL
        assert report.failed_step == "docs"
        assert report.exit_code == 1


# ---------------------------------------------------------------------------
# resolve_project
# ---------------------------------------------------------------------------

class TestResolveProject:
    @pytest.mark.unit
    def test_uses_directory_name(self, tmp_project_dir: Path):
        assert resolve_project(Config(root_dir=tmp_project_dir)).name == "myapp"

    @pytest.mark.unit
    def test_override_wins(self, tmp_project_dir: Path):
        assert resolve_project(Config(root_dir=tmp_project_dir, project_name="shop")).name == "shop"

    @pytest.mark.unit
    def test_invalid_directory_name(self, tmp_path: Path):
        root = tmp_path / "my app"
        root.mkdir()
        with pytest.raises(InvalidProjectName):
            resolve_project(Config(root_dir=root))

    @pytest.mark.unit
    @pytest.mark.parametrize("name", ["myapp\n", "myapp.", "a" * 63])
    def test_invalid_override_fails_before_pipeline_exists(self, tmp_project_dir: Path, externals, name):
        with pytest.raises(InvalidProjectName):
            Pipeline(Config(root_dir=tmp_project_dir, project_name=name))
        externals["provision_database"].assert_not_called()
        assert list(tmp_project_dir.iterdir()) == []


# ---------------------------------------------------------------------------
# Pipeline.run
# ---------------------------------------------------------------------------

class TestPipelineRun:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_clean_run_succeeds(self, config, tmp_project_dir, externals):
        report = await Pipeline(config).run()

        assert report.outcome == Outcome.SUCCESS
        assert _names(report) == [
            "directories", "files", "templates", "database", "go-module", "htmx", "docs", "run",
        ]
        assert _step(report, "database").status == StepStatus.SKIPPED
        assert _step(report, "htmx").status == StepStatus.SKIPPED
        assert _step(report, "run").status == StepStatus.SKIPPED
        assert (tmp_project_dir / "cmd" / "myapp" / "main.go").is_file()
        externals["fetch_asset"].assert_not_awaited()
        externals["provision_database"].assert_not_awaited()
        externals["run_entrypoint"].assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_go_module_uses_project_name(self, config, tmp_project_dir, externals):
        await Pipeline(config).run()
        call = externals["init_dependency_module"].call_args
        assert call.args == (tmp_project_dir, "myapp")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_database_step(self, tmp_project_dir, externals):
        config = Config(root_dir=tmp_project_dir, skip_fetch=True)
        report = await Pipeline(config).run()

        database = _step(report, "database")
        assert database.status == StepStatus.OK
        assert "myapp_db_container created" in database.detail
        externals["check_port_available"].assert_awaited_once_with(5432)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reused_database_detail(self, tmp_project_dir, externals):
        externals["provision_database"].return_value = ProvisionOutcome(
            container_name="myapp_db_container",
            db_name="myapp_db",
            db_user="myapp_user",
            host_port=15432,
            reused=True,
        )
        config = Config(root_dir=tmp_project_dir, skip_fetch=True)
        report = await Pipeline(config).run()

        detail = _step(report, "database").detail
        assert "reused with its existing settings" in detail
        assert "port 15432" in detail

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_busy_port_only_warns(self, tmp_project_dir, externals):
        externals["check_port_available"].return_value = False
        config = Config(root_dir=tmp_project_dir, skip_fetch=True)
        report = await Pipeline(config).run()
        assert report.outcome == Outcome.SUCCESS

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fetch_failure_is_partial(self, tmp_project_dir, externals):
        externals["fetch_asset"].side_effect = NetworkError("Cannot connect to unpkg.com")
        config = Config(root_dir=tmp_project_dir, skip_db=True)
        report = await Pipeline(config).run()

        assert report.outcome == Outcome.PARTIAL_FAILURE
        assert report.exit_code == 2
        assert len(report.failures) == 1
        assert report.failures[0].name == "htmx"
        assert report.failures[0].error_kind == "network"
        assert _step(report, "docs").status == StepStatus.OK
        assert (tmp_project_dir / "docs" / "architecture.md").stat().st_size > 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_database_failure_does_not_stop_run(self, tmp_project_dir, externals):
        externals["provision_database"].side_effect = ProvisionError("'docker' was not found on PATH")
        config = Config(root_dir=tmp_project_dir, skip_fetch=True)
        report = await Pipeline(config).run()

        assert report.outcome == Outcome.PARTIAL_FAILURE
        assert _step(report, "database").error_kind == "provision"
        assert _step(report, "go-module").status == StepStatus.OK

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fatal_failure_stops_run(self, config, tmp_project_dir, externals):
        (tmp_project_dir / "cmd").write_text("", encoding="utf-8")
        report = await Pipeline(config).run()

        assert report.outcome == Outcome.FATAL
        assert report.failed_step == "directories"
        assert report.exit_code == 1
        assert _names(report) == ["directories", "run"]
        assert _step(report, "directories").error_kind == "io"
        externals["init_dependency_module"].assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_strict_makes_warnings_fatal(self, tmp_project_dir, externals):
        externals["fetch_asset"].side_effect = NetworkError("Download failed")
        config = Config(root_dir=tmp_project_dir, skip_db=True, strict=True)
        report = await Pipeline(config).run()

        assert report.outcome == Outcome.FATAL
        assert report.failed_step == "htmx"
        assert "docs" not in _names(report)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_retry_recovers(self, tmp_project_dir, externals):
        externals["fetch_asset"].side_effect = [NetworkError("timed out"), True]
        config = Config(root_dir=tmp_project_dir, skip_db=True, max_attempts=3)
        config.policies["htmx"] = StepPolicy.RETRY
        report = await Pipeline(config).run()

        htmx = _step(report, "htmx")
        assert htmx.status == StepStatus.OK
        assert htmx.attempts == 2
        assert report.outcome == Outcome.SUCCESS
        externals["sleep"].assert_awaited_once_with(1)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_exhausted_retry_degrades_to_warning(self, tmp_project_dir, externals):
        externals["fetch_asset"].side_effect = NetworkError("timed out")
        config = Config(root_dir=tmp_project_dir, skip_db=True, max_attempts=3)
        config.policies["htmx"] = StepPolicy.RETRY
        report = await Pipeline(config).run()

        htmx = _step(report, "htmx")
        assert htmx.status == StepStatus.FAILED
        assert htmx.policy == StepPolicy.WARN
        assert htmx.attempts == 3
        assert externals["fetch_asset"].await_count == 3
        assert report.outcome == Outcome.PARTIAL_FAILURE

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unexpected_error_is_fatal(self, tmp_project_dir, externals):
        externals["fetch_asset"].side_effect = RuntimeError("boom")
        config = Config(root_dir=tmp_project_dir, skip_db=True)
        report = await Pipeline(config).run()

        htmx = _step(report, "htmx")
        assert htmx.error_kind == "internal"
        assert htmx.policy == StepPolicy.FATAL
        assert report.outcome == Outcome.FATAL

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, config, tmp_project_dir, externals):
        await Pipeline(config).run()
        main_go = tmp_project_dir / "cmd" / "myapp" / "main.go"
        main_go.write_text("package main\n// mine\n", encoding="utf-8")

        report = await Pipeline(config).run()

        assert report.outcome == Outcome.SUCCESS
        assert main_go.read_text(encoding="utf-8") == "package main\n// mine\n"


# ---------------------------------------------------------------------------
# Run step
# ---------------------------------------------------------------------------

class TestRunStep:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_runs_after_success(self, tmp_project_dir, externals):
        config = Config(root_dir=tmp_project_dir, skip_db=True, skip_fetch=True, run=True)
        report = await Pipeline(config).run()

        assert _names(report)[-1] == "run"
        assert _step(report, "run").status == StepStatus.OK
        externals["run_entrypoint"].assert_awaited_once()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_not_run_after_fatal(self, tmp_project_dir, externals):
        (tmp_project_dir / "web").write_text("", encoding="utf-8")
        config = Config(root_dir=tmp_project_dir, skip_db=True, skip_fetch=True, run=True)
        report = await Pipeline(config).run()

        assert report.outcome == Outcome.FATAL
        assert "run" not in _names(report)
        externals["run_entrypoint"].assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_runs_after_partial_failure(self, tmp_project_dir, externals):
        externals["fetch_asset"].side_effect = NetworkError("Download failed")
        config = Config(root_dir=tmp_project_dir, skip_db=True, run=True)
        await Pipeline(config).run()
        externals["run_entrypoint"].assert_awaited_once()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_server_failure_is_fatal(self, tmp_project_dir, externals):
        externals["run_entrypoint"].side_effect = EntrypointError("go run exited with status 1")
        config = Config(root_dir=tmp_project_dir, skip_db=True, skip_fetch=True, run=True)
        report = await Pipeline(config).run()

        assert report.outcome == Outcome.FATAL
        assert report.failed_step == "run"
        assert _step(report, "run").error_kind == "runtime"


# ---------------------------------------------------------------------------
# Report persistence
# ---------------------------------------------------------------------------

class TestReportPersistence:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_report_written(self, config, tmp_project_dir, externals):
        await Pipeline(config).run()

        path = tmp_project_dir / ".webinit" / "last-run.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["project_name"] == "myapp"
        assert data["outcome"] == "success"
        assert [s["name"] for s in data["steps"]][0] == "directories"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_report_updated_after_run_step(self, tmp_project_dir, externals):
        config = Config(root_dir=tmp_project_dir, skip_db=True, skip_fetch=True, run=True)
        await Pipeline(config).run()

        data = json.loads(config.report_path.read_text(encoding="utf-8"))
        assert data["steps"][-1]["name"] == "run"
        assert data["steps"][-1]["status"] == "ok"


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

class TestMain:
    @pytest.mark.unit
    def test_success_exit_code(self, tmp_project_dir, externals):
        with pytest.raises(SystemExit) as excinfo:
            main(["--dir", str(tmp_project_dir), "--skip-db", "--skip-fetch"])
        assert excinfo.value.code == 0
        assert (tmp_project_dir / "docs" / "README.md").is_file()

    @pytest.mark.unit
    def test_partial_exit_code(self, tmp_project_dir, externals):
        externals["fetch_asset"].side_effect = NetworkError("Download failed")
        with pytest.raises(SystemExit) as excinfo:
            main(["--dir", str(tmp_project_dir), "--skip-db"])
        assert excinfo.value.code == 2

    @pytest.mark.unit
    @pytest.mark.parametrize("name", ["bad name", "myapp\n", "myapp.", "a" * 63])
    def test_invalid_name_exits_before_any_step(self, tmp_project_dir, externals, name):
        with pytest.raises(SystemExit) as excinfo:
            main(["--dir", str(tmp_project_dir), "--name", name])
        assert excinfo.value.code == 1
        externals["provision_database"].assert_not_awaited()
        assert not (tmp_project_dir / "cmd").exists()

    @pytest.mark.unit
    def test_missing_root(self, tmp_path, externals):
        with pytest.raises(SystemExit) as excinfo:
            main(["--dir", str(tmp_path / "nope")])
        assert excinfo.value.code == 1

    @pytest.mark.unit
    def test_invalid_db_port(self, tmp_project_dir, externals):
        with pytest.raises(SystemExit) as excinfo:
            main(["--dir", str(tmp_project_dir), "--db-port", "70000"])
        assert excinfo.value.code == 1

    @pytest.mark.unit
    def test_db_overrides_reach_provisioning(self, tmp_project_dir, externals):
        with pytest.raises(SystemExit):
            main(["--dir", str(tmp_project_dir), "--skip-fetch", "--db-port", "15432", "--db-password", "pw"])
        settings = externals["provision_database"].call_args.args[1]
        assert settings.host_port == 15432
        assert settings.password == "pw"

    @pytest.mark.unit
    def test_name_from_environment(self, tmp_project_dir, externals, monkeypatch):
        monkeypatch.setenv("WEBINIT_PROJECT_NAME", "shop")
        with pytest.raises(SystemExit) as excinfo:
            main(["--dir", str(tmp_project_dir), "--skip-db", "--skip-fetch"])
        assert excinfo.value.code == 0
        assert (tmp_project_dir / "cmd" / "shop" / "main.go").is_file()

    @pytest.mark.unit
    def test_interrupt_exits_130(self, tmp_project_dir, externals):
        with patch.object(Pipeline, "run", new_callable=AsyncMock, side_effect=KeyboardInterrupt):
            with pytest.raises(SystemExit) as excinfo:
                main(["--dir", str(tmp_project_dir), "--skip-db", "--skip-fetch"])
        assert excinfo.value.code == 130

    @pytest.mark.unit
    def test_importing_main_module_does_not_run(self, monkeypatch):
        monkeypatch.delitem(sys.modules, "webinit.__main__", raising=False)
        with patch(f"{MODULE}.main") as mock_main:
            importlib.import_module("webinit.__main__")
        mock_main.assert_not_called()

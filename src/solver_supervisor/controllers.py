"""Controllers for solver supervisor CLI commands."""

from __future__ import annotations

import signal
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path

from solver_supervisor.config import Settings
from solver_supervisor.errors import LicenseUnavailableError, ModelIOError
from solver_supervisor.license import validate_licenses
from solver_supervisor.model_io import (
    CONVERGENCE_KIND,
    LOG_KIND,
    MONITORING_KIND,
    SNAPSHOT_KIND,
    JsonModelBridge,
)
from solver_supervisor.models import RunOutcome, RunOutcomeKind
from solver_supervisor.runner import SolverTaskWorker
from solver_supervisor.session import InMemorySession
from solver_supervisor.task import new_solver_task
from solver_supervisor.task_id import SolverTaskId

JOIN_POLL_SECONDS = 0.2

EXIT_CODE_BY_OUTCOME = {
    RunOutcomeKind.SUCCEEDED: 0,
    RunOutcomeKind.CANCELLED: 130,
}


@dataclass(slots=True)
class RunSolverCommand:
    """CLI input for one solver run."""

    model_path: Path
    solver_path: str | None = None
    nthreads: int | None = None
    license_file: Path | None = None
    check_licenses: bool = True


@dataclass(slots=True)
class RunSolverResult:
    """Solver run report to render in CLI."""

    lines: list[str]
    outcome: RunOutcome

    @property
    def exit_code(self) -> int:
        return EXIT_CODE_BY_OUTCOME.get(self.outcome.kind, 1)


@dataclass(slots=True)
class LicenseCheckCommand:
    """CLI input for license validation of a model."""

    model_path: Path
    license_file: Path | None = None


@dataclass(slots=True)
class LicenseCheckResult:
    """License check report to render in CLI."""

    lines: list[str]
    success: bool


@dataclass(slots=True)
class PathsCommand:
    """CLI input for derived per-task file paths."""

    model_path: Path
    task_id: str | None = None


class SolverCliController:
    """Coordinates model loading, task construction and execution for the CLI."""

    def __init__(self, model_bridge: JsonModelBridge | None = None) -> None:
        self.model_bridge = model_bridge or JsonModelBridge()

    def run(
        self,
        command: RunSolverCommand,
        *,
        on_stdout: Callable[[str], None],
        on_stderr: Callable[[str], None],
    ) -> RunSolverResult:
        settings = _settings_for(command)
        session = InMemorySession()
        model_id = session.add_model(self._load_model(command.model_path))

        task = new_solver_task(
            settings,
            model_id,
            session=session,
            model_bridge=self.model_bridge,
        )
        task.standard_output.subscribe(on_stdout)
        task.standard_error.subscribe(on_stderr)

        worker = SolverTaskWorker(task)
        with _interrupt_escalation(worker):
            worker.start()
            outcome = worker.join(timeout=JOIN_POLL_SECONDS)
            while outcome is None:
                outcome = worker.join(timeout=JOIN_POLL_SECONDS)

        lines = [
            f"Task: {task.task_id}",
            f"Outcome: {outcome.kind.value}",
        ]
        if outcome.exit_code is not None:
            lines.append(f"Solver exit code: {outcome.exit_code}")
        if outcome.reason:
            lines.append(f"Reason: {outcome.reason}")
        lines.append(f"Log file: {task.log_file_path}")
        if outcome.ok:
            self.model_bridge.save(session.get_model(model_id), command.model_path)
            lines.append(f"Model updated: {command.model_path}")
        return RunSolverResult(lines=lines, outcome=outcome)

    def check_licenses(self, command: LicenseCheckCommand) -> LicenseCheckResult:
        settings = Settings.from_env()
        license_file = command.license_file or settings.license.module_license_file
        model = self._load_model(command.model_path)
        if not model.problem_types:
            return LicenseCheckResult(lines=["Model requires no licensed problem types."], success=True)
        try:
            missing = validate_licenses(
                model.problem_types,
                license_file,
                settings.license.account,
                settings.license.password,
            )
        except LicenseUnavailableError as error:
            return LicenseCheckResult(lines=[str(error)], success=False)

        missing_ids = {item.capability_id for item in missing}
        lines = [
            f"{'MISSING' if problem_type.id in missing_ids else 'ok':<8}"
            f"{problem_type.name} (product-id: {problem_type.id})"
            for problem_type in model.problem_types
        ]
        return LicenseCheckResult(lines=lines, success=not missing)

    def paths(self, command: PathsCommand) -> list[str]:
        model = self._load_model(command.model_path)
        task_id = str(SolverTaskId.parse(command.task_id) if command.task_id else SolverTaskId.generate())
        return [
            f"Task: {task_id}",
            f"Snapshot: {model.build_tmp_file_name(SNAPSHOT_KIND, task_id)}",
            f"Log: {model.build_tmp_file_name(LOG_KIND, task_id)}",
            f"Convergence: {model.build_tmp_file_name(CONVERGENCE_KIND, task_id)}",
            f"Monitoring: {model.build_tmp_file_name(MONITORING_KIND, task_id)}",
        ]

    def _load_model(self, path: Path):
        try:
            return self.model_bridge.load(path)
        except OSError as error:
            raise ValueError(f"Cannot read model file {path}: {error}") from error
        except ModelIOError as error:
            raise ValueError(f"Invalid model file {path}: {error}") from error


def _settings_for(command: RunSolverCommand) -> Settings:
    settings = Settings.from_env()
    solver = settings.solver
    if command.solver_path is not None:
        solver = replace(solver, solver_path=command.solver_path)
    if command.nthreads is not None:
        solver = replace(solver, nthreads=command.nthreads)
    license_settings = replace(
        settings.license,
        validate=settings.license.validate and command.check_licenses,
    )
    if command.license_file is not None:
        license_settings = replace(license_settings, module_license_file=command.license_file)
    settings = replace(settings, solver=solver, license=license_settings)
    settings.validate()
    return settings


@contextmanager
def _interrupt_escalation(worker: SolverTaskWorker) -> Iterator[None]:
    """First SIGINT asks the solver to stop, any further one kills it."""

    if not hasattr(signal, "SIGINT"):
        yield
        return

    original_sigint = signal.getsignal(signal.SIGINT)
    interrupts = 0

    def _handler(_signum: int, _frame: object | None) -> None:
        nonlocal interrupts
        interrupts += 1
        if interrupts == 1:
            worker.stop()
        else:
            worker.kill()

    try:
        signal.signal(signal.SIGINT, _handler)
    except ValueError:
        # Signal handlers can only be installed in main thread.
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, original_sigint)

"""Solver task: save model, run the solver, read results back."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from solver_supervisor.arguments import build_solver_arguments, render_command_line
from solver_supervisor.config import Settings
from solver_supervisor.errors import (
    ConstructionError,
    LicenseUnavailableError,
    ModelIOError,
    SpawnError,
    TaskAlreadyRunError,
    WaitError,
)
from solver_supervisor.license import LicenseFile, LicenseSourceFactory, validate_licenses
from solver_supervisor.logging_utils import get_logger, indent, unindent
from solver_supervisor.model_io import (
    CONVERGENCE_KIND,
    LOG_KIND,
    MONITORING_KIND,
    SNAPSHOT_KIND,
    ModelBridge,
)
from solver_supervisor.models import (
    MissingCapability,
    ProblemType,
    RunOutcome,
    RunOutcomeKind,
    SolverTaskConfig,
    SolverTaskPaths,
    TaskState,
)
from solver_supervisor.process import SolverProcess, SupervisedProcess, classify_exit
from solver_supervisor.session import Session
from solver_supervisor.signals import Signal
from solver_supervisor.task_id import SolverTaskId

logger = get_logger(__name__)

CHECKPOINT_LABEL = "Execute solver task"

_TERMINAL_STATES = {TaskState.SUCCEEDED, TaskState.FAILED, TaskState.CANCELLED}
_STATE_BY_OUTCOME = {
    RunOutcomeKind.SUCCEEDED: TaskState.SUCCEEDED,
    RunOutcomeKind.CANCELLED: TaskState.CANCELLED,
}

ProcessFactory = Callable[[], SupervisedProcess]


class SolverTask:
    """One end-to-end solver invocation bound to a session model.

    Construction only derives paths and arguments; license validation is
    the separate ``prepare`` step. ``run`` never raises for expected
    failures; they are returned as a ``RunOutcome``.
    """

    def __init__(  # noqa: PLR0913
        self,
        settings: Settings,
        model_id: int,
        *,
        session: Session,
        model_bridge: ModelBridge,
        license_source_factory: LicenseSourceFactory = LicenseFile.read,
        process_factory: ProcessFactory | None = None,
    ) -> None:
        self.settings = settings
        self.session = session
        self.model_bridge = model_bridge
        self._license_source_factory = license_source_factory
        self._process_factory: ProcessFactory = process_factory or (
            lambda: SolverProcess(encoding=settings.solver.output_encoding)
        )
        self._task_id = SolverTaskId.generate()

        try:
            model = session.get_model(model_id)
        except KeyError as error:
            raise ConstructionError(f"Cannot create solver task: unknown model #{model_id}.") from error

        task_id = str(self._task_id)
        self.config = SolverTaskConfig(
            solver_executable=settings.solver.solver_path,
            nthreads=settings.solver.nthreads,
            module_license_file=Path(settings.license.module_license_file),
            model_id=model_id,
            paths=SolverTaskPaths(
                snapshot=Path(model.build_tmp_file_name(SNAPSHOT_KIND, task_id)),
                log=Path(model.build_tmp_file_name(LOG_KIND, task_id)),
                convergence=Path(model.build_tmp_file_name(CONVERGENCE_KIND, task_id)),
                monitoring=Path(model.build_tmp_file_name(MONITORING_KIND, task_id)),
            ),
        )
        self.arguments = build_solver_arguments(self.config)
        self.command_line = render_command_line(self.config.solver_executable, self.arguments)
        self.required_capabilities: tuple[ProblemType, ...] = tuple(model.problem_types)
        self.missing_capabilities: list[MissingCapability] = []
        self.license_available: bool | None = None

        self.standard_output: Signal[str] = Signal("standard_output")
        self.standard_error: Signal[str] = Signal("standard_error")
        self.blocking_changed: Signal[bool] = Signal("blocking_changed")

        self._lock = threading.Lock()
        self._state = TaskState.CREATED
        self._process: SupervisedProcess | None = None
        self._kill_requested = False
        self._outcome: RunOutcome | None = None

    @property
    def task_id(self) -> SolverTaskId:
        return self._task_id

    @property
    def model_id(self) -> int:
        return self.config.model_id

    @property
    def paths(self) -> SolverTaskPaths:
        return self.config.paths

    @property
    def log_file_path(self) -> Path:
        return self.config.paths.log

    @property
    def state(self) -> TaskState:
        with self._lock:
            return self._state

    @property
    def outcome(self) -> RunOutcome | None:
        with self._lock:
            return self._outcome

    def prepare(self) -> list[MissingCapability]:
        """Validate module licenses for the model's problem types.

        Never raises for license problems: an unreadable license file is
        logged and the task stays runnable.
        """

        if not self.settings.license.validate:
            logger.debug("License validation disabled for solver task (#%s)", self._task_id)
            return []
        license_path = self.config.module_license_file
        try:
            self.missing_capabilities = validate_licenses(
                self.required_capabilities,
                license_path,
                self.settings.license.account,
                self.settings.license.password,
                source_factory=self._license_source_factory,
            )
        except LicenseUnavailableError as error:
            self.license_available = False
            logger.error("%s", error)
            return []
        self.license_available = True
        return list(self.missing_capabilities)

    def run(self) -> RunOutcome:
        """Execute the solver once and return the terminal outcome."""

        with self._lock:
            if self._state is not TaskState.CREATED:
                raise TaskAlreadyRunError(f"Solver task #{self._task_id} has already been run.")
            self._state = TaskState.RUNNING

        try:
            self.session.store_current_model_version(self.model_id, CHECKPOINT_LABEL)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to store model version before solver task (#%s)", self._task_id)

        logger.info("Solver task (#%s) - Begin", self._task_id)
        indent()
        try:
            outcome = self._execute()
        except BaseException:
            unindent()
            with self._lock:
                self._state = TaskState.FAILED
            raise
        unindent()

        if outcome.ok:
            logger.info("Solver task (#%s) - End", self._task_id)
            self.session.set_model_changed(self.model_id)
        else:
            logger.error("Solver task (#%s) failed: %s", self._task_id, outcome.reason)

        with self._lock:
            self._outcome = outcome
            self._state = _STATE_BY_OUTCOME.get(outcome.kind, TaskState.FAILED)
        return outcome

    def stop(self) -> bool:
        """Ask the solver to finish at its next checkpoint; no-op without a live process."""

        with self._lock:
            process = self._process
            if process is None or self._state in _TERMINAL_STATES:
                return False
        logger.info("Stopping solver task (#%s).", self._task_id)
        if not process.stop():
            return False
        with self._lock:
            if self._state is TaskState.RUNNING:
                self._state = TaskState.STOPPING
        return True

    def kill(self) -> bool:
        """Terminate the solver immediately; no-op before ``run`` or after it ended."""

        with self._lock:
            if self._state is TaskState.CREATED or self._state in _TERMINAL_STATES:
                return False
            self._kill_requested = True
            process = self._process
        logger.info("Killing solver task (#%s).", self._task_id)
        if process is None:
            return True
        return bool(process.kill())

    def _execute(self) -> RunOutcome:
        try:
            model = self.session.get_model(self.model_id)
        except KeyError:
            return self._result(
                RunOutcomeKind.FAILED_TO_SAVE_MODEL,
                f"Model #{self.model_id} is no longer available.",
            )

        snapshot = self.config.paths.snapshot
        try:
            with self._blocking():
                self.model_bridge.save(model, snapshot)
        except (OSError, ModelIOError) as error:
            logger.error("%s File: '%s'", error, snapshot)
            return self._result(
                RunOutcomeKind.FAILED_TO_SAVE_MODEL,
                "Failed to start the solver because model could not be saved.",
            )

        logger.info("Executing '%s'", self.command_line)
        process = self._process_factory()
        process.standard_output.subscribe(self.standard_output.emit)
        process.standard_error.subscribe(self.standard_error.emit)
        with self._lock:
            if self._kill_requested:
                return self._result(
                    RunOutcomeKind.CANCELLED,
                    "Solver task was killed before the solver started.",
                )
            self._process = process

        try:
            process.start(self.config.solver_executable, self.arguments)
        except SpawnError as error:
            logger.error("%s", error)
            return self._result(RunOutcomeKind.FAILED_TO_START, f"Solver execution failed. {error}")

        with self._lock:
            kill_requested = self._kill_requested
        if kill_requested:
            process.kill()

        try:
            exit_code = process.wait_for_completion()
        except WaitError as error:
            logger.warning("Command '%s' could not be awaited: %s", self.command_line, error)
            return self._result(RunOutcomeKind.WAIT_ERROR, f"Solver execution failed. {error}")

        kind = classify_exit(exit_code, killed=process.killed)
        if kind is RunOutcomeKind.CANCELLED:
            logger.warning("Command '%s' was killed.", self.command_line)
            return self._result(kind, "Solver task was killed.", exit_code=exit_code)
        if kind is RunOutcomeKind.SOLVER_EXITED_NON_ZERO:
            logger.warning(
                "Command '%s' failed with exit code = %d.",
                self.command_line,
                exit_code,
            )
            return self._result(kind, "Solver execution failed.", exit_code=exit_code)

        logger.info("Command '%s' successfully finished.", self.command_line)

        try:
            with self._blocking():
                self.model_bridge.update(model, snapshot)
        except (OSError, ModelIOError) as error:
            logger.error("%s File: '%s'", error, snapshot)
            return self._result(
                RunOutcomeKind.FAILED_TO_UPDATE_MODEL,
                "Failed to finish the solver because model could not be opened.",
                exit_code=exit_code,
            )

        return self._result(RunOutcomeKind.SUCCEEDED, "", exit_code=exit_code)

    def _result(self, kind: RunOutcomeKind, reason: str, *, exit_code: int | None = None) -> RunOutcome:
        return RunOutcome(kind=kind, task_id=str(self._task_id), reason=reason, exit_code=exit_code)

    @contextmanager
    def _blocking(self) -> Iterator[None]:
        self.blocking_changed.emit(True)
        try:
            yield
        finally:
            self.blocking_changed.emit(False)


def new_solver_task(  # noqa: PLR0913
    settings: Settings,
    model_id: int,
    *,
    session: Session,
    model_bridge: ModelBridge,
    license_source_factory: LicenseSourceFactory = LicenseFile.read,
    process_factory: ProcessFactory | None = None,
) -> SolverTask:
    """Construct a solver task and run its license preparation step."""

    task = SolverTask(
        settings,
        model_id,
        session=session,
        model_bridge=model_bridge,
        license_source_factory=license_source_factory,
        process_factory=process_factory,
    )
    task.prepare()
    return task

"""Domain models for solver task execution."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class ProcessState(str, Enum):
    """Lifecycle of the supervised solver subprocess."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    FINISHED = "finished"
    KILLED = "killed"


class TaskState(str, Enum):
    """Lifecycle of one solver task."""

    CREATED = "created"
    RUNNING = "running"
    STOPPING = "stopping"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RunOutcomeKind(str, Enum):
    """Terminal result classes of a solver task run."""

    SUCCEEDED = "succeeded"
    FAILED_TO_SAVE_MODEL = "failed_to_save_model"
    FAILED_TO_START = "failed_to_start"
    SOLVER_EXITED_NON_ZERO = "solver_exited_non_zero"
    WAIT_ERROR = "wait_error"
    FAILED_TO_UPDATE_MODEL = "failed_to_update_model"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class ProblemType:
    """Licensed capability a model may require from the solver."""

    id: str
    name: str


@dataclass(frozen=True, slots=True)
class MissingCapability:
    """Required capability without a valid license record."""

    capability_id: str
    name: str


@dataclass(frozen=True, slots=True)
class SolverTaskPaths:
    """Per-task files derived from the model base name and task id."""

    snapshot: Path
    log: Path
    convergence: Path
    monitoring: Path


@dataclass(frozen=True, slots=True)
class SolverTaskConfig:
    """Inputs captured when a solver task is constructed."""

    solver_executable: str
    nthreads: int
    module_license_file: Path
    model_id: int
    paths: SolverTaskPaths


@dataclass(frozen=True, slots=True)
class RunOutcome:
    """Exactly one terminal outcome per solver task run."""

    kind: RunOutcomeKind
    task_id: str
    reason: str = ""
    exit_code: int | None = None

    @property
    def ok(self) -> bool:
        return self.kind is RunOutcomeKind.SUCCEEDED

    @property
    def cancelled(self) -> bool:
        return self.kind is RunOutcomeKind.CANCELLED

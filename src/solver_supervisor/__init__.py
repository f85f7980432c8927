"""Supervise external numerical solver runs for in-memory simulation models."""

from solver_supervisor.models import RunOutcome, RunOutcomeKind
from solver_supervisor.task import SolverTask, new_solver_task

__version__ = "0.1.0"

__all__ = [
    "RunOutcome",
    "RunOutcomeKind",
    "SolverTask",
    "__version__",
    "new_solver_task",
]

"""Run solver tasks on dedicated worker threads."""

from __future__ import annotations

import logging
import threading

from solver_supervisor.models import RunOutcome
from solver_supervisor.task import SolverTask

logger = logging.getLogger(__name__)


class SolverTaskWorker:
    """Executes ``SolverTask.run`` off the caller's thread.

    ``stop`` and ``kill`` forward to the task and may be called from any
    thread while the run waits for the solver.
    """

    def __init__(self, task: SolverTask) -> None:
        self.task = task
        self._thread: threading.Thread | None = None
        self._outcome: RunOutcome | None = None
        self._error: Exception | None = None

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError(f"Worker for solver task #{self.task.task_id} already started.")
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name=f"solver-task-{self.task.task_id}",
        )
        self._thread.start()
        logger.debug("Worker thread %s started", self._thread.name)

    def join(self, timeout: float | None = None) -> RunOutcome | None:
        """Wait for the run; returns its outcome or None if still running."""

        if self._thread is None:
            raise RuntimeError("Worker has not been started.")
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            return None
        if self._error is not None:
            raise self._error
        return self._outcome

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def outcome(self) -> RunOutcome | None:
        return self._outcome

    def stop(self) -> bool:
        return self.task.stop()

    def kill(self) -> bool:
        return self.task.kill()

    def _run(self) -> None:
        try:
            self._outcome = self.task.run()
        except Exception as error:
            logger.exception("Solver task #%s crashed", self.task.task_id)
            self._error = error

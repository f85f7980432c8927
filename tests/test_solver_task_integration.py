from __future__ import annotations

import threading
from dataclasses import replace

import allure
import pytest

from solver_supervisor.config import Settings
from solver_supervisor.model_io import JsonModelBridge, SimulationModel
from solver_supervisor.models import RunOutcomeKind, TaskState
from solver_supervisor.runner import SolverTaskWorker
from solver_supervisor.session import InMemorySession
from solver_supervisor.task import SolverTask, new_solver_task

pytestmark = [
    allure.epic("Solver Tasks"),
    allure.feature("Echo Solver Runs"),
]

JOIN_TIMEOUT = 30


def _task(settings: Settings, solver: str, model: SimulationModel) -> tuple[SolverTask, InMemorySession]:
    session = InMemorySession()
    model_id = session.add_model(model)
    settings = replace(
        settings,
        solver=replace(settings.solver, solver_path=solver),
        license=replace(settings.license, validate=False),
    )
    task = new_solver_task(settings, model_id, session=session, model_bridge=JsonModelBridge())
    return task, session


def test_successful_run_streams_output_and_reads_results(
    settings,
    echo_solver,
    simulation_model,
) -> None:
    task, session = _task(settings, echo_solver, simulation_model)
    stdout: list[str] = []
    stderr: list[str] = []
    task.standard_output.subscribe(stdout.append)
    task.standard_error.subscribe(stderr.append)

    outcome = task.run()

    assert outcome.kind is RunOutcomeKind.SUCCEEDED, outcome.reason
    assert stdout == [
        "Solver ready\n",
        "Iteration 1/3\n",
        "Iteration 2/3\n",
        "Iteration 3/3\n",
        "Solver finished\n",
    ]
    assert stderr == ["echo_solver: nthreads=2\n"]
    assert simulation_model.data["results"] == {"iterations": 3, "stopped": False, "nthreads": 2}
    assert simulation_model.data["mesh"] == {"nodes": 4, "elements": 1}
    assert session.is_model_changed(task.model_id)
    assert task.log_file_path.read_text("utf-8").startswith("echo_solver finished 3 iteration(s)")
    assert len(task.paths.convergence.read_text("utf-8").splitlines()) == 3


def test_non_zero_exit_leaves_model_untouched(
    settings,
    echo_solver,
    simulation_model,
    monkeypatch,
) -> None:
    monkeypatch.setenv("ECHO_SOLVER_EXIT_CODE", "3")
    task, session = _task(settings, echo_solver, simulation_model)

    outcome = task.run()

    assert outcome.kind is RunOutcomeKind.SOLVER_EXITED_NON_ZERO
    assert outcome.exit_code == 3
    assert "results" not in simulation_model.data
    assert not session.is_model_changed(task.model_id)
    assert task.state is TaskState.FAILED


def test_missing_solver_fails_to_start(settings, simulation_model, tmp_path) -> None:
    task, _ = _task(settings, str(tmp_path / "no-such-solver"), simulation_model)

    outcome = task.run()

    assert outcome.kind is RunOutcomeKind.FAILED_TO_START
    assert outcome.exit_code is None


def _start_waiting_solver(
    settings: Settings,
    echo_solver: str,
    model: SimulationModel,
    monkeypatch: pytest.MonkeyPatch,
) -> tuple[SolverTaskWorker, InMemorySession]:
    monkeypatch.setenv("ECHO_SOLVER_WAIT_FOR_STOP", "1")
    task, session = _task(settings, echo_solver, model)
    ready = threading.Event()
    task.standard_output.subscribe(lambda chunk: ready.set() if chunk == "Solver ready\n" else None)
    worker = SolverTaskWorker(task)
    worker.start()
    assert ready.wait(timeout=JOIN_TIMEOUT), "solver did not report readiness"
    return worker, session


def test_stop_request_lets_solver_finish(settings, echo_solver, simulation_model, monkeypatch) -> None:
    worker, session = _start_waiting_solver(settings, echo_solver, simulation_model, monkeypatch)

    assert worker.stop() is True
    outcome = worker.join(timeout=JOIN_TIMEOUT)

    assert outcome is not None
    assert outcome.kind is RunOutcomeKind.SUCCEEDED, outcome.reason
    assert simulation_model.data["results"]["stopped"] is True
    assert session.is_model_changed(worker.task.model_id)


def test_kill_cancels_run_without_updating_model(
    settings,
    echo_solver,
    simulation_model,
    monkeypatch,
) -> None:
    worker, session = _start_waiting_solver(settings, echo_solver, simulation_model, monkeypatch)

    assert worker.kill() is True
    outcome = worker.join(timeout=JOIN_TIMEOUT)

    assert outcome is not None
    assert outcome.kind is RunOutcomeKind.CANCELLED
    assert outcome.cancelled
    assert worker.task.state is TaskState.CANCELLED
    assert "results" not in simulation_model.data
    assert not session.is_model_changed(worker.task.model_id)
    assert worker.kill() is False

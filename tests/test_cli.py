from __future__ import annotations

import json
from pathlib import Path

import allure
from click.testing import CliRunner

from solver_supervisor.license import hash_password
from solver_supervisor.main import solver_supervisor
from solver_supervisor.model_io import JsonModelBridge

pytestmark = [
    allure.epic("CLI"),
    allure.feature("Solver Commands"),
]

TASK_ID = "0f8fad5b-d9cb-469f-a165-70867728950e"


def _license_file(path: Path, product_ids: list[str]) -> Path:
    records = [
        {"product_id": product_id, "account": "acme", "password_sha256": hash_password("secret")}
        for product_id in product_ids
    ]
    path.write_text(json.dumps({"records": records}), "utf-8")
    return path


def test_run_streams_solver_output_and_updates_model(model_file: Path, echo_solver: str) -> None:
    runner = CliRunner()
    result = runner.invoke(
        solver_supervisor,
        [
            "run",
            str(model_file),
            "--solver",
            echo_solver,
            "--nthreads",
            "4",
            "--skip-license-check",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Iteration 1/3" in result.output
    assert "Outcome: succeeded" in result.output
    assert "Solver exit code: 0" in result.output
    assert f"Model updated: {model_file}" in result.output

    model = JsonModelBridge().load(model_file)
    assert model.data["results"] == {"iterations": 3, "stopped": False, "nthreads": 4}


def test_run_reports_non_zero_exit(model_file: Path, echo_solver: str, monkeypatch) -> None:
    monkeypatch.setenv("ECHO_SOLVER_EXIT_CODE", "5")
    runner = CliRunner()
    result = runner.invoke(
        solver_supervisor,
        ["run", str(model_file), "--solver", echo_solver, "--skip-license-check"],
    )

    assert result.exit_code == 1
    assert "Outcome: solver_exited_non_zero" in result.output
    assert "Solver exit code: 5" in result.output
    assert "results" not in JsonModelBridge().load(model_file).data


def test_run_rejects_invalid_model_file(tmp_path: Path) -> None:
    model_path = tmp_path / "broken.json"
    model_path.write_text("[]", "utf-8")

    result = CliRunner().invoke(solver_supervisor, ["run", str(model_path), "--skip-license-check"])

    assert result.exit_code == 1
    assert "Invalid model file" in result.output


def test_license_check_lists_each_problem_type(model_file: Path, tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("SOLVER_SUPERVISOR_ACCOUNT", "acme")
    monkeypatch.setenv("SOLVER_SUPERVISOR_PASSWORD", "secret")
    license_path = _license_file(tmp_path / "lic.json", ["heat-transfer"])

    result = CliRunner().invoke(
        solver_supervisor,
        ["license", "check", str(model_file), "--license-file", str(license_path)],
    )

    assert result.exit_code == 1
    assert "ok      Heat transfer (product-id: heat-transfer)" in result.output
    assert "MISSING Stress analysis (product-id: stress-analysis)" in result.output
    assert "License check failed." in result.output


def test_license_check_passes_when_fully_licensed(
    model_file: Path,
    tmp_path: Path,
    monkeypatch,
) -> None:
    monkeypatch.setenv("SOLVER_SUPERVISOR_ACCOUNT", "acme")
    monkeypatch.setenv("SOLVER_SUPERVISOR_PASSWORD", "secret")
    license_path = _license_file(tmp_path / "lic.json", ["heat-transfer", "stress-analysis"])
    monkeypatch.setenv("SOLVER_SUPERVISOR_MODULE_LICENSE_FILE", str(license_path))

    result = CliRunner().invoke(solver_supervisor, ["license", "check", str(model_file)])

    assert result.exit_code == 0, result.output
    assert "MISSING" not in result.output


def test_paths_for_given_task_id(model_file: Path) -> None:
    result = CliRunner().invoke(solver_supervisor, ["paths", str(model_file), "--task-id", TASK_ID])

    assert result.exit_code == 0, result.output
    directory = model_file.resolve().parent
    assert f"Task: {TASK_ID}" in result.output
    assert f"Snapshot: {directory / f'part_{TASK_ID}.model'}" in result.output
    assert f"Log: {directory / f'part_{TASK_ID}.log'}" in result.output
    assert f"Convergence: {directory / f'part_{TASK_ID}.cvg'}" in result.output
    assert f"Monitoring: {directory / f'part_{TASK_ID}.mon'}" in result.output


def test_paths_rejects_malformed_task_id(model_file: Path) -> None:
    result = CliRunner().invoke(solver_supervisor, ["paths", str(model_file), "--task-id", "nope"])

    assert result.exit_code != 0


def test_run_rejects_model_file_with_invalid_utf8(tmp_path: Path) -> None:
    model_path = tmp_path / "corrupt.json"
    model_path.write_bytes(b"\xff\xfe not utf8")

    result = CliRunner().invoke(solver_supervisor, ["run", str(model_path), "--skip-license-check"])

    assert result.exit_code == 1
    assert "Invalid model file" in result.output

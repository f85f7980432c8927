from __future__ import annotations

from pathlib import Path

import allure
import pytest

from solver_supervisor.config import Settings, SolverSettings

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Environment Settings"),
]


def test_from_env_reads_solver_and_license_settings(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SOLVER_SUPERVISOR_SOLVER_PATH", "/opt/solver/bin/solver")
    monkeypatch.setenv("SOLVER_SUPERVISOR_NTHREADS", "8")
    monkeypatch.setenv("SOLVER_SUPERVISOR_MODULE_LICENSE_FILE", str(tmp_path / "lic.json"))
    monkeypatch.setenv("SOLVER_SUPERVISOR_ACCOUNT", "acme")
    monkeypatch.setenv("SOLVER_SUPERVISOR_PASSWORD", "secret")
    monkeypatch.setenv("SOLVER_SUPERVISOR_VALIDATE_LICENSES", "off")

    settings = Settings.from_env()

    assert settings.solver.solver_path == "/opt/solver/bin/solver"
    assert settings.solver.nthreads == 8
    assert settings.license.module_license_file == tmp_path / "lic.json"
    assert settings.license.account == "acme"
    assert settings.license.password == "secret"
    assert settings.license.validate is False
    settings.validate()


def test_from_env_rejects_invalid_boolean(monkeypatch) -> None:
    monkeypatch.setenv("SOLVER_SUPERVISOR_VALIDATE_LICENSES", "maybe")

    with pytest.raises(ValueError, match="Invalid boolean value"):
        Settings.from_env()


def test_from_env_rejects_non_integer_thread_count(monkeypatch) -> None:
    monkeypatch.setenv("SOLVER_SUPERVISOR_NTHREADS", "many")

    with pytest.raises(ValueError, match="Invalid integer value for SOLVER_SUPERVISOR_NTHREADS"):
        Settings.from_env()


def test_validate_rejects_zero_threads() -> None:
    settings = Settings(solver=SolverSettings(nthreads=0))

    with pytest.raises(ValueError, match="NTHREADS must be >= 1"):
        settings.validate()


def test_validate_rejects_blank_solver_path() -> None:
    settings = Settings(solver=SolverSettings(solver_path="  "))

    with pytest.raises(ValueError, match="SOLVER_PATH must not be empty"):
        settings.validate()

"""Shared test fixtures."""

from __future__ import annotations

import stat
import sys
from pathlib import Path

import pytest

import solver_supervisor
from solver_supervisor.config import LicenseSettings, Settings, SolverSettings
from solver_supervisor.model_io import JsonModelBridge, SimulationModel
from solver_supervisor.models import ProblemType

SRC_DIR = Path(solver_supervisor.__file__).resolve().parents[1]

HEAT = ProblemType(id="heat-transfer", name="Heat transfer")
STRESS = ProblemType(id="stress-analysis", name="Stress analysis")


@pytest.fixture()
def echo_solver(tmp_path: Path) -> str:
    """Executable wrapper that launches the demo solver with this interpreter."""

    script = tmp_path / "bin" / "echo-solver"
    script.parent.mkdir(parents=True, exist_ok=True)
    script.write_text(
        "#!/bin/sh\n"
        f'PYTHONPATH="{SRC_DIR}${{PYTHONPATH:+:$PYTHONPATH}}"\n'
        "export PYTHONPATH\n"
        f'exec "{sys.executable}" -m solver_supervisor.echo_solver "$@"\n',
        "utf-8",
    )
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(script)


@pytest.fixture()
def simulation_model(tmp_path: Path) -> SimulationModel:
    model_dir = tmp_path / "models"
    model_dir.mkdir()
    return SimulationModel(
        file_name=model_dir / "part.json",
        problem_types=(HEAT, STRESS),
        data={"mesh": {"nodes": 4, "elements": 1}},
    )


@pytest.fixture()
def model_file(simulation_model: SimulationModel) -> Path:
    JsonModelBridge().save(simulation_model, simulation_model.file_name)
    return simulation_model.file_name


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        solver=SolverSettings(solver_path="solver", nthreads=2),
        license=LicenseSettings(
            module_license_file=tmp_path / "module_license.json",
            account="acme",
            password="secret",
        ),
    )

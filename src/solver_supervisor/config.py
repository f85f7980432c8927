"""Runtime configuration for solver task supervision."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_LICENSE_FILE = Path.home() / ".solver_supervisor" / "module_license.json"


@dataclass(slots=True)
class SolverSettings:
    """Solver executable and process settings."""

    solver_path: str = "solver"
    nthreads: int = 1
    output_encoding: str = "utf-8"


@dataclass(slots=True)
class LicenseSettings:
    """Module license file and account credentials."""

    module_license_file: Path = DEFAULT_LICENSE_FILE
    account: str = ""
    password: str = ""
    validate: bool = True


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    solver: SolverSettings = field(default_factory=SolverSettings)
    license: LicenseSettings = field(default_factory=LicenseSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults for local development."""

        return cls(
            solver=SolverSettings(
                solver_path=os.getenv("SOLVER_SUPERVISOR_SOLVER_PATH", "solver"),
                nthreads=_env_int("SOLVER_SUPERVISOR_NTHREADS", default=os.cpu_count() or 1),
                output_encoding=os.getenv("SOLVER_SUPERVISOR_OUTPUT_ENCODING", "utf-8"),
            ),
            license=LicenseSettings(
                module_license_file=Path(
                    os.getenv("SOLVER_SUPERVISOR_MODULE_LICENSE_FILE", str(DEFAULT_LICENSE_FILE)),
                ),
                account=os.getenv("SOLVER_SUPERVISOR_ACCOUNT", ""),
                password=os.getenv("SOLVER_SUPERVISOR_PASSWORD", ""),
                validate=_env_bool("SOLVER_SUPERVISOR_VALIDATE_LICENSES", default=True),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for values a solver run cannot use."""

        if not self.solver.solver_path.strip():
            raise ValueError("SOLVER_SUPERVISOR_SOLVER_PATH must not be empty.")
        if self.solver.nthreads < 1:
            raise ValueError("SOLVER_SUPERVISOR_NTHREADS must be >= 1.")
        if not self.solver.output_encoding.strip():
            raise ValueError("SOLVER_SUPERVISOR_OUTPUT_ENCODING must not be empty.")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")

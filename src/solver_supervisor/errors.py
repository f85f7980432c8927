"""Exception hierarchy for solver task supervision."""

from __future__ import annotations


class SolverSupervisorError(RuntimeError):
    """Base class for all supervisor errors."""


class ConstructionError(SolverSupervisorError):
    """Solver task could not be constructed (for example, unknown model id)."""


class LicenseError(SolverSupervisorError):
    """License file could not be read or parsed."""


class LicenseUnavailableError(LicenseError):
    """License validation step could not run at all."""

    def __init__(self, message: str, *, license_path: str) -> None:
        super().__init__(message)
        self.license_path = license_path


class ModelIOError(SolverSupervisorError):
    """Model could not be saved to or updated from a file."""

    def __init__(self, message: str, *, path: str) -> None:
        super().__init__(message)
        self.path = path


class ProcessError(SolverSupervisorError):
    """Base class for solver subprocess failures."""


class SpawnError(ProcessError):
    """Solver executable could not be launched."""

    def __init__(self, message: str, *, executable: str) -> None:
        super().__init__(message)
        self.executable = executable


class WaitError(ProcessError):
    """Waiting for the solver process failed at the OS level or timed out."""


class ProcessStateError(ProcessError):
    """Operation is not valid in the current process state."""


class TaskAlreadyRunError(SolverSupervisorError):
    """Solver task objects are single-use."""

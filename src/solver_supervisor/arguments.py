"""Solver command-line construction."""

from __future__ import annotations

from solver_supervisor.models import SolverTaskConfig

READ_STDIN_FLAG = "--read-stdin"


def build_solver_arguments(config: SolverTaskConfig) -> tuple[str, ...]:
    """Return the solver flags in their fixed order.

    Values are embedded verbatim: the process is spawned from this list
    without a shell, so paths with spaces or quotes need no escaping.
    """

    paths = config.paths
    return (
        f"--file={paths.snapshot}",
        f"--log-file={paths.log}",
        f"--module-license-file={config.module_license_file}",
        f"--convergence-file={paths.convergence}",
        f"--monitoring-file={paths.monitoring}",
        f"--nthreads={config.nthreads}",
        READ_STDIN_FLAG,
    )


def render_command_line(executable: str, arguments: tuple[str, ...] | list[str]) -> str:
    """Render the invocation for log messages only; never executed."""

    parts = [executable]
    parts.extend(f'"{_escape(argument)}"' for argument in arguments)
    return " ".join(parts)


def _escape(value: str) -> str:
    return value.replace('"', '\\"')

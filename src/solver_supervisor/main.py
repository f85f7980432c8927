"""CLI entrypoint for solver-supervisor."""

from pathlib import Path

import rich_click as click

from solver_supervisor import __version__
from solver_supervisor.controllers import (
    LicenseCheckCommand,
    PathsCommand,
    RunSolverCommand,
    SolverCliController,
)
from solver_supervisor.logging_utils import configure_logging

click.rich_click.USE_MARKDOWN = True
SOLVER_CONTROLLER = SolverCliController()


@click.group()
@click.version_option(version=__version__, prog_name="solver-supervisor")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Diagnostics verbosity.",
)
def solver_supervisor(log_level: str) -> None:
    """Run external numerical solvers against simulation models."""

    configure_logging(log_level)


@solver_supervisor.command("run")
@click.argument("model_path", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option(
    "--solver",
    "solver_path",
    default=None,
    help="Solver executable. If omitted, SOLVER_SUPERVISOR_SOLVER_PATH is used.",
)
@click.option(
    "--nthreads",
    type=click.IntRange(min=1),
    default=None,
    help="Solver worker threads. If omitted, SOLVER_SUPERVISOR_NTHREADS is used.",
)
@click.option(
    "--license-file",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Module license file. If omitted, SOLVER_SUPERVISOR_MODULE_LICENSE_FILE is used.",
)
@click.option(
    "--skip-license-check",
    is_flag=True,
    default=False,
    help="Do not validate module licenses before the run.",
)
def run_solver(
    model_path: Path,
    solver_path: str | None,
    nthreads: int | None,
    license_file: Path | None,
    skip_license_check: bool,
) -> None:
    """Run the solver on a model file and write results back into it.

    Press Ctrl-C once to ask the solver to stop, twice to kill it.
    """

    try:
        result = SOLVER_CONTROLLER.run(
            RunSolverCommand(
                model_path=model_path,
                solver_path=solver_path,
                nthreads=nthreads,
                license_file=license_file,
                check_licenses=not skip_license_check,
            ),
            on_stdout=lambda chunk: click.echo(chunk, nl=False),
            on_stderr=lambda chunk: click.echo(chunk, nl=False, err=True),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(result.lines)
    if result.exit_code:
        raise SystemExit(result.exit_code)


@solver_supervisor.group()
def license() -> None:  # noqa: A001
    """Module license commands."""


@license.command("check")
@click.argument("model_path", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option(
    "--license-file",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Module license file. If omitted, SOLVER_SUPERVISOR_MODULE_LICENSE_FILE is used.",
)
def license_check(model_path: Path, license_file: Path | None) -> None:
    """Check that every problem type of a model is licensed."""

    try:
        result = SOLVER_CONTROLLER.check_licenses(
            LicenseCheckCommand(model_path=model_path, license_file=license_file),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("License check failed.")


@solver_supervisor.command("paths")
@click.argument("model_path", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option("--task-id", default=None, help="Existing task id; a new one is generated if omitted.")
def show_paths(model_path: Path, task_id: str | None) -> None:
    """Show the per-task snapshot, log, convergence and monitoring paths."""

    try:
        lines = SOLVER_CONTROLLER.paths(PathsCommand(model_path=model_path, task_id=task_id))
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    solver_supervisor()

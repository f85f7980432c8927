"""Deterministic demo solver speaking the supervisor's command-line protocol.

Behaviour is tuned through environment variables:
``ECHO_SOLVER_ITERATIONS``, ``ECHO_SOLVER_EXIT_CODE``,
``ECHO_SOLVER_WAIT_FOR_STOP`` and ``ECHO_SOLVER_STEP_SECONDS``.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
import threading
import time
from pathlib import Path


def main(argv: list[str] | None = None) -> int:
    """Run the demo solver against a model snapshot."""

    parser = argparse.ArgumentParser(prog="echo_solver")
    parser.add_argument("--file", required=True)
    parser.add_argument("--log-file", required=True)
    parser.add_argument("--module-license-file", required=True)
    parser.add_argument("--convergence-file", required=True)
    parser.add_argument("--monitoring-file", required=True)
    parser.add_argument("--nthreads", type=int, default=1)
    parser.add_argument("--read-stdin", action="store_true")
    args = parser.parse_args(argv)

    iterations = int(os.getenv("ECHO_SOLVER_ITERATIONS", "3"))
    exit_code = int(os.getenv("ECHO_SOLVER_EXIT_CODE", "0"))
    wait_for_stop = os.getenv("ECHO_SOLVER_WAIT_FOR_STOP", "0") == "1"
    step_seconds = float(os.getenv("ECHO_SOLVER_STEP_SECONDS", "0"))

    snapshot_path = Path(args.file)
    try:
        snapshot = json.loads(snapshot_path.read_text("utf-8"))
    except (OSError, json.JSONDecodeError) as error:
        print(f"echo_solver: cannot read model file: {error}", file=sys.stderr, flush=True)
        return 2

    stop_requested = threading.Event()
    if args.read_stdin:
        threading.Thread(target=_watch_stdin, args=(stop_requested,), daemon=True).start()

    print(f"echo_solver: nthreads={args.nthreads}", file=sys.stderr, flush=True)
    print("Solver ready", flush=True)
    if wait_for_stop:
        stop_requested.wait()

    completed = 0
    with (
        Path(args.convergence_file).open("w", encoding="utf-8") as convergence,
        Path(args.monitoring_file).open("w", encoding="utf-8") as monitoring,
    ):
        for iteration in range(1, iterations + 1):
            if stop_requested.is_set() and not wait_for_stop:
                print(f"Stop requested, finishing at iteration {iteration}", flush=True)
                break
            residual = 1.0 / (10**iteration)
            print(f"Iteration {iteration}/{iterations}", flush=True)
            convergence.write(f"{iteration} {residual:.3e}\n")
            monitoring.write(f"{iteration} {time.time():.3f}\n")
            completed = iteration
            if step_seconds:
                time.sleep(step_seconds)

    data = snapshot.setdefault("data", {})
    data["results"] = {
        "iterations": completed,
        "stopped": stop_requested.is_set(),
        "nthreads": args.nthreads,
    }
    snapshot_path.write_text(json.dumps(snapshot, indent=2, sort_keys=True), "utf-8")
    Path(args.log_file).write_text(
        f"echo_solver finished {completed} iteration(s), exit code {exit_code}\n",
        "utf-8",
    )
    print("Solver finished", flush=True)
    return exit_code


def _watch_stdin(stop_requested: threading.Event) -> None:
    for line in sys.stdin:
        if line.strip() == "STOP":
            stop_requested.set()
            return


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())

"""Simulation model representation and its JSON file bridge."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from solver_supervisor.errors import ModelIOError
from solver_supervisor.models import ProblemType

MODEL_FORMAT_VERSION = 1

SNAPSHOT_KIND = "model"
LOG_KIND = "log"
CONVERGENCE_KIND = "cvg"
MONITORING_KIND = "mon"


class Model(Protocol):
    """What the supervisor needs from an in-memory model."""

    file_name: Path
    problem_types: tuple[ProblemType, ...]

    def build_tmp_file_name(self, kind: str, task_id: str) -> Path:
        """Return a per-task transient file path of the given kind."""


class ModelBridge(Protocol):
    """Model serialization used around a solver run."""

    def save(self, model: Any, path: Path) -> None:
        """Write the model to ``path``; raises ``OSError`` or ``ModelIOError``."""

    def update(self, model: Any, path: Path) -> None:
        """Refresh the model from ``path``; raises ``OSError`` or ``ModelIOError``."""


@dataclass(slots=True)
class SimulationModel:
    """In-memory model backed by a JSON document."""

    file_name: Path
    problem_types: tuple[ProblemType, ...] = ()
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.file_name.stem

    def build_tmp_file_name(self, kind: str, task_id: str) -> Path:
        directory = self.file_name.resolve().parent
        return directory / f"{self.file_name.stem}_{task_id}.{kind}"


class JsonModelBridge:
    """Save and update ``SimulationModel`` objects as JSON files."""

    def load(self, path: Path) -> SimulationModel:
        problem_types, data = self._read(path)
        return SimulationModel(file_name=path, problem_types=problem_types, data=data)

    def save(self, model: SimulationModel, path: Path) -> None:
        payload = {
            "format_version": MODEL_FORMAT_VERSION,
            "problem_types": [{"id": item.id, "name": item.name} for item in model.problem_types],
            "data": model.data,
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f"{path.name}.partial")
        try:
            tmp_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True), "utf-8")
        except (TypeError, ValueError) as error:
            raise ModelIOError(f"Model data is not JSON serializable: {error}", path=str(path)) from error
        os.replace(tmp_path, path)

    def update(self, model: SimulationModel, path: Path) -> None:
        problem_types, data = self._read(path)
        model.problem_types = problem_types
        model.data = data

    def _read(self, path: Path) -> tuple[tuple[ProblemType, ...], dict[str, Any]]:
        try:
            raw = json.loads(path.read_text("utf-8"))
        except UnicodeDecodeError as error:
            raise ModelIOError(f"Model file is not valid UTF-8: {error}", path=str(path)) from error
        except json.JSONDecodeError as error:
            raise ModelIOError(f"Model file is not valid JSON: {error}", path=str(path)) from error
        if not isinstance(raw, dict):
            raise ModelIOError("Expected JSON object in model file.", path=str(path))
        version = raw.get("format_version")
        if version != MODEL_FORMAT_VERSION:
            raise ModelIOError(f"Unsupported model format version: {version!r}", path=str(path))

        data = raw.get("data", {})
        if not isinstance(data, dict):
            raise ModelIOError("model.data must be an object", path=str(path))
        raw_types = raw.get("problem_types", [])
        if not isinstance(raw_types, list):
            raise ModelIOError("model.problem_types must be an array", path=str(path))

        problem_types: list[ProblemType] = []
        for item in raw_types:
            if not isinstance(item, dict):
                raise ModelIOError("model.problem_types entries must be objects", path=str(path))
            type_id = item.get("id")
            type_name = item.get("name", type_id)
            if not isinstance(type_id, str) or not type_id.strip():
                raise ModelIOError("problem type id must be a non-empty string", path=str(path))
            problem_types.append(ProblemType(id=type_id, name=str(type_name)))
        return tuple(problem_types), data

"""Session registry mapping model ids to live models."""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol

from solver_supervisor.model_io import SimulationModel
from solver_supervisor.signals import Signal


class Session(Protocol):
    """Model accessor injected into solver tasks."""

    def get_model(self, model_id: int) -> Any:
        """Return the live model; raises ``KeyError`` for unknown ids."""

    def store_current_model_version(self, model_id: int, label: str) -> None:
        """Record an undo checkpoint of the model."""

    def set_model_changed(self, model_id: int) -> None:
        """Flag the model as modified since it was last saved by the user."""


@dataclass(slots=True)
class ModelVersion:
    """Checkpoint of model data kept for undo."""

    label: str
    created_at: datetime
    data: dict[str, Any]


class InMemorySession:
    """Thread-safe in-process model registry."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._models: dict[int, SimulationModel] = {}
        self._versions: dict[int, list[ModelVersion]] = {}
        self._changed: set[int] = set()
        self._next_id = 1
        self.model_changed: Signal[int] = Signal("model_changed")

    def add_model(self, model: SimulationModel) -> int:
        with self._lock:
            model_id = self._next_id
            self._next_id += 1
            self._models[model_id] = model
            self._versions[model_id] = []
        return model_id

    def get_model(self, model_id: int) -> SimulationModel:
        with self._lock:
            try:
                return self._models[model_id]
            except KeyError:
                raise KeyError(f"Unknown model id: {model_id}") from None

    def store_current_model_version(self, model_id: int, label: str) -> None:
        with self._lock:
            model = self.get_model(model_id)
            self._versions[model_id].append(
                ModelVersion(
                    label=label,
                    created_at=datetime.now(tz=UTC),
                    data=copy.deepcopy(model.data),
                ),
            )

    def versions(self, model_id: int) -> list[ModelVersion]:
        with self._lock:
            self.get_model(model_id)
            return list(self._versions[model_id])

    def set_model_changed(self, model_id: int) -> None:
        with self._lock:
            self.get_model(model_id)
            self._changed.add(model_id)
        self.model_changed.emit(model_id)

    def is_model_changed(self, model_id: int) -> bool:
        with self._lock:
            return model_id in self._changed

    def clear_model_changed(self, model_id: int) -> None:
        with self._lock:
            self._changed.discard(model_id)

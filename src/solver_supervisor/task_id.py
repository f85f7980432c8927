"""Unique solver task identifiers."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class SolverTaskId:
    """Random 128-bit identifier rendered in a filesystem-safe form."""

    value: UUID

    @classmethod
    def generate(cls) -> SolverTaskId:
        return cls(uuid4())

    @classmethod
    def parse(cls, text: str) -> SolverTaskId:
        """Parse the rendered form back; raises ``ValueError`` on bad input."""

        return cls(UUID(text.strip().strip("{}")))

    def __str__(self) -> str:
        return str(self.value)

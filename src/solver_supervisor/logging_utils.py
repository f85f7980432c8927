"""Logging helpers: nested indentation for multi-step task logs."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from typing import Any

INDENT_UNIT = "  "

_state = threading.local()


def _depth() -> int:
    return getattr(_state, "depth", 0)


def indent() -> None:
    """Increase the nesting depth of the current thread by one level."""

    _state.depth = _depth() + 1


def unindent() -> None:
    """Decrease the nesting depth of the current thread, never below zero."""

    _state.depth = max(0, _depth() - 1)


@contextmanager
def indented() -> Iterator[None]:
    indent()
    try:
        yield
    finally:
        unindent()


class IndentLogger(logging.LoggerAdapter):
    """Prefix each message with the current thread's indentation."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        depth = _depth()
        if depth:
            return f"{INDENT_UNIT * depth}{msg}", kwargs
        return msg, kwargs

    @property
    def depth(self) -> int:
        return _depth()


def get_logger(name: str) -> IndentLogger:
    return IndentLogger(logging.getLogger(name), {})


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for CLI use."""

    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level!r}")
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

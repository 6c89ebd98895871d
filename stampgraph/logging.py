"""Logging utilities and the diagnostics collector passed through the pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

_LOGGER_NAME = "stampgraph"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the stampgraph hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure the stampgraph logger with console output and optional file sink."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers to avoid duplicate output when the CLI is invoked multiple times.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("[stampgraph] %(levelname)s %(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


@dataclass(frozen=True)
class DiagnosticEntry:
    """A single recorded problem, tagged with the stage that produced it."""

    level: int
    scope: str
    path: str
    message: str

    def format(self) -> str:
        return f"{self.scope}: {self.path}: {self.message}"


class Diagnostics:
    """Collects per-file problems and mirrors them to a logger.

    Instances are handed explicitly to extraction, contract building, graph
    building and packing so those stages stay free of global debug state.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or get_logger("diagnostics")
        self.entries: List[DiagnosticEntry] = []

    def warn(self, scope: str, path: str, message: str) -> None:
        self._record(logging.WARNING, scope, path, message)

    def debug(self, scope: str, path: str, message: str) -> None:
        self._record(logging.DEBUG, scope, path, message)

    @property
    def warnings(self) -> List[str]:
        return [entry.format() for entry in self.entries if entry.level >= logging.WARNING]

    def child(self, name: str) -> "Diagnostics":
        """Return a collector that shares entries but logs under a sub-logger."""
        child = Diagnostics(self.logger.getChild(name))
        child.entries = self.entries
        return child

    def _record(self, level: int, scope: str, path: str, message: str) -> None:
        entry = DiagnosticEntry(level=level, scope=scope, path=path, message=message)
        self.entries.append(entry)
        self.logger.log(level, "%s", entry.format())


def ensure_diagnostics(diagnostics: Optional[Diagnostics], name: str) -> Diagnostics:
    """Return the supplied collector, or a fresh one bound to ``stampgraph.<name>``."""
    if diagnostics is not None:
        return diagnostics
    return Diagnostics(get_logger(name))


__all__ = [
    "DiagnosticEntry",
    "Diagnostics",
    "configure_logging",
    "ensure_diagnostics",
    "get_logger",
]

# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Tuple


@dataclass(frozen=True)
class RunContext:
    """
    Per-invocation parameters shared read-only by every step of a command.

    Created once at dispatch time and discarded when the process exits.
    """
    cwd: Path
    branch: str
    local: bool = False
    file: Optional[str] = None  # normalized --file, only used by copy-file

    @property
    def site(self) -> Path:
        return self.cwd / "site"


@dataclass(frozen=True)
class Step:
    """A single named unit of pipeline work."""
    name: str
    action: Callable[[RunContext], None]

    # Failure is logged and swallowed instead of aborting the command.
    best_effort: bool = False


@dataclass(frozen=True)
class Command:
    """
    A CLI command: an ordered sequence of steps.

    Single commands have exactly one step, macro commands several.
    """
    name: str
    steps: Tuple[Step, ...] = field(default_factory=tuple)
    macro: bool = False

    @property
    def step_names(self) -> list[str]:
        return [s.name for s in self.steps]

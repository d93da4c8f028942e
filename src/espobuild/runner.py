# runner.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from .config import ConfigurationError
from .executor import ProcessFailure
from .model import Command, RunContext
from .ui.console import get_console


# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------

class UnknownCommand(Exception):
    """No recognized command was requested; nothing ran."""

    def __init__(self, name: Optional[str] = None):
        self.name = name
        super().__init__(f"Unknown command: {name}" if name else "Unknown parameter.")


@dataclass(eq=False)
class StepFailure(Exception):
    """
    A step failed and the rest of the command was abandoned.

    Side effects of the steps in `completed` are left in place.
    """
    command: str
    step: str
    message: str
    exit_code: Optional[int] = None
    completed: Dict[str, str] = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"[{self.command}] step '{self.step}' failed: {self.message}"]
        if self.exit_code is not None:
            lines.append(f"exit={self.exit_code}")
        return "\n".join(lines)


# ----------------------------------------------------------------------
# Execution
# ----------------------------------------------------------------------

def run_command(command: Command, ctx: RunContext) -> Dict[str, str]:
    """
    Run the command's steps in order, stopping at the first failure.

    Returns step name -> status ("ok" or "failed(best-effort)").

    Raises:
        StepFailure: a non best-effort step raised
        ConfigurationError: passed through unchanged
    """
    console = get_console()
    results: Dict[str, str] = {}

    for step in command.steps:
        console.print_step(step.name)
        try:
            step.action(ctx)
        except ConfigurationError:
            raise
        except Exception as e:
            if step.best_effort:
                reason = str(e).split("\n")[0] or type(e).__name__
                console.print_warning(f"{step.name} failed (ignored): {reason}")
                results[step.name] = "failed(best-effort)"
                continue

            exit_code = e.exit_code if isinstance(e, ProcessFailure) else None
            console.print_failure(step.name, str(e), exit_code=exit_code)
            raise StepFailure(
                command=command.name,
                step=step.name,
                message=str(e) or type(e).__name__,
                exit_code=exit_code,
                completed=dict(results),
            ) from e

        results[step.name] = "ok"

    return results


def dispatch(
    command_name: Optional[str],
    ctx: RunContext,
    registry: Mapping[str, Command],
) -> Dict[str, str]:
    """Resolve a command name and run it to completion or first failure."""
    if not command_name or command_name not in registry:
        raise UnknownCommand(command_name)

    command = registry[command_name]
    get_console().print_command_started(command.name, command.step_names, ctx.branch)
    return run_command(command, ctx)

from .commands import MACROS, PRIORITY, build_registry, select_command
from .model import Command, RunContext, Step
from .runner import StepFailure, UnknownCommand, dispatch, run_command

__all__ = [
    "MACROS",
    "PRIORITY",
    "build_registry",
    "select_command",
    "Command",
    "RunContext",
    "Step",
    "StepFailure",
    "UnknownCommand",
    "dispatch",
    "run_command",
]

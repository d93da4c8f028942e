# cli.py
from __future__ import annotations

import sys
from contextlib import nullcontext
from pathlib import Path
from typing import Callable, Optional

import click

from espobuild.commands import HELP_FLAGS, PRIORITY, StepActions, build_registry, select_command
from espobuild.config import ConfigurationError, load_config, load_extension_params
from espobuild.lock import WorkdirLock
from espobuild.model import RunContext
from espobuild.runner import StepFailure, UnknownCommand, dispatch
from espobuild.tasks import Tasks, normalize_copy_file
from espobuild.ui.console import Console, get_console, set_console

EXIT_OK = 0
EXIT_UNKNOWN_COMMAND = 1
EXIT_STEP_FAILED = 2
EXIT_CONFIG_ERROR = 3
EXIT_INTERRUPTED = 130

DEFAULT_BRANCH = "master"


def make_tasks(cwd: Path, extension_hook: Optional[Callable[[], None]] = None) -> Tasks:
    """Load config-default.json/config.json and extension.json from cwd."""
    return Tasks(
        load_config(cwd),
        load_extension_params(cwd),
        extension_hook=extension_hook,
    )


def default_branch(actions: StepActions) -> str:
    config = getattr(actions, "config", None)
    if config is None:
        return DEFAULT_BRANCH
    return config.espocrm.branch


def command_flags(fn):
    """Attach one boolean option per command, in priority order."""
    help_text = dict(HELP_FLAGS)
    for name in reversed(PRIORITY):
        fn = click.option(f"--{name}", is_flag=True, default=False, help=help_text.get(name))(fn)
    return fn


@click.command(
    context_settings={"ignore_unknown_options": True, "allow_extra_args": True},
)
@command_flags
@click.option("--file", "file_", default=None, help="File for --copy-file (src/files/... or tests/...)")
@click.option("--branch", default=None, help="EspoCRM branch (defaults to espocrm.branch in config)")
@click.option("--local", is_flag=True, default=False, help=dict(HELP_FLAGS)["local"])
@click.option("--lock/--no-lock", default=True, show_default=True, help="Lock the working directory while running")
@click.option("--debug", is_flag=True, default=False, help="Enable debug mode (show stack traces and commands)")
@click.pass_context
def cli(ctx, file_, branch, local, lock, debug, **flags):
    """Build, install and package an EspoCRM extension.

    Only one command runs per invocation: when several command flags are
    given, the first one in priority order wins.
    """
    console = Console(debug=debug)
    set_console(console)
    obj = ctx.obj or {}

    command_name = select_command({name: flags.get(name.replace("-", "_"), False) for name in PRIORITY})

    if command_name is None:
        if ctx.args or local or branch or file_:
            console.print_error(
                "Unknown parameter.",
                f"No command flag given: {' '.join(ctx.args) or '(modifiers only)'}",
                suggestion="Run without arguments to list the available flags.",
            )
            sys.exit(EXIT_UNKNOWN_COMMAND)
        console.print_help(HELP_FLAGS)
        return

    cwd = Path(obj.get("cwd") or Path.cwd()).resolve()

    try:
        actions = obj.get("actions") or make_tasks(cwd, obj.get("extension_hook"))

        run_ctx = RunContext(
            cwd=cwd,
            branch=branch or default_branch(actions),
            local=local,
            file=normalize_copy_file(file_) if command_name == "copy-file" else file_,
        )
        registry = build_registry(actions)

        with WorkdirLock(cwd) if lock else nullcontext():
            results = dispatch(command_name, run_ctx, registry)

        console.print_results(results)

    except UnknownCommand as e:
        console.print_error("Unknown parameter.", str(e))
        sys.exit(EXIT_UNKNOWN_COMMAND)
    except ConfigurationError as e:
        console.print_error("Configuration error", str(e))
        sys.exit(EXIT_CONFIG_ERROR)
    except StepFailure as e:
        # the runner has already printed the failure itself
        if e.completed:
            console.print_info(f"\nCompleted before '{e.step}': {', '.join(e.completed)} (not rolled back)")
        sys.exit(EXIT_STEP_FAILED)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as e:
        get_console().print_exception(e)
        sys.exit(EXIT_STEP_FAILED)


if __name__ == "__main__":
    cli()

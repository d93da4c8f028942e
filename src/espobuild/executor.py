# executor.py
from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence, Union

from .ui.console import get_console


TOOL_HINTS = {
    "php": "Install the PHP CLI or fix PATH.",
    "composer": "Install Composer (https://getcomposer.org) or fix PATH.",
    "npm": "Install Node.js (includes npm) or fix PATH.",
    "node": "Install Node.js or fix PATH.",
    "grunt": "Install grunt-cli (npm install -g grunt-cli).",
    "mysql": "Install the MySQL/MariaDB client or fix PATH.",
    "chown": "chown is not available on this platform.",
}


@dataclass(eq=False)
class ProcessFailure(Exception):
    """An external process exited non-zero (or could not be started)."""
    cmd: str
    exit_code: int
    cwd: str = ""
    stderr: str = ""

    def __str__(self) -> str:
        msg = f"command failed (exit={self.exit_code}): {self.cmd}"
        if self.cwd:
            msg += f"\ncwd={self.cwd}"
        if self.stderr:
            msg += f"\n{self.stderr.strip()}"
        return msg


Command = Union[str, Sequence[str]]


def _check_cwd(cwd: Union[str, Path]) -> Path:
    cwd = Path(cwd)
    if not cwd.exists():
        raise FileNotFoundError(f"working directory not found: {cwd}")
    return cwd


def _display(cmd: Command) -> str:
    if isinstance(cmd, str):
        return cmd
    return " ".join(cmd)


class Executor:
    """
    Runs external processes for the step actions.

    Every call blocks until the process exits; no timeout is applied.
    Quiet calls capture output so that stderr can be shown on failure,
    other calls inherit the terminal.
    """

    def run(
        self,
        cmd: Command,
        cwd: Union[str, Path],
        *,
        quiet: bool = False,
        env: Optional[Dict[str, str]] = None,
    ) -> None:
        cwd = _check_cwd(cwd)

        full_env = os.environ.copy()
        full_env.update(env or {})

        get_console().print_debug(f"$ {_display(cmd)}  (cwd={cwd})")

        try:
            proc = subprocess.run(
                cmd,
                shell=isinstance(cmd, str),
                cwd=str(cwd),
                env=full_env,
                text=True,
                capture_output=quiet,
            )
        except FileNotFoundError as e:
            tool = cmd.split()[0] if isinstance(cmd, str) else cmd[0]
            raise ProcessFailure(
                cmd=_display(cmd),
                exit_code=127,
                cwd=str(cwd),
                stderr=TOOL_HINTS.get(tool, f"Install {tool} or fix PATH.") + f" ({e})",
            ) from e

        if proc.returncode != 0:
            raise ProcessFailure(
                cmd=_display(cmd),
                exit_code=proc.returncode,
                cwd=str(cwd),
                stderr=(proc.stderr or "")[-4000:],
            )

    def output(
        self,
        cmd: Sequence[str],
        cwd: Union[str, Path],
        *,
        env: Optional[Dict[str, str]] = None,
    ) -> str:
        """Run a process and return its stdout."""
        cwd = _check_cwd(cwd)
        full_env = os.environ.copy()
        full_env.update(env or {})

        get_console().print_debug(f"$ {_display(cmd)}  (cwd={cwd})")

        try:
            proc = subprocess.run(
                list(cmd),
                cwd=str(cwd),
                env=full_env,
                text=True,
                capture_output=True,
            )
        except FileNotFoundError as e:
            raise ProcessFailure(
                cmd=_display(cmd),
                exit_code=127,
                cwd=str(cwd),
                stderr=TOOL_HINTS.get(cmd[0], f"Install {cmd[0]} or fix PATH."),
            ) from e

        if proc.returncode != 0:
            raise ProcessFailure(
                cmd=_display(cmd),
                exit_code=proc.returncode,
                cwd=str(cwd),
                stderr=(proc.stderr or "")[-4000:],
            )
        return proc.stdout

from __future__ import annotations

import json
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from espobuild.config import Config, ExtensionParams
from espobuild.executor import Executor, ProcessFailure
from espobuild.model import RunContext
from espobuild.ui.console import Console, set_console


CONFIG = {
    "espocrm": {
        "repository": "https://github.com/espocrm/espocrm.git",
        "branch": "master",
    },
    "database": {
        "host": "localhost",
        "port": 3306,
        "charset": "utf8mb4",
        "dbname": "espo_dev",
        "user": "root",
        "password": "secret",
    },
    "install": {
        "language": "en_US",
        "siteUrl": "http://localhost/site",
        "defaultOwner": "www-data",
        "defaultGroup": "www-data",
        "adminUsername": "admin",
        "adminPassword": "1",
    },
}

EXTENSION = {
    "module": "MyModule",
    "name": "My Module",
    "description": "Test extension",
    "author": "Tester",
    "acceptableVersions": [">=8.0.0"],
    "php": [">=8.1"],
}


@dataclass
class Call:
    cmd: str
    cwd: str
    env: Dict[str, str] = field(default_factory=dict)


class RecordingExecutor(Executor):
    """Records calls instead of running them; `fail_on` maps a command substring to an exit code."""

    def __init__(self, fail_on: Optional[Dict[str, int]] = None, outputs: Optional[Dict[str, str]] = None):
        self.calls: List[Call] = []
        self.fail_on = dict(fail_on or {})
        self.outputs = dict(outputs or {})

    def _record(self, cmd, cwd, env) -> str:
        line = cmd if isinstance(cmd, str) else " ".join(cmd)
        self.calls.append(Call(cmd=line, cwd=str(cwd), env=dict(env or {})))
        for needle, code in self.fail_on.items():
            if needle in line:
                raise ProcessFailure(cmd=line, exit_code=code, cwd=str(cwd))
        return line

    def run(self, cmd, cwd, *, quiet=False, env=None) -> None:
        self._record(cmd, cwd, env)

    def output(self, cmd, cwd, *, env=None) -> str:
        line = self._record(cmd, cwd, env)
        for needle, out in self.outputs.items():
            if needle in line:
                return out
        return ""

    @property
    def commands(self) -> List[str]:
        return [c.cmd for c in self.calls]


class RecordingActions:
    """Step actions that only record their invocation; `fail` maps step name to an exception."""

    STEP_METHODS = {
        "fetch": "fetch",
        "update-archive": "update_archive",
        "install": "install",
        "install-extensions": "install_extensions",
        "copy-extension": "copy_extension",
        "copy-file": "copy_file",
        "before-install": "before_install",
        "after-install": "after_install",
        "composer-install": "composer_install",
        "site-composer-install-dev": "site_composer_install_dev",
        "rebuild": "rebuild",
        "set-owner": "set_owner",
        "db-reset": "db_reset",
        "extension": "build_extension",
    }

    def __init__(self, fail: Optional[Dict[str, Exception]] = None):
        self.invoked: List[str] = []
        self.contexts: List[RunContext] = []
        self.fail = dict(fail or {})
        for step_name, method in self.STEP_METHODS.items():
            setattr(self, method, self._make(step_name))

    def _make(self, step_name: str):
        def action(ctx: RunContext) -> None:
            self.invoked.append(step_name)
            self.contexts.append(ctx)
            if step_name in self.fail:
                raise self.fail[step_name]
        return action


@pytest.fixture(autouse=True)
def quiet_console():
    set_console(Console(debug=False))
    yield


@pytest.fixture
def config() -> Config:
    return Config.model_validate(CONFIG)


@pytest.fixture
def extension() -> ExtensionParams:
    return ExtensionParams.model_validate(EXTENSION)


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A minimal extension repo layout."""
    (tmp_path / "config-default.json").write_text(json.dumps(CONFIG), encoding="utf-8")
    (tmp_path / "extension.json").write_text(json.dumps(EXTENSION), encoding="utf-8")
    (tmp_path / "package.json").write_text(json.dumps({"name": "my-module", "version": "1.2.3"}), encoding="utf-8")

    backend = tmp_path / "src" / "files" / "custom" / "Espo" / "Modules" / "MyModule"
    (backend / "Resources").mkdir(parents=True)
    (backend / "Resources" / "module.json").write_text('{"order": 10}', encoding="utf-8")
    (backend / "Classes").mkdir()
    (backend / "Classes" / "Service.php").write_text("<?php\n", encoding="utf-8")
    (backend / "Classes" / "ConstantsDevelopment.php").write_text("<?php // dev\n", encoding="utf-8")

    frontend = tmp_path / "src" / "files" / "client" / "custom" / "modules" / "my-module" / "src"
    frontend.mkdir(parents=True)
    (frontend / "view.js").write_text("export default {};\n", encoding="utf-8")

    scripts = tmp_path / "src" / "scripts"
    scripts.mkdir(parents=True)
    (scripts / "AfterInstall.php").write_text("<?php\n", encoding="utf-8")
    (scripts / "AfterInstallDevelopment.php").write_text("<?php // dev\n", encoding="utf-8")

    (tmp_path / "php_scripts").mkdir()
    (tmp_path / "site").mkdir()
    return tmp_path


@pytest.fixture
def ctx(project: Path) -> RunContext:
    return RunContext(cwd=project, branch="master")


def make_branch_zip(path: Path, branch: str = "master", files: Optional[Dict[str, str]] = None) -> Path:
    """Write a zip shaped like a GitHub branch archive."""
    files = files or {
        "index.php": "<?php // espo\n",
        "install/cli.php": "<?php // installer\n",
        "application/Espo/Core/Application.php": "<?php\n",
        "client/src/app.js": "// app\n",
    }
    top = "espocrm-" + branch.replace("/", "-")
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr(f"{top}/", "")
        for name, content in files.items():
            zf.writestr(f"{top}/{name}", content)
    return path


def snapshot(root: Path) -> Dict[str, bytes]:
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }

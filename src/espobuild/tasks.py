# tasks.py
# The concrete actions behind every step name. Each public method takes the
# RunContext and either returns normally or raises.
from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

from . import archive
from .config import Config, ConfigurationError, ExtensionParams
from .executor import Executor
from .files import copy_file, copy_tree, delete_dir, ensure_clean_dir, remove_file
from .frontend import Frontend
from .model import RunContext
from .package import build_package, composer_install, run_scripts
from .ui.console import get_console


def _php_literal(value: Optional[object]) -> str:
    if value is None:
        return "null"
    if isinstance(value, int):
        return str(value)
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def render_site_config(config: Config) -> str:
    """data/config.php written before running the installer."""
    db = config.database
    return (
        "<?php\n"
        "return [\n"
        "    'database' => [\n"
        f"        'host' => {_php_literal(db.host)},\n"
        f"        'port' => {_php_literal(db.port)},\n"
        f"        'charset' => {_php_literal(db.charset)},\n"
        f"        'dbname' => {_php_literal(db.dbname)},\n"
        f"        'user' => {_php_literal(db.user)},\n"
        f"        'password' => {_php_literal(db.password)},\n"
        "    ],\n"
        "    'isDeveloperMode' => true,\n"
        "    'useCache' => true,\n"
        "];\n"
    )


def normalize_copy_file(file: Optional[str]) -> str:
    """
    Validate and normalize the --file argument of copy-file.

    Raises:
        ConfigurationError: when missing or outside tests/ and src/files/
    """
    if not file:
        raise ConfigurationError("No --file parameter specified.")
    file = file.replace("\\", "/")
    if file.startswith("tests/") or file.startswith("src/files/"):
        return file
    raise ConfigurationError("File should be in `src/files` or `tests` dir.")


class Tasks:
    def __init__(
        self,
        config: Config,
        extension: ExtensionParams,
        executor: Optional[Executor] = None,
        *,
        extension_hook: Optional[Callable[[], None]] = None,
    ):
        self.config = config
        self.extension = extension
        self.executor = executor or Executor()
        self.extension_hook = extension_hook

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _frontend(self, ctx: RunContext) -> Frontend:
        return Frontend(self.executor, ctx.cwd, self.extension)

    def _php(self, *args: str, cwd: Path, quiet: bool = False) -> None:
        self.executor.run(["php", *args], cwd, quiet=quiet)

    def _installer(self, ctx: RunContext, action: str, data: Optional[str] = None, *, quiet: bool = False) -> None:
        get_console().print_progress(f"Install: {action}...")
        args = ["install/cli.php", "-a", action]
        if data is not None:
            args += ["-d", data]
        self._php(*args, cwd=ctx.site, quiet=quiet)

    # ------------------------------------------------------------------
    # fetch / archive
    # ------------------------------------------------------------------

    def local_archive_path(self, ctx: RunContext) -> Path:
        return ctx.cwd / "archive" / f"archive-{ctx.branch}.zip"

    def update_archive(self, ctx: RunContext) -> None:
        console = get_console()
        console.print_progress("Updating the local archive...")

        # download() swaps the new file in only once it is complete
        path = self.local_archive_path(ctx)
        url = self.config.espocrm.archive_url(ctx.branch)
        console.print_progress("Downloading EspoCRM archive from Github...")
        console.print_progress(f"Download URL: {url}")
        console.print_progress(f"Location: {path}")
        archive.download(url, path)

    def fetch(self, ctx: RunContext) -> None:
        if ctx.local:
            self._fetch_local(ctx)
            return

        console = get_console()
        console.print_progress("Fetching EspoCRM repository...")

        ensure_clean_dir(ctx.site)
        zip_path = ctx.site / "archive.zip"

        console.print_progress("Downloading EspoCRM archive from Github...")
        archive.download(self.config.espocrm.archive_url(ctx.branch), zip_path)

        console.print_progress("Unzipping...")
        archive.extract(zip_path, ctx.site)
        remove_file(zip_path)
        archive.lift_branch_dir(ctx.site, ctx.branch)

    def _fetch_local(self, ctx: RunContext) -> None:
        console = get_console()
        path = self.local_archive_path(ctx)
        if not path.exists():
            self.update_archive(ctx)

        console.print_progress("Extracting the existing archive...")
        console.print_progress(f"File: {path}")

        ensure_clean_dir(ctx.site)
        archive.unpack_branch(path, ctx.site, ctx.branch)

    # ------------------------------------------------------------------
    # install
    # ------------------------------------------------------------------

    def create_config(self, ctx: RunContext) -> None:
        get_console().print_progress("Creating config...")
        target = ctx.site / "data" / "config.php"
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(render_site_config(self.config), encoding="utf-8")

    def build_espo(self, ctx: RunContext) -> None:
        console = get_console()
        console.print_progress("Npm install...")
        self.executor.run(["npm", "ci"], ctx.site, quiet=True)
        console.print_progress("Composer install...")
        self.executor.run(["composer", "install"], ctx.site, quiet=True)
        console.print_progress("Building...")
        self.executor.run(["grunt", "internal"], ctx.site, quiet=True)

    def install(self, ctx: RunContext) -> None:
        db = self.config.database
        inst = self.config.install

        get_console().print_progress("Installing EspoCRM instance...")
        self.create_config(ctx)
        self.build_espo(ctx)
        remove_file(ctx.site / "install" / "config.php")

        self._installer(ctx, "step1", f"user-lang={inst.language}")
        self._installer(
            ctx,
            "setupConfirmation",
            f"host-name={db.host_with_port}&db-name={db.dbname}&db-platform={db.platform}"
            f"&db-user-name={db.user}&db-user-password={db.password}",
        )
        self._installer(ctx, "checkPermission", quiet=True)
        self._installer(
            ctx,
            "saveSettings",
            f"site-url={inst.site_url}&default-permissions-user={inst.default_owner}"
            f"&default-permissions-group={inst.default_group}",
        )
        self._installer(ctx, "buildDatabase", quiet=True)
        self._installer(ctx, "createUser", f"user-name={inst.admin_username}&user-pass={inst.admin_password}")
        self._installer(ctx, "finish")

        get_console().print_progress("Merge configs...")
        self._php("merge_configs.php", cwd=ctx.cwd / "php_scripts")

    def install_extensions(self, ctx: RunContext) -> None:
        ext_dir = ctx.cwd / "extensions"
        if not ext_dir.is_dir():
            return

        console = get_console()
        console.print_progress("Installing extensions from 'extensions' directory...")
        for path in sorted(ext_dir.iterdir()):
            if path.suffix.lower() != ".zip":
                continue
            console.print_progress(f"Install: {path.name}")
            self._php("command.php", "extension", f"--file=../extensions/{path.name}", cwd=ctx.site, quiet=True)

    # ------------------------------------------------------------------
    # extension copy / scripts
    # ------------------------------------------------------------------

    def copy_extension(self, ctx: RunContext) -> None:
        console = get_console()
        module = self.extension.module
        mod = self.extension.mod
        site = ctx.site
        assets = ctx.cwd / "build" / "assets"

        self._frontend(ctx).transpile()
        run_scripts(self.executor, ctx.cwd, self.extension)

        if delete_dir(site / "custom" / "Espo" / "Modules" / module):
            console.print_progress("Removing backend files...")
        if delete_dir(site / "client" / "custom" / "modules" / mod):
            console.print_progress("Removing frontend files...")

        transpiled = assets / "transpiled" / "custom" / "modules" / mod / "src"
        if self.extension.bundled and transpiled.is_dir():
            copy_tree(transpiled, site / "client" / "custom" / "modules" / mod / "lib" / "transpiled" / "src")
        if (assets / "lib").is_dir():
            copy_tree(assets / "lib", site / "client" / "custom" / "modules" / mod / "lib")

        if delete_dir(site / "tests" / "unit" / "Espo" / "Modules" / module):
            console.print_progress("Removing unit test files...")
        if delete_dir(site / "tests" / "integration" / "Espo" / "Modules" / module):
            console.print_progress("Removing integration test files...")

        console.print_progress("Copying files...")
        copy_tree(ctx.cwd / "src" / "files", site)
        if (ctx.cwd / "tests").is_dir():
            copy_tree(ctx.cwd / "tests", site / "tests")

    def copy_file(self, ctx: RunContext) -> None:
        console = get_console()
        file = normalize_copy_file(ctx.file)

        if file.startswith("tests/"):
            src = ctx.cwd / file
            if src.is_file():
                console.print_progress("Copying test file...")
                copy_file(src, ctx.site / file)
            return

        rel = file[len("src/files/"):]
        frontend = self._frontend(ctx)
        frontend.transpile(rel)

        transpiled = frontend.transpiled_dir / rel[len("client/"):]
        if (
            rel.startswith(frontend.src_prefix)
            and rel.endswith(".js")
            and self.extension.bundled
            and transpiled.is_file()
        ):
            console.print_progress("Copying transpiled...")
            dest = ctx.site / f"client/custom/modules/{frontend.mod}/lib/transpiled/src" / rel[len(frontend.src_prefix):]
            copy_file(transpiled, dest)

        console.print_progress("Copying source...")
        copy_file(ctx.cwd / "src" / "files" / rel, ctx.site / rel)

    def before_install(self, ctx: RunContext) -> None:
        get_console().print_progress("Running before-install script...")
        self._php("before_install.php", cwd=ctx.cwd / "php_scripts")

    def after_install(self, ctx: RunContext) -> None:
        get_console().print_progress("Running after-install script...")
        self._php("after_install.php", cwd=ctx.cwd / "php_scripts")

    def composer_install(self, ctx: RunContext) -> None:
        module_path = ctx.site / "custom" / "Espo" / "Modules" / self.extension.module
        composer_install(self.executor, module_path, include_dev=True)

    def site_composer_install_dev(self, ctx: RunContext) -> None:
        get_console().print_progress("Composer install...")
        self.executor.run(["composer", "install", "--ignore-platform-reqs"], ctx.site, quiet=True)

    def rebuild(self, ctx: RunContext) -> None:
        get_console().print_progress("Rebuilding EspoCRM instance...")
        self._php("rebuild.php", cwd=ctx.site)

    def set_owner(self, ctx: RunContext) -> None:
        inst = self.config.install
        self.executor.run(
            ["chown", "-R", f"{inst.default_owner}:{inst.default_group}", "."],
            ctx.site,
            quiet=True,
        )

    # ------------------------------------------------------------------
    # database / packaging
    # ------------------------------------------------------------------

    def db_reset(self, ctx: RunContext) -> None:
        db = self.config.database
        get_console().print_progress("Resetting the database...")

        base = ["mysql", f"--user={db.user}", f"--host={db.host}"]
        if db.port:
            base.append(f"--port={db.port}")
        env = {"MYSQL_PWD": db.password}

        create = f"CREATE SCHEMA `{db.dbname}`"
        if db.charset:
            create += f" DEFAULT CHARACTER SET {db.charset}"

        self.executor.run(base + ["-e", f"DROP DATABASE IF EXISTS `{db.dbname}`"], ctx.cwd, env=env)
        self.executor.run(base + ["-e", create], ctx.cwd, env=env)

    def build_extension(self, ctx: RunContext) -> None:
        build_package(
            ctx.cwd,
            self.extension,
            self.executor,
            self._frontend(ctx),
            hook=self.extension_hook,
        )

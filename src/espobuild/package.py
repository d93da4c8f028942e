# package.py
# Builds the installable extension zip under build/.
from __future__ import annotations

import datetime
import json
import zipfile
from pathlib import Path
from typing import Callable, Dict, Optional

from .config import ExtensionParams, camel_case_to_hyphen, package_version
from .executor import Executor
from .files import copy_tree, delete_dir, remove_file, skip_paths
from .frontend import Frontend
from .ui.console import get_console

DEV_ONLY_SCRIPTS = [
    "src/scripts/AfterInstallDevelopment.php",
    "src/scripts/AfterUninstallDevelopment.php",
    "src/scripts/BeforeInstallDevelopment.php",
    "src/scripts/BeforeUninstallDevelopment.php",
]

COMPOSER_FILES = ["composer.json", "composer.lock", "composer.phar"]


def composer_install(executor: Executor, module_path: Path, *, include_dev: bool) -> bool:
    """Run composer install in module_path if it has a composer.json."""
    if not (module_path / "composer.json").exists():
        return False

    get_console().print_progress("Running composer install...")
    cmd = ["composer", "install"]
    if not include_dev:
        cmd.append("--no-dev")
    cmd.append("--ignore-platform-reqs")
    executor.run(cmd, module_path, quiet=True)
    return True


def run_scripts(executor: Executor, cwd: Path, extension: ExtensionParams) -> None:
    """Run the shell commands listed under "scripts" in extension.json."""
    if extension.scripts:
        get_console().print_progress("Running scripts...")
    for script in extension.scripts:
        executor.run(script, cwd, quiet=True)


def build_manifest(extension: ExtensionParams, version: str, today: Optional[datetime.date] = None) -> Dict:
    today = today or datetime.date.today()
    return {
        "name": extension.name,
        "description": extension.description,
        "author": extension.author,
        "php": extension.php,
        "acceptableVersions": extension.acceptable_versions,
        "version": version,
        "skipBackup": True,
        "releaseDate": today.isoformat(),
    }


def package_file_name(extension: ExtensionParams, version: str) -> str:
    name = camel_case_to_hyphen(extension.package_name or extension.module)
    return f"{name}-{version}.zip"


def zip_dir(src: Path, dest: Path) -> None:
    with zipfile.ZipFile(dest, "w", compression=zipfile.ZIP_DEFLATED) as z:
        for p in sorted(src.rglob("*")):
            if p.is_dir():
                continue
            z.write(p, p.relative_to(src).as_posix())


def _bundle(cwd: Path, frontend: Frontend) -> None:
    lib = cwd / "build" / "assets" / "lib"
    chunks = frontend.bundle()
    lib.mkdir(parents=True, exist_ok=True)

    chunk = frontend.chunk_name()
    (lib / "init.js").write_text(chunks.get("init", ""), encoding="utf-8")
    (lib / f"{chunk}.js").write_text(chunks.get(chunk, ""), encoding="utf-8")

    frontend.bundle_templates("build/assets/lib/templates.tpl")


def build_package(
    cwd: Path,
    extension: ExtensionParams,
    executor: Executor,
    frontend: Frontend,
    *,
    hook: Optional[Callable[[], None]] = None,
) -> Path:
    """
    Build build/<package>-<version>.zip from src/.

    Development-only scripts and composer files are left out, composer
    dependencies are installed without dev packages, and for bundled
    modules the raw frontend sources are replaced by the bundle.
    """
    console = get_console()
    console.print_progress("Building extension package...")

    version = package_version(cwd)

    frontend.transpile()
    delete_dir(cwd / "build" / "assets" / "lib")

    if extension.bundled:
        _bundle(cwd, frontend)

    run_scripts(executor, cwd, extension)

    build = cwd / "build"
    tmp = build / "tmp"
    package_path = build / package_file_name(extension, version)

    build.mkdir(exist_ok=True)
    delete_dir(tmp)
    remove_file(package_path)
    tmp.mkdir()

    ignore = [
        cwd / f"src/files/custom/Espo/Modules/{extension.module}/Classes/ConstantsDevelopment.php",
        *(cwd / p for p in DEV_ONLY_SCRIPTS),
    ]
    copy_tree(cwd / "src", tmp, skip=skip_paths(ignore))

    if extension.bundled:
        mod_dir = tmp / "files" / "client" / "custom" / "modules" / extension.mod
        copy_tree(build / "assets" / "lib", mod_dir / "lib")
        delete_dir(mod_dir / "src")

    module_path = tmp / "files" / "custom" / "Espo" / "Modules" / extension.module
    composer_install(executor, module_path, include_dev=False)
    for name in COMPOSER_FILES:
        remove_file(module_path / name)

    if hook is not None:
        hook()

    manifest = build_manifest(extension, version)
    (tmp / "manifest.json").write_text(json.dumps(manifest, indent=4), encoding="utf-8")

    zip_dir(tmp, package_path)
    delete_dir(tmp)

    console.print_progress(f"Package has been built: {package_path.relative_to(cwd)}")
    return package_path

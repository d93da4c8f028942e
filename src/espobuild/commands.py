# commands.py
from __future__ import annotations

from typing import Dict, Mapping, Optional, Protocol, Tuple

from .model import Command, RunContext, Step


class StepActions(Protocol):
    """What build_registry needs from a Tasks-like object."""

    def fetch(self, ctx: RunContext) -> None: ...
    def update_archive(self, ctx: RunContext) -> None: ...
    def install(self, ctx: RunContext) -> None: ...
    def install_extensions(self, ctx: RunContext) -> None: ...
    def copy_extension(self, ctx: RunContext) -> None: ...
    def copy_file(self, ctx: RunContext) -> None: ...
    def before_install(self, ctx: RunContext) -> None: ...
    def after_install(self, ctx: RunContext) -> None: ...
    def composer_install(self, ctx: RunContext) -> None: ...
    def site_composer_install_dev(self, ctx: RunContext) -> None: ...
    def rebuild(self, ctx: RunContext) -> None: ...
    def set_owner(self, ctx: RunContext) -> None: ...
    def db_reset(self, ctx: RunContext) -> None: ...
    def build_extension(self, ctx: RunContext) -> None: ...


# First set flag wins; the rest are ignored.
PRIORITY: Tuple[str, ...] = (
    "update-archive",
    "db-reset",
    "copy-to-end",
    "all",
    "prepare-test",
    "install",
    "fetch",
    "copy",
    "copy-file",
    "before-install",
    "after-install",
    "extension",
    "rebuild",
    "composer-install",
)

MACROS: Dict[str, Tuple[str, ...]] = {
    "all": (
        "fetch",
        "install",
        "install-extensions",
        "copy-extension",
        "before-install",
        "composer-install",
        "rebuild",
        "after-install",
        "set-owner",
    ),
    "copy-to-end": (
        "copy-extension",
        "before-install",
        "composer-install",
        "rebuild",
        "after-install",
        "set-owner",
    ),
    "install": ("install", "install-extensions", "set-owner"),
    "copy": ("copy-extension", "set-owner"),
    "prepare-test": ("fetch", "site-composer-install-dev"),
}

# command name -> step name
SINGLES: Dict[str, str] = {
    "update-archive": "update-archive",
    "db-reset": "db-reset",
    "fetch": "fetch",
    "copy-file": "copy-file",
    "before-install": "before-install",
    "after-install": "after-install",
    "extension": "extension",
    "rebuild": "rebuild",
    "composer-install": "composer-install",
}

BEST_EFFORT = frozenset({"set-owner"})

HELP_FLAGS = [
    ("after-install", "run the After Install scripts (includes dev scripts)"),
    ("all", "build all"),
    ("before-install", "run the Before Install scripts (includes dev scripts)"),
    ("composer-install", "run `composer install` for the module (includes dev packages)"),
    ("copy", "copy source files to the `site` directory"),
    ("copy-file", "copy a single file (--file=src/files/... or --file=tests/...) to the `site` directory"),
    ("copy-to-end", "run the sections from --all starting at --copy"),
    ("db-reset", "drop and recreate the database"),
    ("extension", "build extension package (does not include dev packages)"),
    ("fetch", "download EspoCRM from Github"),
    ("install", "reinstall EspoCRM using the existing files in `site`"),
    ("local", "use the local archive of EspoCRM instead of downloading it"),
    ("rebuild", "run rebuild"),
    ("prepare-test", "fetches Espo instance and runs composer"),
    ("update-archive", "download EspoCRM from Github to a local archive"),
]


def select_command(flags: Mapping[str, bool]) -> Optional[str]:
    """Return the highest-priority command whose flag is set."""
    for name in PRIORITY:
        if flags.get(name):
            return name
    return None


def build_steps(actions: StepActions) -> Dict[str, Step]:
    """Bind every step name to its action."""
    bound = {
        "fetch": actions.fetch,
        "update-archive": actions.update_archive,
        "install": actions.install,
        "install-extensions": actions.install_extensions,
        "copy-extension": actions.copy_extension,
        "copy-file": actions.copy_file,
        "before-install": actions.before_install,
        "after-install": actions.after_install,
        "composer-install": actions.composer_install,
        "site-composer-install-dev": actions.site_composer_install_dev,
        "rebuild": actions.rebuild,
        "set-owner": actions.set_owner,
        "db-reset": actions.db_reset,
        "extension": actions.build_extension,
    }
    return {
        name: Step(name=name, action=fn, best_effort=name in BEST_EFFORT)
        for name, fn in bound.items()
    }


def build_registry(actions: StepActions) -> Dict[str, Command]:
    """
    Build the command registry for one invocation.

    Steps are closures over `actions`, so a fresh registry is built per run.
    """
    steps = build_steps(actions)
    registry: Dict[str, Command] = {}

    for name, step_name in SINGLES.items():
        registry[name] = Command(name=name, steps=(steps[step_name],))

    for name, step_names in MACROS.items():
        registry[name] = Command(
            name=name,
            steps=tuple(steps[s] for s in step_names),
            macro=True,
        )

    return registry

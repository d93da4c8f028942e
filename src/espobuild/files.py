# files.py
from __future__ import annotations

import shutil
from pathlib import Path
from typing import Callable, Iterable, Optional


def delete_dir(path: str | Path) -> bool:
    """Remove a directory tree if it exists. Returns True if something was removed."""
    p = Path(path)
    if p.is_dir() and not p.is_symlink():
        shutil.rmtree(p)
        return True
    if p.exists() or p.is_symlink():
        p.unlink()
        return True
    return False


def ensure_clean_dir(path: str | Path) -> None:
    p = Path(path)
    if p.exists():
        delete_dir(p)
    p.mkdir(parents=True, exist_ok=True)


def remove_file(path: str | Path) -> None:
    Path(path).unlink(missing_ok=True)


def copy_file(src: str | Path, dest: str | Path) -> None:
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(src, dest)


def copy_tree(
    src: str | Path,
    dest: str | Path,
    *,
    skip: Optional[Callable[[Path], bool]] = None,
) -> None:
    """
    Copy src into dest, merging with what is already there.

    Existing files are overwritten, files only present in dest are kept.
    `skip(path)` excludes a source file or directory.
    """
    src = Path(src)
    dest = Path(dest)
    dest.mkdir(parents=True, exist_ok=True)

    for entry in sorted(src.iterdir()):
        if skip is not None and skip(entry):
            continue
        target = dest / entry.name
        if entry.is_dir():
            copy_tree(entry, target, skip=skip)
        else:
            copy_file(entry, target)


def move_dir_contents(src: str | Path, dest: str | Path) -> None:
    """Move every entry of src into dest, then remove src."""
    src = Path(src)
    dest = Path(dest)
    dest.mkdir(parents=True, exist_ok=True)

    for entry in sorted(src.iterdir()):
        target = dest / entry.name
        if target.exists():
            delete_dir(target)
        shutil.move(str(entry), str(target))

    src.rmdir()


def skip_paths(paths: Iterable[str | Path]) -> Callable[[Path], bool]:
    """Build a copy_tree skip predicate from a list of exact paths."""
    ignored = {Path(p).resolve() for p in paths}
    return lambda p: p.resolve() in ignored

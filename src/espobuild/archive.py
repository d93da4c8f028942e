# archive.py
# Download and unpack of the upstream EspoCRM source archive.
from __future__ import annotations

import shutil
import urllib.error
import urllib.request
import zipfile
from pathlib import Path

from .files import move_dir_contents


class ArchiveError(Exception):
    """Raised when the archive cannot be downloaded or unpacked."""
    pass


def download(url: str, dest: str | Path) -> Path:
    """
    Stream a remote file to dest.

    Args:
        url: Archive URL (GitHub codeload redirect is followed)
        dest: Target file path; parent dirs are created

    Returns:
        Path to the written file

    Raises:
        ArchiveError: On HTTP or network failure
    """
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp = dest.with_name(dest.name + ".part")

    req = urllib.request.Request(url, headers={"User-Agent": "espobuild"})

    try:
        with urllib.request.urlopen(req) as response, tmp.open("wb") as out:
            shutil.copyfileobj(response, out, length=1024 * 1024)
        tmp.replace(dest)
    except urllib.error.HTTPError as e:
        raise ArchiveError(f"Unexpected response {e.code} {e.reason} for {url}") from e
    except urllib.error.URLError as e:
        raise ArchiveError(f"Network error: {e.reason}") from e
    finally:
        tmp.unlink(missing_ok=True)

    return dest


def top_dir_name(branch: str) -> str:
    """Name of the single directory GitHub puts at the root of a branch archive."""
    return "espocrm-" + branch.replace("/", "-")


def extract(archive_path: str | Path, dest_dir: str | Path) -> None:
    archive_path = Path(archive_path)
    if not archive_path.exists():
        raise ArchiveError(f"archive not found: {archive_path}")
    try:
        with zipfile.ZipFile(archive_path) as zf:
            zf.extractall(dest_dir)
    except zipfile.BadZipFile as e:
        raise ArchiveError(f"not a zip archive: {archive_path}") from e


def unpack_branch(archive_path: str | Path, site_dir: str | Path, branch: str) -> None:
    """
    Extract a branch archive into site_dir and lift the
    espocrm-<branch> directory's content up one level.
    """
    site_dir = Path(site_dir)
    extract(archive_path, site_dir)

    lift_branch_dir(site_dir, branch)


def lift_branch_dir(site_dir: str | Path, branch: str) -> None:
    site_dir = Path(site_dir)
    inner = site_dir / top_dir_name(branch)
    if not inner.is_dir():
        raise ArchiveError(f"archive has no {inner.name}/ directory")
    move_dir_contents(inner, site_dir)

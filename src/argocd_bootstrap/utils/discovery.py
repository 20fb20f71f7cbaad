# ABOUTME: Discovery of Argo CD Application definition files
# ABOUTME: Finds files matching a name pattern under a directory tree, each exactly once

"""Application definition discovery."""

from __future__ import annotations

from typing import TYPE_CHECKING

from argocd_bootstrap.errors import MissingArtifactError

if TYPE_CHECKING:
    from pathlib import Path


def discover_application_files(directory: Path, pattern: str = "application*.yaml") -> list[Path]:
    """Find Application definition files below directory.

    Subdirectories are searched too. Results are sorted by path relative to
    directory so the apply order does not depend on how the filesystem
    happens to list entries.

    Args:
        directory: Root to search.
        pattern: Glob matched against file names.

    Returns:
        Matching regular files, each listed once.

    Raises:
        MissingArtifactError: If directory does not exist or cannot be searched.
    """
    if not directory.is_dir():
        raise MissingArtifactError(f"Applications directory not found: {directory}")

    try:
        found = {path for path in directory.rglob(pattern) if path.is_file()}
    except OSError as e:
        raise MissingArtifactError(f"Cannot search applications directory {directory}: {e}") from e
    return sorted(found, key=lambda path: path.relative_to(directory).as_posix())

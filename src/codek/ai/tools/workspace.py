"""Workspace root that confines the built-in file tools."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .errors import PathOutsideWorkspaceError

__all__ = ["Workspace"]


@dataclass(frozen=True)
class Workspace:
    """Directory the file tools may read and write beneath.

    Paths handed to :meth:`resolve` may be relative to the root or absolute;
    either way the resolved location (after ``..`` and symlinks) must stay
    inside the root.
    """

    root: Path

    def __post_init__(self) -> None:
        object.__setattr__(self, "root", Path(self.root).expanduser().resolve())

    def resolve(self, file_path: str) -> Path:
        """Return the absolute path for ``file_path``.

        Raises:
            PathOutsideWorkspaceError: If the path escapes the workspace root.
        """
        raw = Path(file_path.strip()).expanduser()
        candidate = raw if raw.is_absolute() else self.root / raw
        resolved = candidate.resolve()
        if resolved != self.root and not resolved.is_relative_to(self.root):
            raise PathOutsideWorkspaceError(
                message=f"Path is outside the workspace: {file_path}",
                file_path=file_path,
            )
        return resolved

    def relative(self, path: Path) -> str:
        """Display form of ``path``: POSIX-style and relative to the root."""
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return str(path)

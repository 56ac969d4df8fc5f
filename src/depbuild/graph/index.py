"""Project index - the fixed set of candidate projects under the search roots."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator
from pathlib import Path

from .project import ProjectFile, ProjectParseError, is_project_file

logger = logging.getLogger(__name__)


def iter_project_files(root: Path) -> Iterator[Path]:
    """Recursively yield project files under a directory.

    Directory entries are visited in sorted order so that the enumeration
    order, which decides which candidate wins a lookup, is stable.
    """
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in sorted(filenames):
            if is_project_file(filename):
                yield Path(dirpath) / filename


class ProjectIndex:
    """Immutable candidate list of project files, built once per run.

    Usage:
        index = ProjectIndex.scan(["/src/tree"])
        for path in index:
            project = index.load(path)
    """

    def __init__(self, candidates: Iterable[Path | str]):
        seen: dict[Path, None] = {}
        for candidate in candidates:
            seen.setdefault(Path(candidate).absolute(), None)
        self._candidates: tuple[Path, ...] = tuple(seen)
        self._projects: dict[Path, ProjectFile | None] = {}

    @classmethod
    def scan(cls, roots: Iterable[Path | str]) -> ProjectIndex:
        """Enumerate every project file under the given roots.

        Missing roots are skipped with a warning. An empty index is not an
        error; unresolved lookups are reported by the resolver.

        Args:
            roots: Search root directories

        Returns:
            Project index
        """
        found: list[Path] = []
        for root in roots:
            root_path = Path(root).absolute()
            if not root_path.is_dir():
                logger.warning(f"Search root does not exist or is not a directory: {root_path}")
                continue
            found.extend(iter_project_files(root_path))

        index = cls(found)
        logger.info(f"Indexed {len(index)} project files")
        return index

    @property
    def candidates(self) -> tuple[Path, ...]:
        """Candidate project paths in enumeration order."""
        return self._candidates

    def __iter__(self) -> Iterator[Path]:
        return iter(self._candidates)

    def __len__(self) -> int:
        return len(self._candidates)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        return Path(path).absolute() in self._candidates

    def load(self, path: Path | str) -> ProjectFile | None:
        """Load a project, parsing each document at most once.

        Args:
            path: Project path (need not be a candidate, e.g. the root project)

        Returns:
            Parsed project, or None if the document is malformed
        """
        key = Path(path).absolute()
        if key not in self._projects:
            try:
                self._projects[key] = ProjectFile.load(key)
            except ProjectParseError as e:
                logger.warning(str(e))
                self._projects[key] = None
        return self._projects[key]

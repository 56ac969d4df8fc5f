"""Assembly resolution - map an assembly name to the project that produces it.

Lookups scan the project index in enumeration order; the first compatible
candidate wins. Results, including failures, are cached for the run so that
every assembly name is searched (and warned about) at most once.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import Enum
from pathlib import Path
from typing import Final

from .index import ProjectIndex
from .project import ProjectKind

logger = logging.getLogger(__name__)

BINARY_EXTENSIONS: Final[tuple[str, ...]] = (".dll", ".exe", ".winmd")

# First four characters of "netstandard"; compatible with every framework
STANDARD_FRAMEWORK_PREFIX: Final[str] = "nets"
MONIKER_PREFIX_LENGTH: Final[int] = 4


class _Unresolved(Enum):
    UNRESOLVED = "unresolved"

    def __repr__(self) -> str:
        return "UNRESOLVED"


UNRESOLVED: Final = _Unresolved.UNRESOLVED
"""Negative cache entry: the assembly is not produced by any indexed project."""

Resolution = Path | _Unresolved


def normalize_assembly_name(name: str) -> str:
    """Strip a trailing binary extension (``Lib.dll`` -> ``Lib``)."""
    name = name.strip()
    lowered = name.lower()
    for extension in BINARY_EXTENSIONS:
        if lowered.endswith(extension):
            return name[: -len(extension)]
    return name


def is_framework_compatible(candidate_monikers: Iterable[str], required: str | None) -> bool:
    """Check whether any candidate moniker can satisfy the required one.

    Monikers are compared on their first four characters, so ``net472`` and
    ``net48`` fall into the same class while ``net6.0`` and ``net8.0`` do
    not. A ``netstandard`` candidate is compatible with anything.

    Args:
        candidate_monikers: Monikers declared by the producing project
        required: Moniker of the referencing project

    Returns:
        True if at least one candidate moniker is compatible
    """
    if required is None:
        return True
    required_prefix = required[:MONIKER_PREFIX_LENGTH].lower()
    for moniker in candidate_monikers:
        prefix = moniker[:MONIKER_PREFIX_LENGTH].lower()
        if prefix == STANDARD_FRAMEWORK_PREFIX or prefix == required_prefix:
            return True
    return False


class ResolutionCache:
    """Per-run memo of assembly name -> producing project or UNRESOLVED.

    An absent key means "never queried"; UNRESOLVED is stored explicitly so
    failed lookups are not repeated.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Resolution] = {}
        self.hits = 0
        self.misses = 0

    def lookup(self, name: str) -> Resolution | None:
        """Cached resolution, or None if the name was never queried."""
        entry = self._entries.get(name)
        if entry is None:
            self.misses += 1
        else:
            self.hits += 1
        return entry

    def store(self, name: str, resolution: Resolution) -> None:
        self._entries[name] = resolution

    def unresolved(self) -> list[str]:
        """Names recorded as unresolved, sorted."""
        return sorted(name for name, entry in self._entries.items() if entry is UNRESOLVED)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class AssemblyResolver:
    """Resolve assembly names against a project index.

    Usage:
        resolver = AssemblyResolver(index)
        project_path = resolver.resolve("Contoso.Core.dll", "net8.0")
    """

    def __init__(self, index: ProjectIndex, cache: ResolutionCache | None = None):
        self._index = index
        self._cache = cache if cache is not None else ResolutionCache()
        self.scan_count = 0

    @property
    def cache(self) -> ResolutionCache:
        return self._cache

    def resolve(self, assembly_name: str, target_framework: str | None) -> Path | None:
        """Find the project producing an assembly.

        Args:
            assembly_name: Assembly name, with or without a binary extension
            target_framework: Moniker the producing project must be compatible with

        Returns:
            Path of the producing project, or None if unresolved
        """
        name = normalize_assembly_name(assembly_name)

        cached = self._cache.lookup(name)
        if cached is not None:
            return None if cached is UNRESOLVED else cached

        resolution = self._scan(name, target_framework)
        self._cache.store(name, resolution)

        if resolution is UNRESOLVED:
            logger.warning(f"Could not resolve assembly '{name}' in search roots")
            return None

        logger.debug(f"Resolved {name} -> {resolution}")
        return resolution

    def _scan(self, name: str, target_framework: str | None) -> Resolution:
        self.scan_count += 1
        for path in self._index:
            project = self._index.load(path)
            if project is None or project.assembly_name != name:
                continue

            if project.kind == ProjectKind.NATIVE:
                return project.path

            if not project.target_frameworks:
                # Legacy managed project: exactly one binary, assume compatible
                return project.path

            if is_framework_compatible(project.target_frameworks, target_framework):
                return project.path

            logger.debug(
                f"Skipping {path}: {';'.join(project.target_frameworks)} "
                f"incompatible with {target_framework}"
            )

        return UNRESOLVED

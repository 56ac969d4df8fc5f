"""Graph linearization - breadth-first worklist walk producing a build order.

Walk:
    worklist = [root]
    pop P -> move P to the end of the output
          -> for each dependency D of P: move D to the end of the worklist
    reverse(output)

Every project ends up at the position of its last discovery, so after the
final reversal a project precedes everything that references it (cycles
excepted, whose members end up in unspecified relative order).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

from .index import ProjectIndex
from .references import extract_references
from .resolver import AssemblyResolver, ResolutionCache

logger = logging.getLogger(__name__)


class Worklist:
    """Ordered queue with O(1) membership test and removal by value."""

    def __init__(self, items: Iterable[Path] = ()):
        self._items: dict[Path, None] = dict.fromkeys(items)

    def append(self, item: Path) -> None:
        """Append an item, moving it to the end if already queued."""
        self._items.pop(item, None)
        self._items[item] = None

    def popleft(self) -> Path:
        """Remove and return the first item.

        Raises:
            IndexError: If the worklist is empty
        """
        try:
            item = next(iter(self._items))
        except StopIteration:
            raise IndexError("pop from empty worklist") from None
        del self._items[item]
        return item

    def remove(self, item: Path) -> bool:
        """Remove an item wherever it is. Returns True if it was present."""
        if item in self._items:
            del self._items[item]
            return True
        return False

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __iter__(self) -> Iterator[Path]:
        return iter(self._items)


@dataclass
class LinearizationResult:
    """Build order plus what was learned while computing it."""

    order: list[Path]
    unresolved: list[str] = field(default_factory=list)
    legacy_projects: list[Path] = field(default_factory=list)
    edges: dict[Path, list[Path]] = field(default_factory=dict)


class GraphLinearizer:
    """Compute the build order for one root project.

    The resolution cache and discovered edges live for a single ``run()``.

    Usage:
        index = ProjectIndex.scan(search_roots)
        order = GraphLinearizer(index, keyword="Contoso").run(root).order
    """

    def __init__(self, index: ProjectIndex, keyword: str | None = None):
        self._index = index
        self._keyword = keyword

    def run(self, root: Path | str) -> LinearizationResult:
        """Walk the reference graph from a root project.

        Args:
            root: Root project file

        Returns:
            Linearization result; ``order`` lists dependencies first
        """
        root_path = Path(root).absolute()
        resolver = AssemblyResolver(self._index, ResolutionCache())
        dependencies: dict[Path, list[Path]] = {}
        legacy: list[Path] = []

        worklist = Worklist([root_path])
        output: dict[Path, None] = {}

        while worklist:
            current = worklist.popleft()
            # Re-record at the most recent discovery point
            output.pop(current, None)
            output[current] = None

            if current not in dependencies:
                dependencies[current] = self._expand(current, resolver, legacy)

            for dependency in dependencies[current]:
                if self._closes_cycle(dependencies, current, dependency):
                    logger.debug(f"Cycle: {current.name} -> {dependency.name}")
                    continue
                worklist.remove(dependency)
                worklist.append(dependency)

        order = list(reversed(output))
        unresolved = resolver.cache.unresolved()
        logger.info(
            f"Build order has {len(order)} projects "
            f"({len(unresolved)} unresolved assemblies, {resolver.scan_count} index scans)"
        )
        return LinearizationResult(
            order=order,
            unresolved=unresolved,
            legacy_projects=legacy,
            edges=dependencies,
        )

    def _expand(self, path: Path, resolver: AssemblyResolver, legacy: list[Path]) -> list[Path]:
        """Resolve the projects a project depends on."""
        project = self._index.load(path)
        if project is None:
            return []

        target_framework = project.target_framework
        if target_framework is None:
            if project.is_managed:
                logger.warning(f"Legacy or incompatible project, not following references: {path}")
                legacy.append(path)
            return []

        resolved: list[Path] = []
        for edge in extract_references(project, self._keyword):
            dependency = resolver.resolve(edge.assembly_name, target_framework)
            if dependency is not None and dependency not in resolved:
                resolved.append(dependency)
        return resolved

    @staticmethod
    def _closes_cycle(dependencies: dict[Path, list[Path]], source: Path, target: Path) -> bool:
        """Whether ``source`` is reachable from ``target`` over known edges."""
        stack = [target]
        seen: set[Path] = set()
        while stack:
            node = stack.pop()
            if node == source:
                return True
            if node in seen:
                continue
            seen.add(node)
            stack.extend(dependencies.get(node, ()))
        return False


def linearize(
    root: Path | str,
    search_roots: Iterable[Path | str],
    keyword: str | None = None,
) -> list[Path]:
    """Scan the search roots and return the build order for a root project."""
    index = ProjectIndex.scan(search_roots)
    return GraphLinearizer(index, keyword).run(root).order

"""Reference extraction from managed project documents."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .project import ProjectFile, ProjectParseError, iter_elements, local_name, parse_document

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceEdge:
    """Raw outbound reference declared by a project.

    Not guaranteed to resolve to a project under the search roots.
    """

    source: Path
    value: str
    is_hint_path: bool = False

    @property
    def assembly_name(self) -> str:
        """Assembly file or identity name the reference points at.

        ``..\\bin\\Lib.dll`` -> ``Lib.dll``; ``Lib, Version=1.0.0.0`` -> ``Lib``.
        """
        name = self.value.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]
        if not self.is_hint_path:
            name = name.split(",", 1)[0]
        return name.strip()


def _hint_path(element) -> str | None:
    for child in element:
        if isinstance(child.tag, str) and local_name(child.tag) == "HintPath":
            text = (child.text or "").strip()
            if text:
                return text
    return None


def extract_references(project: ProjectFile, keyword: str | None = None) -> list[ReferenceEdge]:
    """Read the assembly references declared by a project.

    Non-managed projects declare no references and yield an empty list.
    Each ``<Reference>`` element contributes its ``<HintPath>`` when present,
    otherwise its ``Include`` attribute. Elements providing neither are
    logged and skipped.

    Args:
        project: Project to read
        keyword: Case-insensitive substring a reference must contain to be kept

    Returns:
        References in document order
    """
    if not project.is_managed:
        return []

    try:
        root = parse_document(project.path)
    except ProjectParseError as e:
        logger.warning(str(e))
        return []

    needle = keyword.lower() if keyword else None
    edges: list[ReferenceEdge] = []

    for element in iter_elements(root, "Reference"):
        hint = _hint_path(element)
        include = (element.get("Include") or "").strip()
        value = hint or include
        if not value:
            logger.warning(f"Malformed reference in {project.path}: no Include or HintPath")
            continue
        if needle is not None and needle not in value.lower():
            continue
        edges.append(ReferenceEdge(source=project.path, value=value, is_hint_path=hint is not None))

    logger.debug(f"{project.path.name}: {len(edges)} references")
    return edges

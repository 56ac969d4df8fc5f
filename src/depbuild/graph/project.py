"""Project file model and MSBuild document parsing.

A project document is MSBuild XML. Only the handful of elements the
dependency walk needs are read:

- ``<AssemblyName>`` (or ``<TargetName>`` for native projects)
- ``<TargetFramework>`` / ``<TargetFrameworks>``
- ``<Reference>`` items (see ``references.py``)
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Final

logger = logging.getLogger(__name__)

MANAGED_PROJECT_EXTENSIONS: Final[frozenset[str]] = frozenset({".csproj"})
NATIVE_PROJECT_EXTENSIONS: Final[frozenset[str]] = frozenset({".vcxproj", ".nativeproj"})
PROJECT_EXTENSIONS: Final[frozenset[str]] = MANAGED_PROJECT_EXTENSIONS | NATIVE_PROJECT_EXTENSIONS

# $(PropertyName) - the whole value must be a single macro
MACRO_PATTERN: Final[re.Pattern[str]] = re.compile(r"^\$\((?P<name>[A-Za-z_][\w.\-]*)\)$")


class ProjectKind(str, Enum):
    """File-format kind of a project document."""

    MODERN_SINGLE_TARGET = "modern-single-target"
    MODERN_MULTI_TARGET = "modern-multi-target"
    NATIVE = "native"


class ProjectParseError(Exception):
    """Project document could not be read or is not well-formed XML."""

    def __init__(self, path: Path | str, reason: str):
        super().__init__(f"Cannot parse project {path}: {reason}")
        self.path = Path(path)
        self.reason = reason


def is_project_file(path: Path | str) -> bool:
    """Check whether a file name has a known project extension."""
    return Path(path).suffix.lower() in PROJECT_EXTENSIONS


def local_name(tag: str) -> str:
    """Strip an XML namespace from a tag: ``{ns}Reference`` -> ``Reference``."""
    if tag.startswith("{"):
        return tag.rsplit("}", 1)[1]
    return tag


def iter_elements(root: ET.Element, name: str):
    """Yield every element in the document with the given local name."""
    for element in root.iter():
        if isinstance(element.tag, str) and local_name(element.tag) == name:
            yield element


def first_text(root: ET.Element, name: str) -> str | None:
    """Text of the first non-empty element with the given local name."""
    for element in iter_elements(root, name):
        text = (element.text or "").strip()
        if text:
            return text
    return None


def expand_macro(root: ET.Element, value: str) -> str:
    """Expand a ``$(Name)`` value by looking up ``<Name>`` in the same document.

    Only one level of indirection is expanded. If the looked-up value is
    itself a macro it is returned as is.

    Args:
        root: Parsed document root
        value: Raw element value

    Returns:
        Expanded value, or the original value if it is not a macro or the
        named element does not exist
    """
    match = MACRO_PATTERN.match(value)
    if not match:
        return value
    name = match.group("name")
    expanded = first_text(root, name)
    if expanded is None:
        logger.debug(f"Macro {value} has no <{name}> element to expand from")
        return value
    return expanded


def parse_target_frameworks(root: ET.Element) -> tuple[str, ...]:
    """Collect declared target-framework monikers in document order.

    ``<TargetFrameworks>`` values are split on ``;``. Duplicates are dropped.
    """
    monikers: list[str] = []
    for element in root.iter():
        if not isinstance(element.tag, str):
            continue
        tag = local_name(element.tag)
        if tag not in ("TargetFramework", "TargetFrameworks"):
            continue
        for moniker in (element.text or "").split(";"):
            moniker = moniker.strip()
            if moniker and moniker not in monikers:
                monikers.append(moniker)
    return tuple(monikers)


def parse_document(path: Path) -> ET.Element:
    """Parse a project document and return its root element.

    Raises:
        ProjectParseError: If the file is unreadable or malformed
    """
    try:
        return ET.parse(path).getroot()
    except ET.ParseError as e:
        raise ProjectParseError(path, str(e)) from e
    except OSError as e:
        raise ProjectParseError(path, e.strerror or str(e)) from e


@dataclass(frozen=True)
class ProjectFile:
    """One buildable project discovered under a search root.

    Immutable once loaded; identity is the absolute path.
    """

    path: Path
    kind: ProjectKind
    assembly_name: str | None
    target_frameworks: tuple[str, ...] = ()

    @property
    def is_managed(self) -> bool:
        """Whether this is a managed (.csproj) project."""
        return self.kind != ProjectKind.NATIVE

    @property
    def directory(self) -> Path:
        """Directory containing the project file."""
        return self.path.parent

    @property
    def target_framework(self) -> str | None:
        """First declared target framework, if any."""
        return self.target_frameworks[0] if self.target_frameworks else None

    @classmethod
    def load(cls, path: Path | str) -> ProjectFile:
        """Read a project document from disk.

        Args:
            path: Path to a .csproj, .vcxproj or .nativeproj file

        Returns:
            Parsed project

        Raises:
            ProjectParseError: If the document cannot be parsed
        """
        path = Path(path).absolute()
        root = parse_document(path)
        return cls.from_element(path, root)

    @classmethod
    def from_element(cls, path: Path, root: ET.Element) -> ProjectFile:
        """Build a project from an already parsed document."""
        suffix = path.suffix.lower()
        target_frameworks = parse_target_frameworks(root)

        if suffix in NATIVE_PROJECT_EXTENSIONS:
            kind = ProjectKind.NATIVE
            raw_name = first_text(root, "AssemblyName") or first_text(root, "TargetName")
        else:
            has_multi = any(True for _ in iter_elements(root, "TargetFrameworks"))
            kind = ProjectKind.MODERN_MULTI_TARGET if has_multi else ProjectKind.MODERN_SINGLE_TARGET
            raw_name = first_text(root, "AssemblyName")

        # No <AssemblyName>/<TargetName> declared: MSBuild defaults
        # $(AssemblyName) to $(MSBuildProjectName), the project file stem
        assembly_name = expand_macro(root, raw_name) if raw_name else path.stem

        return cls(
            path=path,
            kind=kind,
            assembly_name=assembly_name,
            target_frameworks=target_frameworks,
        )

"""Dependency graph resolution for multi-project source trees.

Provides:
- Project index over one or more search roots
- Reference extraction from managed project documents
- Assembly-to-project resolution with negative caching and TFM rules
- Worklist linearization into a dependencies-first build order
"""

from .index import ProjectIndex
from .linearizer import GraphLinearizer, LinearizationResult, Worklist, linearize
from .project import ProjectFile, ProjectKind, ProjectParseError
from .references import ReferenceEdge, extract_references
from .resolver import (
    UNRESOLVED,
    AssemblyResolver,
    ResolutionCache,
    is_framework_compatible,
    normalize_assembly_name,
)

__all__ = [
    "ProjectIndex",
    "ProjectFile",
    "ProjectKind",
    "ProjectParseError",
    "ReferenceEdge",
    "extract_references",
    "AssemblyResolver",
    "ResolutionCache",
    "UNRESOLVED",
    "is_framework_compatible",
    "normalize_assembly_name",
    "GraphLinearizer",
    "LinearizationResult",
    "Worklist",
    "linearize",
]

"""depbuild - build a project and its referenced projects in dependency order."""

__version__ = "0.1.0"

from .build import BuildManager, RunOptions
from .graph import GraphLinearizer, ProjectIndex, linearize

__all__ = [
    "__version__",
    "BuildManager",
    "RunOptions",
    "GraphLinearizer",
    "ProjectIndex",
    "linearize",
]

"""Search root detection for the MCP server.

Search roots come from, in order:
1. Explicit roots passed to a tool
2. MCP Roots from the client (via Context.list_roots())
3. The DEPBUILD_SEARCH_ROOTS environment variable (os.pathsep separated)
4. The root project's own directory
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Final
from urllib.parse import unquote, urlparse

if TYPE_CHECKING:
    from mcp.server.fastmcp import Context

logger = logging.getLogger(__name__)

SEARCH_ROOTS_ENV: Final[str] = "DEPBUILD_SEARCH_ROOTS"


def parse_file_uri(uri: str) -> Path | None:
    """Convert a file:// URI to a local path.

    - Unix: file:///home/user/src → /home/user/src
    - Windows: file:///C:/src → C:\\src
    - Windows UNC: file://server/share → \\\\server\\share

    Returns:
        Absolute path, or None for non-file or relative URIs
    """
    parsed = urlparse(str(uri))
    if parsed.scheme != "file":
        logger.warning(f"Not a file URI: {uri}")
        return None

    path_str = unquote(parsed.path)
    if sys.platform == "win32":
        # /C:/path -> C:/path
        if len(path_str) > 2 and path_str[0] == "/" and path_str[2] == ":":
            path_str = path_str[1:]
        if parsed.netloc:
            path_str = f"\\\\{parsed.netloc}{path_str}"

    path = Path(path_str)
    if not path.is_absolute():
        logger.warning(f"Parsed path is not absolute: {path}")
        return None
    return path


def env_search_roots() -> list[Path]:
    """Existing directories listed in DEPBUILD_SEARCH_ROOTS."""
    value = os.environ.get(SEARCH_ROOTS_ENV, "")
    roots: list[Path] = []
    for entry in value.split(os.pathsep):
        entry = entry.strip()
        if not entry:
            continue
        path = Path(entry)
        if path.is_dir():
            roots.append(path)
        else:
            logger.warning(f"{SEARCH_ROOTS_ENV} entry is not a directory: {entry}")
    return roots


async def get_search_roots(
    ctx: Context | None = None,
    explicit: Sequence[str] | None = None,
    project: str | Path | None = None,
) -> list[Path]:
    """Determine the search roots for a dependency walk.

    Args:
        ctx: MCP Context for client-provided roots (may be None)
        explicit: Roots given directly by the caller
        project: Root project, whose directory is the last fallback

    Returns:
        Search roots (possibly empty if nothing is known)
    """
    if explicit:
        return [Path(root) for root in explicit]

    if ctx is not None:
        try:
            client_roots = await ctx.list_roots()
        except Exception as e:
            # Client may not support roots
            logger.info(f"Could not get roots from client: {e}")
            client_roots = None
        if client_roots:
            paths = [parse_file_uri(str(root.uri)) for root in client_roots]
            found = [p for p in paths if p is not None and p.is_dir()]
            if found:
                logger.info(f"Using search roots from MCP client: {', '.join(map(str, found))}")
                return found

    roots = env_search_roots()
    if roots:
        return roots

    if project is not None:
        return [Path(project).absolute().parent]

    logger.warning("Could not determine search roots from any source")
    return []

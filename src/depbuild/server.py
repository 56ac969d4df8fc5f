"""MCP server exposing dependency resolution and builds as tools."""

from __future__ import annotations

import logging
from pathlib import Path

from mcp.server.fastmcp import Context, FastMCP

from .build import BuildManager, CheckpointStore, DepBuildError, RunOptions
from .utils.project import get_search_roots

logger = logging.getLogger(__name__)


def create_server(checkpoint_file: str | Path | None = None) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        checkpoint_file: Checkpoint location shared by all tools
            (defaults to DEPBUILD_CHECKPOINT or ./depbuild.resume)
    """
    mcp = FastMCP("depbuild")
    checkpoint = CheckpointStore(checkpoint_file)

    async def make_options(
        ctx: Context,
        project: str | None,
        search_roots: list[str] | None,
        **kwargs,
    ) -> RunOptions:
        roots = [] if kwargs.get("resume") else await get_search_roots(ctx, search_roots, project)
        return RunOptions(
            project=Path(project) if project else None,
            search_roots=roots,
            checkpoint_file=checkpoint.path,
            **kwargs,
        )

    @mcp.tool()
    async def resolve_build_order(
        ctx: Context,
        project: str,
        search_roots: list[str] | None = None,
        keyword: str | None = None,
    ) -> dict:
        """
        Compute the build order for a project without building anything.

        Follows assembly references declared in each project file, resolving
        each assembly to the project under the search roots that produces it.

        Args:
            project: Root project file (.csproj/.vcxproj/.nativeproj)
            search_roots: Directories holding candidate projects. Defaults to the
                client's roots, then DEPBUILD_SEARCH_ROOTS, then the project directory.
            keyword: Only follow references containing this substring

        Returns:
            Build order (dependencies first) and unresolved assembly names
        """
        try:
            options = await make_options(ctx, project, search_roots, keyword=keyword)
            result = await BuildManager(options).resolve_async()
            return {
                "success": True,
                "order": [str(p) for p in result.order],
                "unresolved": result.unresolved,
                "legacyProjects": [str(p) for p in result.legacy_projects],
            }
        except (DepBuildError, ValueError) as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def save_build_order(
        ctx: Context,
        project: str,
        search_roots: list[str] | None = None,
        keyword: str | None = None,
    ) -> dict:
        """
        Dry run: compute the build order and write it to the checkpoint file.

        A later build with resume=True builds exactly this order.

        Args:
            project: Root project file
            search_roots: Directories holding candidate projects
            keyword: Only follow references containing this substring
        """
        try:
            options = await make_options(ctx, project, search_roots, keyword=keyword, dry_run=True)
            result = await BuildManager(options).run()
            return {"success": True, "data": result.to_dict(), "count": len(result.remaining)}
        except (DepBuildError, ValueError) as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    async def build(
        ctx: Context,
        project: str | None = None,
        search_roots: list[str] | None = None,
        keyword: str | None = None,
        resume: bool = False,
        restore: bool = False,
        build_args: str | None = None,
    ) -> dict:
        """
        Build a project and all of its dependencies in dependency order.

        Projects are built one at a time. If a build fails, the failed project
        and everything after it is saved to the checkpoint file; fix the problem
        and call again with resume=True to continue from there.

        Args:
            project: Root project file (not needed with resume=True)
            search_roots: Directories holding candidate projects
            keyword: Only follow references containing this substring
            resume: Continue from the checkpoint file instead of resolving
            restore: Restore packages before building each project
            build_args: Extra arguments for the build command
        """
        try:
            options = await make_options(
                ctx,
                project,
                search_roots,
                keyword=keyword,
                resume=resume,
                restore=restore,
                build_args=build_args,
            )
            result = await BuildManager(options).run()
            return {"success": result.success, "data": result.to_dict(), "summary": result.to_summary()}
        except (DepBuildError, ValueError) as e:
            return {"success": False, "error": str(e)}

    @mcp.tool()
    def get_checkpoint() -> dict:
        """
        Read the checkpoint file: the projects a resumed build would build.
        """
        order = checkpoint.load()
        if order is None:
            return {"success": True, "exists": False, "path": str(checkpoint.path)}
        return {
            "success": True,
            "exists": True,
            "path": str(checkpoint.path),
            "order": [str(p) for p in order],
        }

    @mcp.tool()
    def clear_checkpoint() -> dict:
        """
        Delete the checkpoint file so the next build starts from scratch.
        """
        return {"success": True, "removed": checkpoint.clear()}

    return mcp


def run() -> None:
    """Run the MCP server over stdio."""
    from .__main__ import configure_logging

    configure_logging()
    logger.info("Starting depbuild MCP server...")
    try:
        create_server().run()
    except KeyboardInterrupt:
        pass
    finally:
        logger.info("Server stopped")


if __name__ == "__main__":
    run()

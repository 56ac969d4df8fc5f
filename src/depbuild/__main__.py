"""Entry point for the depbuild command line."""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from .build import BuildManager, CheckpointMissingError, DepBuildError, RunOptions, ToolNotFoundError
from .build.probe import PROBES

EXIT_BUILD_FAILED = 1
EXIT_FATAL = 2


def configure_logging() -> None:
    """Configure logging based on environment."""
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Build a project and every project it references, in dependency order."
    )
    parser.add_argument(
        "project",
        nargs="?",
        default=None,
        help="Root project file (.csproj, .vcxproj or .nativeproj). Optional with --resume.",
    )
    parser.add_argument(
        "search_roots",
        nargs="*",
        help="Directories searched for the projects producing referenced assemblies.",
    )
    parser.add_argument(
        "--keyword",
        default=None,
        help="Only follow references whose path contains this substring (case-insensitive).",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute the build order and write it to the checkpoint file without building.",
    )
    mode.add_argument(
        "--resume",
        action="store_true",
        help="Build the projects listed in the checkpoint file instead of resolving again.",
    )
    parser.add_argument(
        "--restore",
        action="store_true",
        help="Restore packages before building each project "
        "(nuget from NUGET_PATH or PATH; native projects use DEPBUILD_ALT_RESTORE).",
    )
    parser.add_argument(
        "--build-args",
        default=None,
        help="Arguments passed to the build command for every project.",
    )
    parser.add_argument(
        "--build-command",
        default=None,
        help="Build command (default: DEPBUILD_BUILD_COMMAND or msbuild).",
    )
    parser.add_argument(
        "--checkpoint-file",
        type=Path,
        default=None,
        help="Checkpoint file (default: DEPBUILD_CHECKPOINT or ./depbuild.resume).",
    )
    parser.add_argument(
        "--probe",
        choices=sorted(PROBES),
        default="marker",
        help="How build failure is detected: error marker file (default) or exit code.",
    )
    args = parser.parse_args(argv)
    if not args.resume and (args.project is None or not args.search_roots):
        parser.error("project and at least one search root are required unless --resume is given")
    return args


def options_from_args(args: argparse.Namespace) -> RunOptions:
    """Build run options from parsed arguments."""
    return RunOptions(
        project=Path(args.project).absolute() if args.project else None,
        search_roots=[Path(root).absolute() for root in args.search_roots],
        keyword=args.keyword,
        dry_run=args.dry_run,
        resume=args.resume,
        restore=args.restore,
        build_args=args.build_args,
        build_command=args.build_command,
        checkpoint_file=args.checkpoint_file,
        probe=args.probe,
    )


async def main(argv: list[str] | None = None) -> int:
    """Main entry point. Returns the process exit code."""
    configure_logging()
    logger = logging.getLogger(__name__)

    args = parse_args(argv)
    manager = BuildManager(options_from_args(args))

    try:
        result = await manager.run()
    except (ToolNotFoundError, CheckpointMissingError) as e:
        logger.error(str(e))
        return EXIT_FATAL
    except DepBuildError as e:
        logger.error(f"Build run failed: {e}")
        return EXIT_FATAL

    if args.dry_run:
        logger.info(f"Dry run: {len(result.remaining)} projects saved to {result.checkpoint_path}")
        return 0

    if result.success:
        logger.info(result.to_summary())
        return 0

    logger.error(result.to_summary())
    return EXIT_BUILD_FAILED


def run() -> None:
    """Run the command line."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    run()

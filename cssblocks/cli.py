"""
Main CLI for the cssblocks tool.
"""

from __future__ import annotations

import argparse
import sys

from cssblocks import __version__
from cssblocks.core.utils import configure_debug_logging, log


# =============================================================================
# Argument Parsing
# =============================================================================


def _add_stage_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--app-name",
        help="Application name; output goes under <app-name>/ (default: appName from css-blocks.yaml)",
    )
    parser.add_argument(
        "--input",
        required=True,
        help="Directory holding *.compiledblock.css and *.block-analysis.json files",
    )
    parser.add_argument(
        "--output",
        required=True,
        help="Directory to write the optimized CSS and runtime data to",
    )
    parser.add_argument(
        "--config",
        help="Path to css-blocks.yaml (default: search upwards from --input)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose debug output",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="cssblocks",
        description="CSS Blocks application build stage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  build       Optimize block CSS and generate runtime data
  concat      Append the optimized CSS to app/styles/app.css
  watch       Rebuild whenever block inputs change
  inspect     Summarize the artifacts of a previous build

Examples:
  cssblocks build --app-name my-app --input tmp/blocks --output dist
  cssblocks concat --blocks dist --app-css tmp/css --output dist/css
  cssblocks inspect --app-name my-app --output dist
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    # --- build ---
    build_parser = subparsers.add_parser(
        "build",
        help="Optimize block CSS and generate runtime data",
        description="Run one build cycle of the application stage.",
    )
    _add_stage_arguments(build_parser)
    build_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Render artifacts without writing them",
    )

    # --- concat ---
    concat_parser = subparsers.add_parser(
        "concat",
        help="Append the optimized CSS to app/styles/app.css",
        description="Write app/styles/app.css as the app CSS followed by css-blocks.css.",
    )
    concat_parser.add_argument("--blocks", required=True, help="Output directory of the build command")
    concat_parser.add_argument("--app-css", required=True, help="Directory holding app/styles/app.css")
    concat_parser.add_argument("--output", required=True, help="Directory to write app/styles/app.css to")

    # --- watch ---
    watch_parser = subparsers.add_parser(
        "watch",
        help="Rebuild whenever block inputs change",
        description="Watch the input directory and re-run the build stage on changes.",
    )
    _add_stage_arguments(watch_parser)

    # --- inspect ---
    inspect_parser = subparsers.add_parser(
        "inspect",
        help="Summarize the artifacts of a previous build",
    )
    inspect_parser.add_argument("--app-name", required=True, help="Application name")
    inspect_parser.add_argument("--output", required=True, help="Output directory of the build command")

    return parser


# =============================================================================
# Main
# =============================================================================


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.no_color:
        log.set_color(False)

    configure_debug_logging(getattr(args, "verbose", False))

    if not args.command:
        parser.print_help()
        return 0

    try:
        if args.command == "build":
            from cssblocks.commands.build import cmd_build
            return cmd_build(args)

        elif args.command == "concat":
            from cssblocks.commands.build import cmd_concat
            return cmd_concat(args)

        elif args.command == "watch":
            from cssblocks.commands.watch import cmd_watch
            return cmd_watch(args)

        elif args.command == "inspect":
            from cssblocks.build.inspect import cmd_inspect
            return cmd_inspect(args)

        else:
            log.error(f"Unknown command: {args.command}")
            return 1

    except KeyboardInterrupt:
        log.warning("\nInterrupted")
        return 130
    except Exception as e:
        log.error(str(e))
        if getattr(args, "verbose", False):
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""
The ``build`` and ``concat`` commands.
"""

from __future__ import annotations

import argparse
from pathlib import Path

from cssblocks.build.config import BuildConfig, find_config, load_config
from cssblocks.build.stage import CSSBlocksApplicationStage
from cssblocks.build.styles import CSSBlocksStylesProcessor
from cssblocks.core.tree import LocalTree
from cssblocks.core.utils import APP_CSS_PATH, log


def config_from_args(args: argparse.Namespace) -> BuildConfig:
    """Build a BuildConfig from CLI flags and the optional css-blocks.yaml.

    Flags take precedence over values from the file.
    """
    input_dir = Path(args.input).resolve()
    overrides = {
        "app_name": args.app_name,
        "input_dir": input_dir,
        "output_dir": Path(args.output).resolve(),
        "verbose": True if getattr(args, "verbose", False) else None,
        "dry_run": True if getattr(args, "dry_run", False) else None,
    }

    config_path = Path(args.config) if getattr(args, "config", None) else find_config(input_dir)
    if config_path is not None:
        log.dim(f"Using config {config_path}")
        return load_config(config_path, **overrides)

    if not args.app_name:
        raise ValueError("--app-name is required when no css-blocks.yaml is present")
    return BuildConfig(**{k: v for k, v in overrides.items() if v is not None})


def make_stage(config: BuildConfig) -> CSSBlocksApplicationStage:
    return CSSBlocksApplicationStage(config, LocalTree(config.input_dir), LocalTree(config.output_dir))


def cmd_build(args: argparse.Namespace) -> int:
    """Execute the build command."""
    config = config_from_args(args)
    stage = make_stage(config)
    result = stage.build()
    if result.rebuilt and not config.dry_run:
        for path in result.artifacts:
            log.dim(f"  wrote {config.output_dir / path}")
    return 0


def cmd_concat(args: argparse.Namespace) -> int:
    """Execute the concat command."""
    log.header("CSS Blocks: merge into application CSS")
    processor = CSSBlocksStylesProcessor(
        LocalTree(Path(args.blocks)),
        LocalTree(Path(args.app_css)),
        LocalTree(Path(args.output)),
    )
    content = processor.build()
    log.success(f"Wrote {Path(args.output) / APP_CSS_PATH} ({len(content)} chars)")
    return 0

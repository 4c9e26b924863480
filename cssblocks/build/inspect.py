"""
Build inspection for the css-blocks application stage.

Summarizes the artifacts a build wrote to an output tree.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from cssblocks.core.tree import FileTree, LocalTree
from cssblocks.core.utils import log, output_paths
from cssblocks.runtime.data import RUNTIME_DATA_HEADER

_DATA_PREFIX = "export const data = "


# =============================================================================
# Artifact Inspection
# =============================================================================


def parse_runtime_module(text: str) -> dict[str, Any]:
    """Extract the payload from a generated ``-css-blocks-data.js`` module.

    Raises:
        ValueError: If the text is not a generated runtime data module.
    """
    body = text.strip()
    if not body.startswith(RUNTIME_DATA_HEADER):
        raise ValueError("missing generated data header")
    body = body[len(RUNTIME_DATA_HEADER):].strip()
    if not body.startswith(_DATA_PREFIX) or not body.endswith(";"):
        raise ValueError("missing 'export const data' statement")
    return json.loads(body[len(_DATA_PREFIX):-1])


def get_runtime_summary(tree: FileTree, path: str) -> Optional[dict[str, Any]]:
    """Count blocks, styles and templates in the runtime data module."""
    if not tree.exists(path):
        return None
    try:
        data = parse_runtime_module(tree.read_text(path))
    except ValueError as e:
        return {"error": str(e)}
    return {
        "block_count": len(data.get("blocks", [])),
        "style_count": len(data.get("styleClassNames", [])),
        "template_count": len(data.get("templates", {})),
        "reserved_count": len(data.get("reservedClassNames", [])),
    }


def get_artifact_summary(tree: FileTree, app_name: str) -> dict[str, Any]:
    """Describe every output artifact of ``app_name`` present in ``tree``."""
    paths = output_paths(app_name)
    summary: dict[str, Any] = {"paths": paths}

    if tree.exists(paths["css"]):
        css = tree.read_text(paths["css"])
        summary["css_size"] = len(css.encode("utf-8"))
    else:
        summary["css_size"] = None

    summary["source_count"] = None
    if tree.exists(paths["source_map"]):
        text = tree.read_text(paths["source_map"])
        if text.strip():
            try:
                summary["source_count"] = len(json.loads(text).get("sources", []))
            except json.JSONDecodeError as e:
                summary["source_map_error"] = str(e)

    if tree.exists(paths["optimization_log"]):
        text = tree.read_text(paths["optimization_log"])
        summary["optimization_count"] = len([line for line in text.splitlines() if line.strip()])
    else:
        summary["optimization_count"] = None

    summary["runtime"] = get_runtime_summary(tree, paths["runtime_data"])
    return summary


# =============================================================================
# CLI Entry Point
# =============================================================================


def cmd_inspect(args) -> int:
    """Main entry point for the inspect command."""
    log.header(f"CSS Blocks Build Inspection: {args.app_name}")
    tree = LocalTree(Path(args.output))
    summary = get_artifact_summary(tree, args.app_name)

    if summary["css_size"] is None:
        log.error(f"No build output for {args.app_name} in {args.output}")
        return 1

    log.table_row("Stylesheet:", f"{summary['paths']['css']} ({summary['css_size']} bytes)")
    if summary["source_count"] is not None:
        log.table_row("Source map sources:", str(summary["source_count"]))
    elif "source_map_error" in summary:
        log.warning(f"Source map: {summary['source_map_error']}")
    else:
        log.table_row("Source map:", "empty")
    if summary["optimization_count"] is not None:
        log.table_row("Optimizations:", str(summary["optimization_count"]))

    runtime = summary["runtime"]
    if runtime is None:
        log.warning("Runtime data module not found")
        return 1
    if "error" in runtime:
        log.error(f"Runtime data: {runtime['error']}")
        return 1
    log.table_row("Blocks:", str(runtime["block_count"]))
    log.table_row("Styles:", str(runtime["style_count"]))
    log.table_row("Templates:", str(runtime["template_count"]))
    log.table_row("Reserved class names:", str(runtime["reserved_count"]))
    return 0

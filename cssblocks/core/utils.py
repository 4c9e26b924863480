"""
Shared utilities for the cssblocks CLI.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

# =============================================================================
# Constants
# =============================================================================

# Input artifacts produced per template by the host pipeline
COMPILED_BLOCK_SUFFIX = ".compiledblock.css"
ANALYSIS_SUFFIX = ".block-analysis.json"
BLOCK_SOURCE_SUFFIX = ".block.css"

INPUT_GLOBS = [f"**/*{COMPILED_BLOCK_SUFFIX}", f"**/*{ANALYSIS_SUFFIX}"]

# Output artifacts, relative to the output root
CSS_OUTPUT_TEMPLATE = "{app_name}/styles/css-blocks.css"
SOURCE_MAP_OUTPUT_TEMPLATE = "{app_name}/styles/css-blocks.css.map"
OPTIMIZATION_LOG_TEMPLATE = "{app_name}/styles/css-blocks.optimization.log"
RUNTIME_DATA_TEMPLATE = "{app_name}/services/-css-blocks-data.js"

APP_CSS_PATH = "app/styles/app.css"
BLOCKS_CSS_GLOB = "**/css-blocks.css"


# =============================================================================
# Logging
# =============================================================================


class Logger:
    """Simple colored logger with --no-color support."""

    COLORS = {
        "reset": "\033[0m",
        "red": "\033[91m",
        "green": "\033[92m",
        "yellow": "\033[93m",
        "cyan": "\033[96m",
        "bold": "\033[1m",
        "dim": "\033[2m",
    }

    def __init__(self, use_color: Optional[bool] = None):
        if use_color is None:
            self._use_color = sys.stdout.isatty()
        else:
            self._use_color = use_color

    def set_color(self, use_color: bool) -> None:
        """Set whether to use color output."""
        self._use_color = use_color

    def _color(self, text: str, color: str) -> str:
        if not self._use_color:
            return text
        return f"{self.COLORS.get(color, '')}{text}{self.COLORS['reset']}"

    def header(self, message: str) -> None:
        """Print a section header."""
        print(f"\n{self._color('===', 'cyan')} {self._color(message, 'bold')} {self._color('===', 'cyan')}")

    def info(self, message: str) -> None:
        """Print an info message."""
        print(f"  {message}")

    def success(self, message: str) -> None:
        """Print a success message."""
        print(f"  {self._color('[OK]', 'green')} {message}")

    def warning(self, message: str) -> None:
        """Print a warning message."""
        print(f"  {self._color('[WARN]', 'yellow')} {message}")

    def error(self, message: str) -> None:
        """Print an error message."""
        print(f"  {self._color('[ERROR]', 'red')} {message}")

    def dim(self, message: str) -> None:
        """Print a dim/secondary message."""
        print(f"  {self._color(message, 'dim')}")

    def table_row(self, col1: str, col2: str, col1_width: int = 30) -> None:
        """Print a table row with two columns."""
        print(f"  {col1:<{col1_width}} {col2}")


# Global logger instance
log = Logger()


def configure_debug_logging(verbose: bool) -> None:
    """Route library debug output (``logging.getLogger(__name__)``) to stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        stream=sys.stderr,
    )


# =============================================================================
# Path Utilities
# =============================================================================


def output_paths(app_name: str) -> dict[str, str]:
    """Return the output artifact paths for an application, keyed by artifact kind."""
    return {
        "css": CSS_OUTPUT_TEMPLATE.format(app_name=app_name),
        "source_map": SOURCE_MAP_OUTPUT_TEMPLATE.format(app_name=app_name),
        "optimization_log": OPTIMIZATION_LOG_TEMPLATE.format(app_name=app_name),
        "runtime_data": RUNTIME_DATA_TEMPLATE.format(app_name=app_name),
    }


def normalize_path(path: str) -> str:
    """Normalize a tree-relative path to forward slashes without a leading ``./``."""
    path = path.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path.lstrip("/")

"""
Shared pytest fixtures for cssblocks tests.

Most tests build against in-memory trees holding two source blocks:
``x`` and ``y``, where ``y`` composes styles from ``x``. Template ``a``
uses only ``x``; template ``b`` uses both.

Test Tier Markers:
  @pytest.mark.evergreen - Tests that always run, never skip (production tests)
  @pytest.mark.dev       - Development/WIP tests, toggle-able
  @pytest.mark.temporary - Tests with explicit discard flag
"""

from __future__ import annotations

import io
import json
from contextlib import redirect_stdout
from pathlib import Path
from typing import Any, Optional

import pytest

from cssblocks.analysis.analysis import Analyzer
from cssblocks.blocks.factory import BlockFactory
from cssblocks.blocks.importer import TreeImporter
from cssblocks.build.config import BuildConfig
from cssblocks.build.stage import CSSBlocksApplicationStage
from cssblocks.core.tree import MemoryTree


# =============================================================================
# Test Data Constants
# =============================================================================

APP_NAME = "my-app"

X_PATH = "app/styles/x.block.css"
Y_PATH = "app/styles/y.block.css"
A_ANALYSIS_PATH = "app/templates/a.block-analysis.json"
B_ANALYSIS_PATH = "app/templates/b.block-analysis.json"

X_BLOCK = """\
:scope { color: red; }
.label { font-weight: bold; }
"""

Y_BLOCK = """\
@block x from "./x.block.css";

:scope { composes: "x"; margin: 0; }
.item { composes: "x.label"; padding: 1px; }
"""


def analysis_json(
    template: str,
    blocks: dict[str, str],
    styles: list[str],
    elements: Optional[dict[str, Any]] = None,
    reserved: Optional[list[str]] = None,
) -> str:
    """Serialize an analysis record the way the template analyzer does."""
    record: dict[str, Any] = {
        "template": {
            "identifier": template,
            "type": "GlimmerTemplates.ResolvedFile",
            "relativePath": template.split("/", 1)[-1],
        },
        "blocks": blocks,
        "stylesFound": styles,
        "elements": elements or {},
    }
    if reserved is not None:
        record["reservedClassNames"] = reserved
    return json.dumps(record, indent=2)


A_ANALYSIS = analysis_json(
    "app/templates/a.hbs",
    {"x": X_PATH},
    ["x:scope", "x.label"],
    {
        "0": {"tagName": "div", "staticStyles": [0], "dynamicStyles": []},
        "1": {"tagName": "span", "staticStyles": [1], "dynamicStyles": []},
    },
)

B_ANALYSIS = analysis_json(
    "app/templates/b.hbs",
    {"y": "./" + Y_PATH, "x": X_PATH},
    ["y:scope", "y.item", "x.label"],
    {
        "0": {"tagName": "section", "staticStyles": [0], "dynamicStyles": []},
        "1": {"tagName": "li", "staticStyles": [1], "dynamicStyles": [2]},
    },
)


# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test tiers."""
    config.addinivalue_line(
        "markers",
        "evergreen: tests that always run, never skip (production tests)"
    )
    config.addinivalue_line(
        "markers",
        "dev: development/WIP tests, toggle-able for active development"
    )
    config.addinivalue_line(
        "markers",
        "temporary: tests with explicit discard flag"
    )


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def block_files() -> dict[str, str]:
    """Block sources plus the analyses of templates a and b."""
    return {
        X_PATH: X_BLOCK,
        Y_PATH: Y_BLOCK,
        A_ANALYSIS_PATH: A_ANALYSIS,
        B_ANALYSIS_PATH: B_ANALYSIS,
    }


@pytest.fixture
def input_tree(block_files: dict[str, str]) -> MemoryTree:
    return MemoryTree(block_files)


@pytest.fixture
def output_tree() -> MemoryTree:
    return MemoryTree()


@pytest.fixture
def factory(input_tree: MemoryTree) -> BlockFactory:
    return BlockFactory(TreeImporter(input_tree))


@pytest.fixture
def analyzer(factory: BlockFactory) -> Analyzer:
    """Analyzer with templates a and b loaded."""
    analyzer = Analyzer(factory)
    analyzer.load_json(A_ANALYSIS, A_ANALYSIS_PATH)
    analyzer.load_json(B_ANALYSIS, B_ANALYSIS_PATH)
    return analyzer


@pytest.fixture
def build_config() -> BuildConfig:
    return BuildConfig(app_name=APP_NAME)


@pytest.fixture
def stage(build_config: BuildConfig, input_tree: MemoryTree, output_tree: MemoryTree) -> CSSBlocksApplicationStage:
    return CSSBlocksApplicationStage(build_config, input_tree, output_tree)


# =============================================================================
# CLI Runner
# =============================================================================


class CLIResult:
    """Result of running a CLI command."""

    def __init__(self, returncode: int, stdout: str):
        self.returncode = returncode
        self.stdout = stdout

    def __repr__(self) -> str:
        return f"CLIResult(returncode={self.returncode}, stdout={self.stdout[:100]!r}...)"


class CLIRunner:
    """Runs CLI commands in-process with captured output."""

    def run(self, args: list[str]) -> CLIResult:
        from cssblocks.cli import main

        stdout_capture = io.StringIO()
        with redirect_stdout(stdout_capture):
            try:
                returncode = main(args)
            except SystemExit as e:
                returncode = e.code if isinstance(e.code, int) else 1

        return CLIResult(returncode=returncode or 0, stdout=stdout_capture.getvalue())


@pytest.fixture
def cli_runner() -> CLIRunner:
    return CLIRunner()


@pytest.fixture
def input_dir(tmp_path: Path, block_files: dict[str, str]) -> Path:
    """The x/y fixture written to disk."""
    root = tmp_path / "input"
    for rel, text in block_files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return root

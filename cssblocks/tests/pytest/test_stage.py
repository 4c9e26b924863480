"""
End-to-end tests for the application stage.
"""

from __future__ import annotations

import json

import pytest

from cssblocks.build.config import BuildConfig
from cssblocks.build.inspect import parse_runtime_module
from cssblocks.build.phases import PHASES
from cssblocks.build.stage import CSSBlocksApplicationStage
from cssblocks.core.errors import AnalysisDeserializationError
from cssblocks.core.tree import MemoryTree
from cssblocks.css.parser import parse_stylesheet, selector_classes

from .conftest import A_ANALYSIS_PATH, APP_NAME, X_PATH, analysis_json

CSS = f"{APP_NAME}/styles/css-blocks.css"
SOURCE_MAP = f"{APP_NAME}/styles/css-blocks.css.map"
OPT_LOG = f"{APP_NAME}/styles/css-blocks.optimization.log"
RUNTIME = f"{APP_NAME}/services/-css-blocks-data.js"


def _css_classes(css: str) -> set[str]:
    return {c for rule in parse_stylesheet(css) for c in selector_classes(rule.selector)}


# =============================================================================
# Build Cycles
# =============================================================================


@pytest.mark.evergreen
class TestBuildCycle:
    """A changed input produces all four artifacts."""

    def test_writes_all_artifacts(self, stage: CSSBlocksApplicationStage, output_tree: MemoryTree) -> None:
        result = stage.build()
        assert result.rebuilt is True
        assert set(output_tree.files) == {CSS, SOURCE_MAP, OPT_LOG, RUNTIME}
        assert f"{APP_NAME}/styles" in output_tree.dirs
        assert f"{APP_NAME}/services" in output_tree.dirs

    def test_runtime_data_written_last(self, stage: CSSBlocksApplicationStage, output_tree: MemoryTree) -> None:
        stage.build()
        assert output_tree.writes[-1] == RUNTIME

    def test_phase_timings_recorded(self, stage: CSSBlocksApplicationStage) -> None:
        result = stage.build()
        for name, _ in PHASES:
            assert name in result.phase_timings
        assert "write_artifacts" in result.phase_timings

    def test_counts(self, stage: CSSBlocksApplicationStage) -> None:
        result = stage.build()
        assert result.blocks == 2
        assert result.analyses == 2
        assert result.optimizations == len(stage.output_tree.files[OPT_LOG].splitlines())

    def test_two_template_scenario(self, stage: CSSBlocksApplicationStage, output_tree: MemoryTree) -> None:
        """Templates A {x} and B {x, y}: each block's CSS appears exactly once."""
        stage.build()
        css = output_tree.files[CSS]
        data = parse_runtime_module(output_tree.files[RUNTIME])

        rules = parse_stylesheet(css)
        assert len(rules) == 4
        assert [r.render_body() for r in rules] == [
            "color: red;",
            "font-weight: bold;",
            "margin: 0;",
            "padding: 1px;",
        ]
        assert data["styleClassNames"] == ["a", "b", "c", "d"]
        assert set(data["blockIds"]) == {"app/styles/x.block.css", "app/styles/y.block.css"}

    def test_mapping_is_complete(self, stage: CSSBlocksApplicationStage, output_tree: MemoryTree) -> None:
        """Every class named in the runtime data exists in the stylesheet."""
        stage.build()
        data = parse_runtime_module(output_tree.files[RUNTIME])
        assert set(data["styleClassNames"]) <= _css_classes(output_tree.files[CSS])

    def test_source_map(self, stage: CSSBlocksApplicationStage, output_tree: MemoryTree) -> None:
        stage.build()
        source_map = json.loads(output_tree.files[SOURCE_MAP])
        assert source_map["sources"] == ["app/styles/x.block.css", "app/styles/y.block.css"]

    def test_runtime_module_header(self, stage: CSSBlocksApplicationStage, output_tree: MemoryTree) -> None:
        stage.build()
        assert output_tree.files[RUNTIME].startswith("// CSS Blocks Generated Data. DO NOT EDIT.\n")


# =============================================================================
# Incremental Behavior
# =============================================================================


@pytest.mark.evergreen
class TestIncremental:
    """Unchanged inputs skip the cycle; changed inputs rebuild."""

    def test_unchanged_inputs_are_a_no_op(self, stage: CSSBlocksApplicationStage, output_tree: MemoryTree) -> None:
        stage.build()
        writes = list(output_tree.writes)
        result = stage.build()
        assert result.rebuilt is False
        assert output_tree.writes == writes

    def test_changed_analysis_rebuilds(
        self, stage: CSSBlocksApplicationStage, input_tree: MemoryTree, output_tree: MemoryTree
    ) -> None:
        stage.build()
        input_tree.write_text(A_ANALYSIS_PATH, analysis_json("app/templates/a.hbs", {"x": X_PATH}, ["x:scope"]))
        result = stage.build()
        assert result.rebuilt is True
        assert result.patch == [("change", A_ANALYSIS_PATH)]

    def test_regeneration_is_idempotent(self, block_files: dict[str, str]) -> None:
        outputs = []
        for _ in range(2):
            output = MemoryTree()
            CSSBlocksApplicationStage(BuildConfig(app_name=APP_NAME), MemoryTree(block_files), output).build()
            outputs.append(output.files)
        assert outputs[0] == outputs[1]

    def test_empty_input_does_nothing(self, output_tree: MemoryTree) -> None:
        stage = CSSBlocksApplicationStage(BuildConfig(app_name=APP_NAME), MemoryTree(), output_tree)
        assert stage.build().rebuilt is False
        assert output_tree.files == {}

    def test_dry_run_writes_nothing(self, input_tree: MemoryTree, output_tree: MemoryTree) -> None:
        config = BuildConfig(app_name=APP_NAME, dry_run=True)
        stage = CSSBlocksApplicationStage(config, input_tree, output_tree)
        result = stage.build()
        assert result.rebuilt is True
        assert RUNTIME in result.artifacts
        assert output_tree.writes == []
        assert len(stage.differ.previous) == 0
        assert stage.build().rebuilt is True


# =============================================================================
# Failures
# =============================================================================


@pytest.mark.evergreen
class TestFailures:
    """A failed cycle writes nothing and is retried next time."""

    def test_unresolvable_block(self, input_tree: MemoryTree, output_tree: MemoryTree) -> None:
        input_tree.write_text(
            "app/templates/c.block-analysis.json",
            analysis_json("app/templates/c.hbs", {"nav": "app/styles/nav.block.css"}, ["nav:scope"]),
        )
        stage = CSSBlocksApplicationStage(BuildConfig(app_name=APP_NAME), input_tree, output_tree)
        with pytest.raises(AnalysisDeserializationError):
            stage.build()
        assert output_tree.writes == []
        assert len(stage.differ.previous) == 0

    def test_failed_cycle_is_retried(self, input_tree: MemoryTree, output_tree: MemoryTree) -> None:
        bad_path = "app/templates/c.block-analysis.json"
        input_tree.write_text(bad_path, "{not json")
        stage = CSSBlocksApplicationStage(BuildConfig(app_name=APP_NAME), input_tree, output_tree)
        with pytest.raises(AnalysisDeserializationError):
            stage.build()

        del input_tree.files[bad_path]
        assert stage.build().rebuilt is True
        assert RUNTIME in output_tree.files


# =============================================================================
# Precompiled Blocks and Reserved Names
# =============================================================================


@pytest.mark.evergreen
class TestPrecompiledAndReserved:
    def test_precompiled_fragment_is_used(self, output_tree: MemoryTree) -> None:
        tree = MemoryTree({
            "app/styles/z.compiledblock.css": (
                '/*#blockDefinition {"name": "z", "styles": {":scope": "z-root"}}*/\n'
                ".z-root { display: block; }\n"
            ),
            "app/templates/z.block-analysis.json": analysis_json(
                "app/templates/z.hbs", {"z": "app/styles/z.compiledblock.css"}, ["z:scope"]
            ),
        })
        stage = CSSBlocksApplicationStage(BuildConfig(app_name=APP_NAME), tree, output_tree)
        result = stage.build()
        assert result.blocks == 1
        data = parse_runtime_module(output_tree.files[RUNTIME])
        assert data["blockIds"] == {"app/styles/z.block.css": 0}
        assert "display: block;" in output_tree.files[CSS]
        assert json.loads(output_tree.files[SOURCE_MAP])["sources"] == ["app/styles/z.compiledblock.css"]

    def test_template_reserved_names_are_respected(self, input_tree: MemoryTree, output_tree: MemoryTree) -> None:
        input_tree.write_text(
            A_ANALYSIS_PATH,
            analysis_json("app/templates/a.hbs", {"x": X_PATH}, ["x:scope"], reserved=["a", "x"]),
        )
        stage = CSSBlocksApplicationStage(BuildConfig(app_name=APP_NAME), input_tree, output_tree)
        stage.build()
        data = parse_runtime_module(output_tree.files[RUNTIME])
        assert data["reservedClassNames"] == ["a", "x"]
        assert "a" not in data["styleClassNames"]
        assert "x" not in data["styleClassNames"]
        assert set(data["styleClassNames"]) <= _css_classes(output_tree.files[CSS])

    def test_source_and_precompiled_blocks_with_one_name(self, output_tree: MemoryTree) -> None:
        """A source block never generates a class a precompiled block already owns."""
        tree = MemoryTree({
            "app/a/nav.block.css": ":scope { color: red; }\n",
            "app/b/nav.compiledblock.css": (
                '/*#blockDefinition {"name": "nav", "styles": {":scope": "nav"}}*/\n'
                ".nav { color: blue; }\n"
            ),
            "app/templates/a.block-analysis.json": analysis_json(
                "app/templates/a.hbs", {"nav": "app/a/nav.block.css"}, ["nav:scope"]
            ),
            "app/templates/b.block-analysis.json": analysis_json(
                "app/templates/b.hbs", {"nav": "app/b/nav.compiledblock.css"}, ["nav:scope"]
            ),
        })
        stage = CSSBlocksApplicationStage(BuildConfig(app_name=APP_NAME), tree, output_tree)
        stage.build()

        data = parse_runtime_module(output_tree.files[RUNTIME])
        assert list(data["blockIds"]) == ["app/a/nav.block.css", "app/b/nav.block.css"]
        source_class, precompiled_class = data["styleClassNames"]
        assert source_class != precompiled_class

        bodies = {
            c: rule.render_body()
            for rule in parse_stylesheet(output_tree.files[CSS])
            for c in selector_classes(rule.selector)
        }
        assert bodies[source_class] == "color: red;"
        assert bodies[precompiled_class] == "color: blue;"

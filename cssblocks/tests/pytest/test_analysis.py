"""
Tests for analysis loading and block aggregation.
"""

from __future__ import annotations

import json

import pytest

from cssblocks.analysis.aggregator import collect_blocks_used
from cssblocks.analysis.analysis import Analyzer
from cssblocks.analysis.record import AnalysisRecord, split_style_reference
from cssblocks.blocks.factory import BlockFactory
from cssblocks.build.config import BuildConfig, resolve_configuration
from cssblocks.core.errors import AnalysisDeserializationError

from .conftest import A_ANALYSIS, B_ANALYSIS, X_PATH, Y_PATH, analysis_json


# =============================================================================
# Records
# =============================================================================


@pytest.mark.evergreen
class TestAnalysisRecord:
    """The record model accepts the serialized format and rejects bad references."""

    def test_aliases(self) -> None:
        record = AnalysisRecord.model_validate(json.loads(B_ANALYSIS))
        assert record.template.identifier == "app/templates/b.hbs"
        assert record.styles_found == ["y:scope", "y.item", "x.label"]
        assert record.elements["1"].dynamic_styles == [2]
        assert record.reserved_class_names == []

    def test_normalized_blocks(self) -> None:
        record = AnalysisRecord.model_validate(json.loads(B_ANALYSIS)).normalized()
        assert record.blocks == {"y": Y_PATH, "x": X_PATH}

    def test_round_trip_keeps_aliases(self) -> None:
        record = AnalysisRecord.model_validate(json.loads(A_ANALYSIS))
        data = json.loads(record.to_json())
        assert "stylesFound" in data
        assert data["elements"]["0"]["staticStyles"] == [0]

    @pytest.mark.parametrize(
        "reference, expected",
        [
            ("nav:scope", ("nav", ":scope")),
            ("nav-bar.item", ("nav-bar", ".item")),
            ("nav.item[size=large]", ("nav", ".item[size=large]")),
        ],
    )
    def test_split_style_reference(self, reference: str, expected: tuple[str, str]) -> None:
        assert split_style_reference(reference) == expected


# =============================================================================
# Analyzer
# =============================================================================


@pytest.mark.evergreen
class TestAnalyzer:
    """Loading resolves blocks through the factory or fails with a clear error."""

    def test_loads_share_blocks(self, analyzer: Analyzer, factory: BlockFactory) -> None:
        a, b = analyzer.analyses
        assert a.blocks["x"] is b.blocks["x"] is factory.resolve(X_PATH)

    def test_transitive_dependencies(self, analyzer: Analyzer) -> None:
        a, b = analyzer.analyses
        assert list(a.transitive_block_dependencies()) == [X_PATH]
        assert list(b.transitive_block_dependencies()) == [X_PATH, Y_PATH]

    def test_for_optimizer_includes_implied_classes(self, analyzer: Analyzer) -> None:
        resolved = resolve_configuration(BuildConfig(app_name="my-app"))
        payload = analyzer.analyses[1].for_optimizer(resolved)
        assert payload.template_identifier == "app/templates/b.hbs"
        assert payload.class_names == ["y", "x", "y__item", "x__label"]
        assert payload.elements["1"].static_classes == ["y__item", "x__label"]
        assert payload.elements["1"].dynamic_classes == ["x__label"]

    def test_serialize(self, analyzer: Analyzer) -> None:
        record = analyzer.analyses[1].serialize()
        assert record.blocks == {"y": Y_PATH, "x": X_PATH}
        assert record.styles_found == ["y:scope", "y.item", "x.label"]

    def test_reserved_class_names(self, factory: BlockFactory) -> None:
        analyzer = Analyzer(factory)
        analyzer.load_json(analysis_json("t1", {"x": X_PATH}, ["x:scope"], reserved=["legacy"]))
        analyzer.load_json(analysis_json("t2", {"x": X_PATH}, [], reserved=["legacy", "other"]))
        assert analyzer.reserved_class_names() == {"legacy", "other"}

    def test_invalid_json(self, factory: BlockFactory) -> None:
        with pytest.raises(AnalysisDeserializationError, match="bad.json"):
            Analyzer(factory).load_json("{not json", "bad.json")

    def test_missing_template(self, factory: BlockFactory) -> None:
        with pytest.raises(AnalysisDeserializationError, match="invalid analysis record"):
            Analyzer(factory).load_json(json.dumps({"blocks": {}}))

    def test_style_from_unknown_block(self, factory: BlockFactory) -> None:
        text = analysis_json("t", {"x": X_PATH}, ["nav.item"])
        with pytest.raises(AnalysisDeserializationError, match="unknown block"):
            Analyzer(factory).load_json(text)

    def test_element_index_out_of_range(self, factory: BlockFactory) -> None:
        text = analysis_json("t", {"x": X_PATH}, ["x:scope"], {"0": {"staticStyles": [3]}})
        with pytest.raises(AnalysisDeserializationError, match="missing style"):
            Analyzer(factory).load_json(text)

    def test_unresolvable_block(self, factory: BlockFactory) -> None:
        text = analysis_json("t", {"nav": "app/styles/nav.block.css"}, ["nav:scope"])
        with pytest.raises(AnalysisDeserializationError, match="nav.block.css"):
            Analyzer(factory).load_json(text)

    def test_unknown_style(self, factory: BlockFactory) -> None:
        text = analysis_json("t", {"x": X_PATH}, ["x.nope"])
        with pytest.raises(AnalysisDeserializationError, match="has no style"):
            Analyzer(factory).load_json(text)

    def test_failed_load_is_not_recorded(self, factory: BlockFactory) -> None:
        analyzer = Analyzer(factory)
        with pytest.raises(AnalysisDeserializationError):
            analyzer.load_json(analysis_json("t", {"x": X_PATH}, ["x.nope"]))
        assert analyzer.analyses == []


# =============================================================================
# Aggregation
# =============================================================================


@pytest.mark.evergreen
class TestCollectBlocksUsed:
    """The used block set is the deduplicated union of transitive dependencies."""

    def test_union_is_deduplicated(self, analyzer: Analyzer) -> None:
        used = collect_blocks_used(analyzer.analyses)
        assert list(used) == [X_PATH, Y_PATH]

    def test_order_of_analyses_does_not_change_membership(self, analyzer: Analyzer) -> None:
        forward = collect_blocks_used(analyzer.analyses)
        backward = collect_blocks_used(reversed(analyzer.analyses))
        assert set(forward) == set(backward)
        assert all(forward[k] is backward[k] for k in forward)

    def test_dependencies_precede_dependents(self, analyzer: Analyzer) -> None:
        used = list(collect_blocks_used([analyzer.analyses[1]]))
        assert used.index(X_PATH) < used.index(Y_PATH)

    def test_no_analyses(self) -> None:
        assert collect_blocks_used([]) == {}

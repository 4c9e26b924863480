"""
cssblocks.analysis - Template analysis records, loading and aggregation.
"""

from cssblocks.analysis.aggregator import collect_blocks_used
from cssblocks.analysis.analysis import Analysis, Analyzer
from cssblocks.analysis.record import AnalysisRecord, ElementRecord, TemplateInfo, split_style_reference

__all__ = [
    "collect_blocks_used",
    "Analysis",
    "Analyzer",
    "AnalysisRecord",
    "ElementRecord",
    "TemplateInfo",
    "split_style_reference",
]

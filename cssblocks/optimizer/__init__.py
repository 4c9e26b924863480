"""
cssblocks.optimizer - Cross-source CSS optimization.
"""

from cssblocks.optimizer.optimizer import (
    Action,
    Actions,
    ElementUsage,
    OptimizationResult,
    OptimizedOutput,
    Optimizer,
    OptimizerAnalysis,
    OptimizerSource,
    StyleMapping,
    generated_ident,
)

__all__ = [
    "Action",
    "Actions",
    "ElementUsage",
    "OptimizationResult",
    "OptimizedOutput",
    "Optimizer",
    "OptimizerAnalysis",
    "OptimizerSource",
    "StyleMapping",
    "generated_ident",
]

"""
Runtime data generation.

Produces the lookup table the application uses at runtime to turn logical
block styles into the class names present in the optimized stylesheet.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Union

from cssblocks.analysis.analysis import Analyzer
from cssblocks.blocks.block import Block
from cssblocks.build.config import ResolvedConfiguration
from cssblocks.core.errors import OptimizationError
from cssblocks.optimizer.optimizer import StyleMapping

logger = logging.getLogger(__name__)

RUNTIME_DATA_HEADER = "// CSS Blocks Generated Data. DO NOT EDIT."


class RuntimeDataGenerator:
    """Builds the runtime payload for one build cycle.

    The payload only depends on the blocks, the style mapping and the
    analyses; blocks are ordered by identifier so the output is identical
    however the inputs were enumerated.
    """

    def __init__(
        self,
        blocks: Union[dict[str, Block], Iterable[Block]],
        style_mapping: StyleMapping,
        analyzer: Analyzer,
        config: ResolvedConfiguration,
        reserved_class_names: Iterable[str] = (),
    ):
        block_list = list(blocks.values()) if isinstance(blocks, dict) else list(blocks)
        self.blocks = sorted(block_list, key=lambda b: b.identifier)
        self.style_mapping = style_mapping
        self.analyzer = analyzer
        self.config = config
        self.reserved_class_names = frozenset(reserved_class_names) | config.reserved_class_names
        self.taken_class_names = self.reserved_class_names | config.precompiled_class_names

    def generate(self) -> dict[str, Any]:
        """Return the JSON-serializable runtime payload.

        Raises:
            OptimizationError: If the style mapping hands a reserved class
                name to a style that did not originally have that name.
        """
        block_ids = {block.identifier: index for index, block in enumerate(self.blocks)}
        style_ids: dict[tuple[str, str], int] = {}
        class_names: list[str] = []
        blocks: list[dict[str, Any]] = []

        for block in self.blocks:
            styles: dict[str, int] = {}
            for name in block.style_names():
                original = block.class_name(name, self.taken_class_names)
                final = self.style_mapping.output_class(original)
                if final != original and final in self.reserved_class_names:
                    raise OptimizationError(
                        f"Class {original} of {block.identifier} was renamed to reserved class name {final}"
                    )
                styles[name] = len(class_names)
                style_ids[(block.identifier, name)] = len(class_names)
                class_names.append(final)
            blocks.append(
                {
                    "name": block.name,
                    "identifier": block.identifier,
                    "styles": styles,
                    "inherits": block_ids.get(block.base.identifier) if block.base is not None else None,
                }
            )

        implied: dict[str, list[int]] = {}
        for block in self.blocks:
            for name in block.style_names():
                targets = [
                    style_ids[(target.identifier, target_name)]
                    for target, target_name in block.implied_styles(name)
                    if (target.identifier, target_name) in style_ids
                ]
                if targets:
                    implied[str(style_ids[(block.identifier, name)])] = targets

        templates: dict[str, list[int]] = {}
        for analysis in sorted(self.analyzer.analyses, key=lambda a: a.template_identifier):
            indexes = templates.setdefault(analysis.template_identifier, [])
            for block, name in analysis.styles_found:
                index = style_ids.get((block.identifier, name))
                if index is not None and index not in indexes:
                    indexes.append(index)
            indexes.sort()

        data = {
            "blockIds": block_ids,
            "blocks": blocks,
            "styleClassNames": class_names,
            "impliedStyles": implied,
            "templates": templates,
            "reservedClassNames": sorted(self.reserved_class_names),
        }
        logger.debug("Runtime data covers %d blocks and %d styles", len(blocks), len(class_names))
        return data


def render_runtime_module(data: dict[str, Any]) -> str:
    """Render the generated JavaScript module that exports ``data``."""
    return f"{RUNTIME_DATA_HEADER}\nexport const data = {json.dumps(data, indent=2)};\n"

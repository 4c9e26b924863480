"""
Template analyses.

An ``Analysis`` is the deserialized form of one ``*.block-analysis.json``
record: the blocks a template references and the styles it applies,
resolved against the block factory of the current build cycle.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from cssblocks.analysis.record import AnalysisRecord, ElementRecord, TemplateInfo, split_style_reference
from cssblocks.blocks.block import Block
from cssblocks.blocks.factory import BlockFactory
from cssblocks.build.config import ResolvedConfiguration
from cssblocks.core.errors import AnalysisDeserializationError, BlockResolutionError
from cssblocks.optimizer.optimizer import ElementUsage, OptimizerAnalysis

logger = logging.getLogger(__name__)

# A resolved style: the block that defines it and its name in that block
StyleRef = tuple[Block, str]


class Analysis:
    """Resolved style usage of a single template."""

    def __init__(
        self,
        template: TemplateInfo,
        blocks: dict[str, Block],
        styles_found: list[StyleRef],
        elements: Optional[dict[str, ElementRecord]] = None,
        reserved_class_names: Iterable[str] = (),
        style_references: Optional[list[str]] = None,
    ):
        self.template = template
        self.blocks = blocks
        self.styles_found = styles_found
        self.style_references = style_references or []  # as written, e.g. "nav.item"
        self.elements = elements or {}
        self.reserved_class_names = list(reserved_class_names)

    def __repr__(self) -> str:
        return f"Analysis({self.template.identifier!r})"

    @property
    def template_identifier(self) -> str:
        return self.template.identifier

    def transitive_block_dependencies(self) -> dict[str, Block]:
        """Every block this template depends on, directly or not.

        Dependencies come before the blocks that depend on them.
        """
        found: dict[str, Block] = {}
        for block in self.blocks.values():
            for identifier, dep in block.transitive_block_dependencies().items():
                found.setdefault(identifier, dep)
            found.setdefault(block.identifier, block)
        return found

    def implied_closure(self, style: StyleRef) -> list[StyleRef]:
        """``style`` followed by everything it implies, transitively."""
        result: list[StyleRef] = []
        seen: set[tuple[str, str]] = set()
        pending = [style]
        while pending:
            block, name = pending.pop(0)
            key = (block.identifier, name)
            if key in seen:
                continue
            seen.add(key)
            result.append((block, name))
            pending.extend(block.implied_styles(name))
        return result

    def for_optimizer(self, config: ResolvedConfiguration) -> OptimizerAnalysis:
        """Describe this template's class usage in terms of generated class names."""
        taken = config.taken_class_names

        def classes_for(indexes: Iterable[int]) -> list[str]:
            names: list[str] = []
            for index in indexes:
                for block, name in self.implied_closure(self.styles_found[index]):
                    class_name = block.class_name(name, taken)
                    if class_name not in names:
                        names.append(class_name)
            return names

        elements = {
            element_id: ElementUsage(
                tag_name=element.tag_name,
                static_classes=classes_for(element.static_styles),
                dynamic_classes=classes_for(element.dynamic_styles),
            )
            for element_id, element in self.elements.items()
        }
        return OptimizerAnalysis(
            template_identifier=self.template.identifier,
            class_names=classes_for(range(len(self.styles_found))),
            elements=elements,
        )

    def serialize(self) -> AnalysisRecord:
        """Rebuild the (normalized) record this analysis was loaded from."""
        return AnalysisRecord(
            template=self.template,
            blocks={local: block.identifier for local, block in self.blocks.items()},
            styles_found=list(self.style_references),
            elements=self.elements,
            reserved_class_names=self.reserved_class_names,
        )


class Analyzer:
    """Loads analysis records against one build cycle's block factory."""

    # What the analyses can vouch for when the optimizer rewrites output
    optimization_options: dict[str, Any] = {
        "rewriteIdents": {"id": False, "class": True},
        "analyzedAttributes": ["class"],
        "analyzedTagnames": False,
    }

    def __init__(self, factory: BlockFactory):
        self.factory = factory
        self.analyses: list[Analysis] = []

    def load_json(self, text: str, path: str = "<analysis>") -> Analysis:
        """Parse and load one serialized analysis.

        Raises:
            AnalysisDeserializationError: If the text is not a valid record
                or a block it references cannot be resolved.
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise AnalysisDeserializationError(f"{path}: invalid JSON: {e}") from e
        try:
            record = AnalysisRecord.model_validate(data)
        except ValidationError as e:
            raise AnalysisDeserializationError(f"{path}: invalid analysis record: {e}") from e
        return self.load(record, path)

    def load(self, record: AnalysisRecord, path: str = "<analysis>") -> Analysis:
        """Resolve a record's blocks and styles into an Analysis."""
        try:
            record = record.normalized()
        except ValueError as e:
            raise AnalysisDeserializationError(f"{path}: {e}") from e

        try:
            blocks = {local: self.factory.resolve(ident) for local, ident in record.blocks.items()}
        except BlockResolutionError as e:
            raise AnalysisDeserializationError(f"{path}: {e}") from e

        styles_found: list[StyleRef] = []
        for reference in record.styles_found:
            local, style_name = split_style_reference(reference)
            found = blocks[local].lookup(style_name)
            if found is None:
                raise AnalysisDeserializationError(
                    f"{path}: block '{local}' ({blocks[local].identifier}) has no style '{style_name}'"
                )
            styles_found.append((found[0], style_name))

        analysis = Analysis(
            template=record.template,
            blocks=blocks,
            styles_found=styles_found,
            elements=record.elements,
            reserved_class_names=record.reserved_class_names,
            style_references=list(record.styles_found),
        )
        self.analyses.append(analysis)
        logger.debug("Loaded analysis for %s (%d styles)", record.template.identifier, len(styles_found))
        return analysis

    def reserved_class_names(self) -> set[str]:
        """Class names any loaded template uses outside of blocks."""
        names: set[str] = set()
        for analysis in self.analyses:
            names.update(analysis.reserved_class_names)
        return names

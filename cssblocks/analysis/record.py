"""Pydantic models for serialized template analyses (``*.block-analysis.json``)."""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from cssblocks.blocks.importer import path_to_ident

# "nav:scope", "nav.item", "nav.item[active]", "nav:scope[size=large]"
STYLE_REFERENCE = re.compile(
    r"^(?P<local>[\w-]+)(?P<style>(?::scope|\.[_a-zA-Z][\w-]*)(?:\[[\w-]+(?:=[\w-]+)?\])*)$"
)


def split_style_reference(reference: str) -> tuple[str, str]:
    """``"nav.item"`` -> ``("nav", ".item")``."""
    match = STYLE_REFERENCE.match(reference)
    if not match:
        raise ValueError(f"Invalid style reference: {reference!r}")
    return match.group("local"), match.group("style")


class _RecordModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TemplateInfo(_RecordModel):
    """The template an analysis was produced for."""

    identifier: str = Field(description="Unique template identifier")
    type: str = Field("GlimmerTemplates.ResolvedFile", description="Template type tag")
    relative_path: str = Field("", alias="relativePath", description="Template path relative to the app")


class ElementRecord(_RecordModel):
    """Styles applied to one element; indexes point into ``stylesFound``."""

    tag_name: Optional[str] = Field(None, alias="tagName")
    static_styles: List[int] = Field(default_factory=list, alias="staticStyles")
    dynamic_styles: List[int] = Field(default_factory=list, alias="dynamicStyles")


class AnalysisRecord(_RecordModel):
    """Serialized usage data for a single template."""

    template: TemplateInfo
    blocks: Dict[str, str] = Field(description="Local block name -> block source identifier")
    styles_found: List[str] = Field(default_factory=list, alias="stylesFound")
    elements: Dict[str, ElementRecord] = Field(default_factory=dict)
    reserved_class_names: List[str] = Field(
        default_factory=list,
        alias="reservedClassNames",
        description="Literal class names the template uses outside of blocks",
    )

    @field_validator("styles_found")
    @classmethod
    def _check_style_references(cls, value: List[str]) -> List[str]:
        for reference in value:
            split_style_reference(reference)
        return value

    @model_validator(mode="after")
    def _check_cross_references(self) -> "AnalysisRecord":
        for reference in self.styles_found:
            local, _ = split_style_reference(reference)
            if local not in self.blocks:
                raise ValueError(f"Style {reference!r} refers to unknown block {local!r}")
        count = len(self.styles_found)
        for element_id, element in self.elements.items():
            for index in element.static_styles + element.dynamic_styles:
                if not 0 <= index < count:
                    raise ValueError(f"Element {element_id!r} references missing style #{index}")
        return self

    def normalized(self) -> "AnalysisRecord":
        """Copy of this record with block identifiers in canonical form."""
        blocks = {local: path_to_ident(path) for local, path in self.blocks.items()}
        return self.model_copy(update={"blocks": blocks})

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

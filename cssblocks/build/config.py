"""
Build configuration for the css-blocks application stage.

Dataclasses for the stage and optimizer configuration, plus loading of the
optional ``css-blocks.yaml`` project file.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Iterable, Optional

import yaml

from cssblocks.core.utils import output_paths

__all__ = [
    "CONFIG_FILENAME",
    "RewriteIdents",
    "OptimizerOptions",
    "BuildConfig",
    "ResolvedConfiguration",
    "resolve_configuration",
    "load_config",
    "find_config",
]

CONFIG_FILENAME = "css-blocks.yaml"


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class RewriteIdents:
    """Which kinds of identifiers the optimizer may rename."""

    id: bool = False
    class_: bool = True
    tag: bool = False
    omit_class_names: list[str] = field(default_factory=list)  # never renamed


@dataclass
class OptimizerOptions:
    """Rewrite policy handed to the optimizer.

    Every toggle is explicit. ``remove_unused_styles`` and
    ``merge_declarations`` stay off until classes used outside of analyzed
    templates can be discovered.
    """

    enabled: bool = True
    rewrite_idents: RewriteIdents = field(default_factory=RewriteIdents)
    remove_unused_styles: bool = False
    merge_declarations: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "rewriteIdents": {
                "id": self.rewrite_idents.id,
                "class": self.rewrite_idents.class_,
                "tag": self.rewrite_idents.tag,
                "omitIdents": {"class": list(self.rewrite_idents.omit_class_names)},
            },
            "removeUnusedStyles": self.remove_unused_styles,
            "mergeDeclarations": self.merge_declarations,
        }


@dataclass
class BuildConfig:
    """Configuration for one application stage."""

    app_name: str
    input_dir: Optional[Path] = None
    output_dir: Optional[Path] = None
    optimizer: OptimizerOptions = field(default_factory=OptimizerOptions)
    reserved_class_names: list[str] = field(default_factory=list)  # classes owned by non-block CSS
    verbose: bool = False
    dry_run: bool = False  # Render artifacts without writing them

    @property
    def outputs(self) -> dict[str, str]:
        """Output artifact paths for this application."""
        return output_paths(self.app_name)


# =============================================================================
# Config File Loading
# =============================================================================


def find_config(start_dir: Path) -> Optional[Path]:
    """Find css-blocks.yaml in ``start_dir`` or one of its parents."""
    current = start_dir.resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.exists():
            return candidate
        if current == current.parent:
            return None
        current = current.parent


def _optimizer_from_dict(data: dict[str, Any]) -> OptimizerOptions:
    rewrite = data.get("rewriteIdents", {}) or {}
    if not isinstance(rewrite, dict):
        raise ValueError("optimization.rewriteIdents must be a mapping")
    return OptimizerOptions(
        enabled=bool(data.get("enabled", True)),
        rewrite_idents=RewriteIdents(
            id=bool(rewrite.get("id", False)),
            class_=bool(rewrite.get("class", True)),
            tag=bool(rewrite.get("tag", False)),
            omit_class_names=list(data.get("omitClassNames", []) or []),
        ),
        remove_unused_styles=bool(data.get("removeUnusedStyles", False)),
        merge_declarations=bool(data.get("mergeDeclarations", False)),
    )


def load_config(path: Path, **overrides: Any) -> BuildConfig:
    """Load a BuildConfig from a YAML file.

    Keyword ``overrides`` that are not None replace values from the file,
    which is how CLI flags take precedence.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping at the top level")

    optimization = data.get("optimization", {}) or {}
    if not isinstance(optimization, dict):
        raise ValueError(f"{path}: 'optimization' must be a mapping")

    values: dict[str, Any] = {
        "app_name": data.get("appName"),
        "optimizer": _optimizer_from_dict(optimization),
        "reserved_class_names": list(data.get("reservedClassNames", []) or []),
    }
    for key, value in overrides.items():
        if value is not None:
            values[key] = value

    if not values.get("app_name"):
        raise ValueError(f"No appName configured in {path}")

    return BuildConfig(**values)


# =============================================================================
# Resolved Configuration
# =============================================================================


@dataclass(frozen=True)
class ResolvedConfiguration:
    """Configuration for one build cycle, after analyses are loaded.

    ``reserved_class_names`` merges the configured names with the class
    names templates use outside of blocks. ``precompiled_class_names`` are
    the fixed names of precompiled blocks: they may still be rewritten, but
    no source block may generate them. Compiled class names, optimizer
    payloads and runtime data are all derived against ``taken_class_names``.
    """

    app_name: str
    optimizer: OptimizerOptions
    reserved_class_names: frozenset[str]
    precompiled_class_names: frozenset[str] = frozenset()

    @property
    def taken_class_names(self) -> frozenset[str]:
        """Names a source block must not generate."""
        return self.reserved_class_names | self.precompiled_class_names

    def optimizer_options(self) -> OptimizerOptions:
        """Optimizer options whose omitted class list includes every reserved name."""
        omitted = list(self.optimizer.rewrite_idents.omit_class_names)
        omitted.extend(sorted(n for n in self.reserved_class_names if n not in omitted))
        return replace(
            self.optimizer,
            rewrite_idents=replace(self.optimizer.rewrite_idents, omit_class_names=omitted),
        )


def resolve_configuration(
    config: BuildConfig,
    template_reserved: Iterable[str] = (),
    precompiled_class_names: Iterable[str] = (),
) -> ResolvedConfiguration:
    reserved = set(config.reserved_class_names)
    reserved.update(template_reserved)
    return ResolvedConfiguration(
        app_name=config.app_name,
        optimizer=config.optimizer,
        reserved_class_names=frozenset(reserved),
        precompiled_class_names=frozenset(precompiled_class_names),
    )

"""
Tests for build configuration loading and per-cycle resolution.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from cssblocks.build.config import (
    CONFIG_FILENAME,
    BuildConfig,
    OptimizerOptions,
    RewriteIdents,
    find_config,
    load_config,
    resolve_configuration,
)

FULL_CONFIG = """\
appName: shop
reservedClassNames:
  - legacy-button
optimization:
  enabled: true
  rewriteIdents:
    id: false
    class: true
  omitClassNames:
    - keep-me
  removeUnusedStyles: true
  mergeDeclarations: true
"""


@pytest.mark.evergreen
class TestLoadConfig:
    def test_full_file(self, tmp_path: Path) -> None:
        path = tmp_path / CONFIG_FILENAME
        path.write_text(FULL_CONFIG, encoding="utf-8")

        config = load_config(path)

        assert config.app_name == "shop"
        assert config.reserved_class_names == ["legacy-button"]
        assert config.optimizer.remove_unused_styles is True
        assert config.optimizer.merge_declarations is True
        assert config.optimizer.rewrite_idents.omit_class_names == ["keep-me"]
        assert config.outputs["css"] == "shop/styles/css-blocks.css"

    def test_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / CONFIG_FILENAME
        path.write_text("appName: shop\n", encoding="utf-8")

        config = load_config(path)

        assert config.optimizer == OptimizerOptions()
        assert config.optimizer.rewrite_idents.class_ is True
        assert config.optimizer.remove_unused_styles is False
        assert config.dry_run is False

    def test_overrides_take_precedence(self, tmp_path: Path) -> None:
        path = tmp_path / CONFIG_FILENAME
        path.write_text(FULL_CONFIG, encoding="utf-8")

        config = load_config(path, app_name="admin", dry_run=True, verbose=None)

        assert config.app_name == "admin"
        assert config.dry_run is True
        assert config.verbose is False

    def test_missing_app_name(self, tmp_path: Path) -> None:
        path = tmp_path / CONFIG_FILENAME
        path.write_text("optimization: {}\n", encoding="utf-8")
        with pytest.raises(ValueError, match="No appName"):
            load_config(path)

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / CONFIG_FILENAME
        path.write_text("- shop\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            load_config(path)

    def test_find_config_searches_parents(self, tmp_path: Path) -> None:
        path = tmp_path / CONFIG_FILENAME
        path.write_text("appName: shop\n", encoding="utf-8")
        nested = tmp_path / "tmp" / "blocks"
        nested.mkdir(parents=True)
        assert find_config(nested) == path.resolve()


@pytest.mark.evergreen
class TestResolvedConfiguration:
    def test_reserved_names_merge(self) -> None:
        config = BuildConfig(app_name="shop", reserved_class_names=["legacy"])
        resolved = resolve_configuration(config, ["from-template", "legacy"])
        assert resolved.reserved_class_names == frozenset({"legacy", "from-template"})

    def test_reserved_names_are_never_rewritten(self) -> None:
        config = BuildConfig(
            app_name="shop",
            optimizer=OptimizerOptions(rewrite_idents=RewriteIdents(omit_class_names=["keep-me"])),
        )
        options = resolve_configuration(config, ["b", "a"]).optimizer_options()

        assert options.rewrite_idents.omit_class_names == ["keep-me", "a", "b"]
        # The configured options are left alone
        assert config.optimizer.rewrite_idents.omit_class_names == ["keep-me"]

    def test_options_to_dict(self) -> None:
        data = OptimizerOptions().to_dict()
        assert data["rewriteIdents"] == {"id": False, "class": True, "tag": False, "omitIdents": {"class": []}}
        assert data["removeUnusedStyles"] is False
        assert data["mergeDeclarations"] is False

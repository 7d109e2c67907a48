"""Tests for the configuration layer."""

import pytest

from xml_scaffold.shared.config import (
    DEFAULT_MAX_DEPTH,
    MAX_SAFE_DEPTH,
    ConfigError,
    ConfigValidationError,
    ParserConfig,
    RenderConfig,
    ScannerConfig,
    TreeConfig,
)


class TestComponentConfigs:
    """Test per-layer configuration validation."""

    def test_defaults(self):
        assert ScannerConfig().parse_attributes is True
        assert TreeConfig().max_depth == DEFAULT_MAX_DEPTH == 500
        assert RenderConfig().element_name == "div"

    def test_tree_bounds(self):
        TreeConfig(max_depth=0)
        TreeConfig(max_depth=MAX_SAFE_DEPTH)
        with pytest.raises(ValueError):
            TreeConfig(max_depth=MAX_SAFE_DEPTH + 1)

    def test_render_validation(self):
        with pytest.raises(ValueError):
            RenderConfig(element_name="")
        with pytest.raises(ValueError):
            RenderConfig(tag_attribute="")


class TestParserConfig:
    """Test the combined immutable configuration."""

    def test_presets(self):
        assert ParserConfig.default().name == "default"

        minimal = ParserConfig.minimal()
        assert minimal.scanner.parse_attributes is False
        assert minimal.scanner.capture_inner is False
        assert minimal.tree.collect_diagnostics is False

        assert ParserConfig.shallow().tree.max_depth == 64
        assert ParserConfig.shallow(max_depth=8).tree.max_depth == 8

    def test_frozen(self):
        config = ParserConfig()
        with pytest.raises(Exception):
            config.name = "changed"

    def test_override_nested(self):
        base = ParserConfig.default()
        derived = base.override(tree__max_depth=10, render__element_name="span", name="x")
        assert derived.tree.max_depth == 10
        assert derived.render.element_name == "span"
        assert derived.name == "x"
        assert base.tree.max_depth == DEFAULT_MAX_DEPTH

    def test_override_errors(self):
        config = ParserConfig()
        with pytest.raises(ConfigValidationError) as excinfo:
            config.override(lexer__speed=1)
        assert "scanner" in excinfo.value.suggestions

        with pytest.raises(ConfigValidationError):
            config.override(tree__max_depth=-5)
        with pytest.raises(ConfigValidationError):
            config.override(tree__no_such_field=1)

    def test_validation_error_is_config_error(self):
        assert issubclass(ConfigValidationError, ConfigError)

    def test_json_roundtrip(self):
        config = ParserConfig.shallow(max_depth=12).override(scanner__capture_inner=False)
        restored = ParserConfig.from_json(config.to_json())
        assert restored == config

    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(ConfigValidationError):
            ParserConfig.from_dict({"tokenizer": {}})

    def test_from_json_errors(self):
        with pytest.raises(ConfigValidationError):
            ParserConfig.from_json("{not json")
        with pytest.raises(ConfigValidationError):
            ParserConfig.from_json("[1, 2]")
        with pytest.raises(ConfigValidationError):
            ParserConfig.from_json('{"tree": {"max_depth": 5000}}')

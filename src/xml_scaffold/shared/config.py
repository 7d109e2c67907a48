"""Configuration classes for xml-scaffold.

Each processing layer has its own small dataclass validated on construction;
:class:`ParserConfig` bundles them into one immutable object that can be
overridden, serialized and restored.
"""

import json
from dataclasses import dataclass, field, fields, is_dataclass, replace
from typing import Any, Dict, List, Optional

# Default nesting ceiling for open tags
DEFAULT_MAX_DEPTH = 500

# The builder recurses once per open frame; stay well below the interpreter limit
MAX_SAFE_DEPTH = 800

_COMPONENTS = ("scanner", "tree", "render")


@dataclass
class ScannerConfig:
    """Feature switches for the position-based scanner."""

    parse_attributes: bool = True
    capture_inner: bool = True


@dataclass
class TreeConfig:
    """Configuration for recursive tree construction."""

    max_depth: int = DEFAULT_MAX_DEPTH
    collect_diagnostics: bool = True

    def __post_init__(self) -> None:
        """Validate tree configuration."""
        if self.max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        if self.max_depth > MAX_SAFE_DEPTH:
            raise ValueError(f"max_depth must be <= {MAX_SAFE_DEPTH}")


@dataclass
class RenderConfig:
    """Configuration for the node-to-HTML renderer."""

    element_name: str = "div"
    tag_attribute: str = "data-tag"
    attribute_prefix: str = "data-attrs-"
    escape_attribute_values: bool = False

    def __post_init__(self) -> None:
        """Validate render configuration."""
        if not self.element_name or any(ch.isspace() for ch in self.element_name):
            raise ValueError("element_name must be a non-empty name without whitespace")
        if not self.tag_attribute:
            raise ValueError("tag_attribute cannot be empty")


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigValidationError(ConfigError):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, field_name: Optional[str] = None,
                 suggestions: Optional[List[str]] = None):
        super().__init__(message)
        self.field_name = field_name
        self.suggestions = suggestions or []


@dataclass(frozen=True)
class ParserConfig:
    """Immutable configuration for every parser layer.

    Thread-safe to share between parser instances because it is frozen; use
    :meth:`override` to derive variants.
    """

    scanner: ScannerConfig = field(default_factory=ScannerConfig)
    tree: TreeConfig = field(default_factory=TreeConfig)
    render: RenderConfig = field(default_factory=RenderConfig)

    correlation_id: Optional[str] = None
    name: Optional[str] = None

    def __post_init__(self) -> None:
        """Re-validate components that may have been mutated after creation."""
        try:
            self.tree.__post_init__()
            self.render.__post_init__()
        except ValueError as e:
            raise ConfigValidationError(str(e)) from e

    def override(self, **kwargs: Any) -> "ParserConfig":
        """Create a new configuration with specific overrides.

        Args:
            **kwargs: Field overrides; ``component__field`` targets a nested field

        Returns:
            New ParserConfig instance with overrides applied

        Example:
            >>> config = ParserConfig().override(tree__max_depth=50)
            >>> config.tree.max_depth
            50
        """
        nested: Dict[str, Dict[str, Any]] = {}
        top_level: Dict[str, Any] = {}
        for key, value in kwargs.items():
            if "__" in key:
                component, field_name = key.split("__", 1)
                if component not in _COMPONENTS:
                    raise ConfigValidationError(
                        f"Unknown configuration component: {component}",
                        field_name=key,
                        suggestions=list(_COMPONENTS),
                    )
                nested.setdefault(component, {})[field_name] = value
            else:
                top_level[key] = value

        new_fields: Dict[str, Any] = {}
        try:
            for component, values in nested.items():
                new_fields[component] = replace(getattr(self, component), **values)
            new_fields.update(top_level)
            return replace(self, **new_fields)
        except (TypeError, ValueError) as e:
            raise ConfigValidationError(str(e)) from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a plain dictionary."""
        result: Dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if is_dataclass(value):
                result[item.name] = {
                    sub.name: getattr(value, sub.name) for sub in fields(value)
                }
            else:
                result[item.name] = value
        return result

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParserConfig":
        """Create configuration from a dictionary produced by :meth:`to_dict`.

        Unknown keys are rejected so that typos do not silently fall back to
        defaults.
        """
        component_types = {
            "scanner": ScannerConfig,
            "tree": TreeConfig,
            "render": RenderConfig,
        }
        known = {item.name for item in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigValidationError(
                f"Unknown configuration keys: {sorted(unknown)}",
                suggestions=sorted(known),
            )

        kwargs: Dict[str, Any] = {}
        try:
            for key, value in data.items():
                if key in component_types and isinstance(value, dict):
                    kwargs[key] = component_types[key](**value)
                else:
                    kwargs[key] = value
            return cls(**kwargs)
        except (TypeError, ValueError) as e:
            raise ConfigValidationError(str(e)) from e

    @classmethod
    def from_json(cls, json_str: str) -> "ParserConfig":
        """Create configuration from a JSON string."""
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ConfigValidationError(f"Invalid configuration JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigValidationError("Configuration JSON must be an object")
        return cls.from_dict(data)

    # Preset factory methods
    @classmethod
    def default(cls) -> "ParserConfig":
        """Full feature set: attributes, inner text, 500-level depth ceiling."""
        return cls(name="default")

    @classmethod
    def minimal(cls) -> "ParserConfig":
        """Structure only: skip attribute parsing and inner-text capture."""
        return cls(
            scanner=ScannerConfig(parse_attributes=False, capture_inner=False),
            tree=TreeConfig(collect_diagnostics=False),
            name="minimal",
        )

    @classmethod
    def shallow(cls, max_depth: int = 64) -> "ParserConfig":
        """Low nesting ceiling for untrusted input."""
        return cls(tree=TreeConfig(max_depth=max_depth), name="shallow")

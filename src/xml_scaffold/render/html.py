"""HTML rendering of scaffold trees.

Each tag node becomes a generic element that records the original tag name
and attributes as data attributes, so the structure survives in a browser
without the browser interpreting the original vocabulary. Text and comments
pass through verbatim; processing instructions, doctypes and orphan close
tags produce no output.
"""

import html
from typing import Iterable, List, Optional, Union

from xml_scaffold.shared import RenderConfig, get_logger
from xml_scaffold.tree import NodeRole, XMLNode

_PASSTHROUGH_ROLES = (NodeRole.TEXT_LEAF, NodeRole.COMMENT)
_DROPPED_ROLES = (
    NodeRole.PROCESSING_INSTRUCTION,
    NodeRole.DOCTYPE,
    NodeRole.CLOSE_TAG,
)


class HTMLRenderer:
    """Maps scaffold nodes one-to-one onto HTML elements."""

    def __init__(
        self,
        config: Optional[RenderConfig] = None,
        correlation_id: Optional[str] = None
    ) -> None:
        self.config = config or RenderConfig()
        self.logger = get_logger(__name__, correlation_id, "html_renderer")

    def render(self, nodes: Iterable[XMLNode]) -> str:
        """Render a node sequence (for example ``Document.children``) to HTML."""
        nodes = list(nodes)
        output = "".join(self.render_node(node) for node in nodes)
        self.logger.debug(
            "Rendered nodes",
            extra={"top_level_count": len(nodes), "output_length": len(output)}
        )
        return output

    def render_node(self, node: XMLNode) -> str:
        """Render a single node together with its subtree.

        Walks the subtree with an explicit stack, so trees as deep as the
        depth ceiling allows render without consuming interpreter stack.
        """
        end_tag = f"</{self.config.element_name}>"
        parts: List[str] = []
        # Items are nodes still to render or end tags still to emit
        stack: List[Union[XMLNode, str]] = [node]
        while stack:
            item = stack.pop()
            if isinstance(item, str):
                parts.append(item)
            elif item.role in _PASSTHROUGH_ROLES:
                parts.append(item.raw)
            elif item.role not in _DROPPED_ROLES:
                parts.append(self.start_tag(item))
                stack.append(end_tag)
                stack.extend(reversed(item.children or []))
        return "".join(parts)

    def start_tag(self, node: XMLNode) -> str:
        config = self.config
        parts: List[str] = [
            f'<{config.element_name} {config.tag_attribute}="{self._value(node.tag or "")}"'
        ]
        for attribute in node.attributes or []:
            parts.append(
                f' {config.attribute_prefix}{attribute.name}="{self._value(attribute.value)}"'
            )
        parts.append(">")
        return "".join(parts)

    def _value(self, value: str) -> str:
        if self.config.escape_attribute_values:
            return html.escape(value, quote=True)
        return value


def render(nodes: Iterable[XMLNode], config: Optional[RenderConfig] = None) -> str:
    """Render ``nodes`` to HTML with the given (or default) configuration.

    Args:
        nodes: Nodes to render, usually ``parse(source).children``
        config: Element name, data-attribute naming and escaping options

    Returns:
        HTML string; empty for an empty sequence
    """
    return HTMLRenderer(config).render(nodes)

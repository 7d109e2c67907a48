"""Node types produced by the tree builder.

Every node carries its exact source text, a document-wide pre-order index and
its position among its siblings. Only open tags have a ``children`` list;
``malformed`` is either ``True`` or ``None`` so that serialized trees simply
omit the flag on healthy nodes.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from xml_scaffold.tokenization import NodeRole, XMLAttribute

_TAG_ROLES = (NodeRole.OPEN_TAG, NodeRole.SELF_TAG)


@dataclass
class XMLNode:
    """One node of the scaffold tree."""

    role: NodeRole
    raw: str
    global_index: int
    local_index: int
    tag: Optional[str] = None
    inner: Optional[str] = None
    attributes: Optional[List[XMLAttribute]] = None
    target: Optional[str] = None
    children: Optional[List["XMLNode"]] = None
    malformed: Optional[bool] = None

    def __post_init__(self) -> None:
        """Validate the role/children pairing."""
        if self.global_index < 0 or self.local_index < 0:
            raise ValueError("Node indexes must be >= 0")
        if self.role is NodeRole.OPEN_TAG:
            if self.children is None:
                self.children = []
        elif self.children is not None:
            raise ValueError(f"{self.role.value} nodes cannot have children")
        if self.malformed is False:
            self.malformed = None

    @property
    def is_malformed(self) -> bool:
        return self.malformed is True

    @property
    def local_name(self) -> Optional[str]:
        """Tag name without its namespace prefix."""
        if self.tag is None:
            return None
        return self.tag.split(":", 1)[-1]

    @property
    def namespace_prefix(self) -> Optional[str]:
        """Namespace prefix of the tag name, if it has one."""
        if self.tag and ":" in self.tag:
            return self.tag.split(":", 1)[0]
        return None

    def get_attribute(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Return the value of the first attribute called ``name``."""
        for attribute in self.attributes or []:
            if attribute.name == name:
                return attribute.value
        return default

    def has_attribute(self, name: str) -> bool:
        return any(attribute.name == name for attribute in self.attributes or [])

    def iter_descendants(self) -> Iterator["XMLNode"]:
        """Yield every node below this one in pre-order."""
        return iter_nodes(self.children or [])

    def find(self, tag: str) -> Optional["XMLNode"]:
        """Find the first descendant element with matching tag name."""
        for node in self.iter_descendants():
            if node.role in _TAG_ROLES and node.tag == tag:
                return node
        return None

    def find_all(self, tag: str) -> List["XMLNode"]:
        """Find all descendant elements with matching tag name."""
        return [
            node for node in self.iter_descendants()
            if node.role in _TAG_ROLES and node.tag == tag
        ]

    def to_dict(self) -> Dict[str, Any]:
        """Convert the node and its subtree to the serialized node shape.

        Keys whose value is ``None`` are left out, so a healthy node has no
        ``malformed`` key and only open tags have ``children``. The subtree
        is converted with an explicit stack rather than by recursion.
        """
        result = self._fields_dict()
        stack: List[Tuple[XMLNode, Dict[str, Any]]] = [(self, result)]
        while stack:
            node, target = stack.pop()
            for child in node.children or []:
                child_dict = child._fields_dict()
                target["children"].append(child_dict)
                stack.append((child, child_dict))
        return result

    def _fields_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "role": self.role.value,
            "raw": self.raw,
            "globalIndex": self.global_index,
            "localIndex": self.local_index,
        }
        if self.tag is not None:
            result["xmlTag"] = self.tag
        if self.inner is not None:
            result["xmlInner"] = self.inner
        if self.attributes is not None:
            result["xmlAttributes"] = [
                {"name": attribute.name, "value": attribute.value}
                for attribute in self.attributes
            ]
        if self.target is not None:
            result["target"] = self.target
        if self.children is not None:
            result["children"] = []
        if self.malformed:
            result["malformed"] = True
        return result


def is_malformed(node: XMLNode) -> bool:
    """Check whether ``node`` was flagged as part of a structural anomaly."""
    return node.malformed is True


def walk(nodes: Iterable[XMLNode]) -> Iterator[Tuple[XMLNode, int, Optional[XMLNode]]]:
    """Yield ``(node, depth, parent)`` in depth-first pre-order.

    Top-level nodes have depth 1 and no parent. Iterative, so deep trees do
    not consume interpreter stack.
    """
    stack: List[Tuple[XMLNode, int, Optional[XMLNode]]] = [
        (node, 1, None) for node in reversed(list(nodes))
    ]
    while stack:
        node, depth, parent = stack.pop()
        yield node, depth, parent
        if node.children:
            stack.extend((child, depth + 1, node) for child in reversed(node.children))


def iter_nodes(nodes: Iterable[XMLNode]) -> Iterator[XMLNode]:
    """Yield every node of the forest in depth-first pre-order."""
    for node, _, _ in walk(nodes):
        yield node


@dataclass
class Document:
    """Top-level container: the sibling nodes found at document scope.

    There is no implicit root element; a prolog, a root element and any
    trailing content all sit side by side in ``children``.
    """

    children: List[XMLNode] = field(default_factory=list)

    def __iter__(self) -> Iterator[XMLNode]:
        return iter(self.children)

    def __len__(self) -> int:
        return len(self.children)

    def iter_nodes(self) -> Iterator[XMLNode]:
        """Yield all nodes in pre-order, i.e. in ``global_index`` order."""
        return iter_nodes(self.children)

    @property
    def root(self) -> Optional[XMLNode]:
        """First top-level open or self-closing tag, if any."""
        for node in self.children:
            if node.role in _TAG_ROLES:
                return node
        return None

    @property
    def node_count(self) -> int:
        return sum(1 for _ in self.iter_nodes())

    @property
    def max_depth(self) -> int:
        """Deepest nesting level, 0 for an empty document."""
        return max((depth for _, depth, _ in walk(self.children)), default=0)

    @property
    def is_well_formed(self) -> bool:
        """True when no node carries the malformed flag."""
        return not any(node.malformed for node in self.iter_nodes())

    def find(self, tag: str) -> Optional[XMLNode]:
        """Find the first element with matching tag name."""
        for node in self.iter_nodes():
            if node.role in _TAG_ROLES and node.tag == tag:
                return node
        return None

    def find_all(self, tag: str) -> List[XMLNode]:
        """Find all elements with matching tag name, in document order."""
        return [
            node for node in self.iter_nodes()
            if node.role in _TAG_ROLES and node.tag == tag
        ]

    def malformed_nodes(self) -> List[XMLNode]:
        """All nodes flagged malformed, in document order."""
        return [node for node in self.iter_nodes() if node.malformed]

    def to_dict(self) -> Dict[str, Any]:
        return {"children": [node.to_dict() for node in self.children]}

"""
UI Node Tree
============

Intermediate representation between DSL evaluation and markup rendering.
Every node is owned by exactly one parent; nodes are attached once, when the
element that creates them is evaluated.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from dsl_playground.models.schemas import SourceLocation


class NodeKind(str, Enum):
    """Tagged node variants."""

    CONTAINER = "container"
    LEAF = "leaf"
    VOID = "void"
    FRAGMENT = "fragment"


FRAGMENT_ELEMENT = "fragment"


@dataclass(eq=False)
class UINode:
    """Single UI element produced by the sandbox."""

    element: str
    tag: str
    kind: NodeKind
    location: SourceLocation
    classes: List[str] = field(default_factory=list)
    attributes: Dict[str, str] = field(default_factory=dict)
    styles: Dict[str, str] = field(default_factory=dict)
    text: Optional[str] = None
    children: List["UINode"] = field(default_factory=list)
    attached: bool = False

    def add_class(self, *values: str) -> None:
        """Append whitespace-separated class tokens, skipping duplicates."""
        for value in values:
            for token in str(value).split():
                if token not in self.classes:
                    self.classes.append(token)

    def append(self, child: "UINode") -> None:
        """Attach ``child`` as the last child of this node."""
        if child is self or child.attached:
            raise ValueError(f"Node '{child.element}' already has a parent")
        if self.kind in (NodeKind.LEAF, NodeKind.VOID):
            raise ValueError(f"'{self.element}' cannot contain child elements")
        child.attached = True
        self.children.append(child)

    def walk(self) -> Iterator["UINode"]:
        """Iterate over this node and its descendants in document order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "element": self.element,
            "tag": self.tag,
            "kind": self.kind.value,
            "classes": list(self.classes),
            "attributes": dict(self.attributes),
            "styles": dict(self.styles),
            "location": self.location.model_dump(by_alias=True, exclude_none=True),
            "children": [child.to_dict() for child in self.children],
        }
        if self.text is not None:
            data["text"] = self.text
        return data


@dataclass
class NodeTree:
    """Rooted UI tree returned by a successful evaluation."""

    root: UINode

    @classmethod
    def from_roots(cls, roots: List[UINode], location: SourceLocation) -> "NodeTree":
        """Use the single top-level node as root, or wrap several in a fragment."""
        if len(roots) == 1:
            return cls(root=roots[0])

        fragment = UINode(
            element=FRAGMENT_ELEMENT,
            tag="",
            kind=NodeKind.FRAGMENT,
            location=location,
        )
        for node in roots:
            node.attached = False
            fragment.append(node)
        return cls(root=fragment)

    def walk(self) -> Iterator[UINode]:
        return self.root.walk()

    @property
    def node_count(self) -> int:
        return sum(1 for node in self.walk() if node.kind != NodeKind.FRAGMENT)

    def texts(self) -> List[str]:
        """Literal text values in document order."""
        return [node.text for node in self.walk() if node.text is not None]

    def to_dict(self) -> Dict[str, Any]:
        return self.root.to_dict()

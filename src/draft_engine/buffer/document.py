"""Core document data structures for draft_engine buffers."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Literal, Optional, Sequence

from .state import Point
from .sync import BufferValidationError

ROOT_KEY = 0
ROOT = "root"
TEXT = "text"
BLOCK_TYPES = frozenset({"paragraph", "heading", "quote", "list", "listitem"})

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")

Affinity = Literal["backward", "forward"]


@dataclass(slots=True)
class Node:
    key: int
    type: str
    text: str = ""

    @property
    def is_text(self) -> bool:
        return self.type == TEXT


@dataclass(frozen=True, slots=True)
class TextEdit:
    """Replacement payload for one text leaf."""

    key: int
    text: str


@dataclass(frozen=True, slots=True)
class LeafRange:
    """A text leaf and its ``[start, end)`` range inside document text."""

    key: int
    start: int
    end: int


def _root_nodes() -> Dict[int, Node]:
    return {ROOT_KEY: Node(key=ROOT_KEY, type=ROOT)}


def _root_children() -> Dict[int, List[int]]:
    return {ROOT_KEY: []}


@dataclass(slots=True)
class BufferDocument:
    """Arena-backed tree of block nodes whose leaves carry the text.

    Nodes are addressed by integer keys that stay stable for the node's
    lifetime; parent/children relations live in tables on the document so
    leaves can be rewritten in place without touching the tree shape.
    Document text is the plain concatenation of every leaf in tree order.
    """

    _nodes: Dict[int, Node] = field(default_factory=_root_nodes)
    _children: Dict[int, List[int]] = field(default_factory=_root_children)
    _parents: Dict[int, int] = field(default_factory=dict)
    _next_key: int = 1
    version: int = 0

    @classmethod
    def from_text(cls, text: str) -> "BufferDocument":
        """Build paragraphs from blank-line separated text.

        Text without blank-line breaks becomes a single paragraph kept
        verbatim; otherwise each non-blank paragraph is stripped.
        """

        document = cls()
        if not text.strip():
            document.append_block("paragraph")
        else:
            paragraphs = _PARAGRAPH_BREAK.split(text)
            if len(paragraphs) == 1:
                document.append_text(document.append_block("paragraph"), text)
            else:
                for paragraph in paragraphs:
                    if paragraph.strip():
                        block = document.append_block("paragraph")
                        document.append_text(block, paragraph.strip())
        document.version = 0
        return document

    @classmethod
    def from_blocks(
        cls, blocks: Iterable[Sequence[str]], *, block_type: str = "paragraph"
    ) -> "BufferDocument":
        """Build one block per entry, each holding one leaf per string."""

        document = cls()
        for leaves in blocks:
            block = document.append_block(block_type)
            for text in leaves:
                document.append_text(block, text)
        if not document._children[ROOT_KEY]:
            document.append_block(block_type)
        document.version = 0
        return document

    # -- structure -----------------------------------------------------

    def append_block(
        self, block_type: str = "paragraph", *, parent: int = ROOT_KEY
    ) -> int:
        if block_type not in BLOCK_TYPES:
            raise ValueError(f"Unknown block type '{block_type}'")
        if self.get(parent).is_text:
            raise BufferValidationError(f"Text node {parent} cannot hold blocks")
        return self._attach(parent, Node(key=self._allocate(), type=block_type))

    def append_text(self, parent: int, text: str = "") -> int:
        node = self.get(parent)
        if node.is_text or node.type == ROOT:
            raise BufferValidationError(f"Node {parent} cannot hold text leaves")
        return self._attach(parent, Node(key=self._allocate(), type=TEXT, text=text))

    def remove_node(self, key: int) -> None:
        if key == ROOT_KEY:
            raise BufferValidationError("The root node cannot be removed")
        parent = self.parent_of(key)
        if parent is None:
            raise BufferValidationError(f"Unknown node {key}")
        self._children[parent].remove(key)
        stack = [key]
        while stack:
            current = stack.pop()
            stack.extend(self._children.pop(current, ()))
            self._nodes.pop(current, None)
            self._parents.pop(current, None)
        self._touch()

    def split_text(self, key: int, offset: int) -> int:
        """Split a leaf at ``offset``; the tail moves into a new sibling."""

        node = self._text_node(key)
        if offset < 0 or offset > len(node.text):
            raise BufferValidationError(f"Offset {offset} outside node {key}")
        head, tail = node.text[:offset], node.text[offset:]
        parent = self._parents[key]
        sibling = Node(key=self._allocate(), type=TEXT, text=tail)
        self._nodes[sibling.key] = sibling
        self._parents[sibling.key] = parent
        siblings = self._children[parent]
        siblings.insert(siblings.index(key) + 1, sibling.key)
        node.text = head
        self._touch()
        return sibling.key

    def merge_text(self, key: int) -> None:
        """Fold the next sibling leaf into ``key``."""

        node = self._text_node(key)
        siblings = self._children[self._parents[key]]
        position = siblings.index(key)
        if position + 1 >= len(siblings):
            raise BufferValidationError(f"Node {key} has no next sibling")
        neighbour = self.get(siblings[position + 1])
        if not neighbour.is_text:
            raise BufferValidationError(f"Node {neighbour.key} is not a text leaf")
        node.text += neighbour.text
        self.remove_node(neighbour.key)

    # -- lookup --------------------------------------------------------

    def get(self, key: int) -> Node:
        try:
            return self._nodes[key]
        except KeyError as exc:
            raise BufferValidationError(f"Unknown node {key}") from exc

    def has(self, key: int) -> bool:
        return key in self._nodes

    def children(self, key: int = ROOT_KEY) -> tuple[int, ...]:
        return tuple(self._children.get(key, ()))

    def parent_of(self, key: int) -> Optional[int]:
        return self._parents.get(key)

    def iter_text_nodes(self) -> Iterator[Node]:
        """Yield text leaves in document order."""

        stack = list(reversed(self._children[ROOT_KEY]))
        while stack:
            node = self._nodes[stack.pop()]
            if node.is_text:
                yield node
            else:
                stack.extend(reversed(self._children.get(node.key, ())))

    def iter_text_blocks(self) -> Iterator[Node]:
        """Yield blocks that hold no nested blocks, in document order."""

        stack = list(reversed(self._children[ROOT_KEY]))
        while stack:
            node = self._nodes[stack.pop()]
            if node.is_text:
                continue
            nested = [
                key
                for key in self._children.get(node.key, ())
                if not self._nodes[key].is_text
            ]
            if nested:
                stack.extend(reversed(nested))
            else:
                yield node

    def block_text(self, key: int) -> str:
        return "".join(
            self._nodes[child].text
            for child in self._children.get(key, ())
            if self._nodes[child].is_text
        )

    def text_content(self) -> str:
        return "".join(node.text for node in self.iter_text_nodes())

    def text_size(self, key: int) -> int:
        return len(self._text_node(key).text)

    def leaf_table(self) -> List[LeafRange]:
        table: List[LeafRange] = []
        cursor = 0
        for node in self.iter_text_nodes():
            end = cursor + len(node.text)
            table.append(LeafRange(key=node.key, start=cursor, end=end))
            cursor = end
        return table

    def offset_of(self, key: int) -> int:
        """Document offset at which leaf ``key`` starts."""

        self._text_node(key)
        for leaf in self.leaf_table():
            if leaf.key == key:
                return leaf.start
        raise BufferValidationError(f"Node {key} is detached")  # pragma: no cover

    def point_at(self, offset: int, *, affinity: Affinity = "backward") -> Point:
        """Map a document offset to a leaf-local point.

        At a boundary between two leaves ``backward`` picks the leaf that ends
        there and ``forward`` the leaf that starts there.
        """

        table = self.leaf_table()
        if not table:
            raise BufferValidationError("Document has no text leaves")
        total = table[-1].end
        if offset < 0 or offset > total:
            raise BufferValidationError(f"Offset {offset} outside document")
        if affinity == "backward":
            for leaf in table:
                if leaf.start < offset <= leaf.end:
                    return Point(leaf.key, offset - leaf.start)
            return Point(table[0].key, 0)
        for leaf in table:
            if leaf.start <= offset < leaf.end:
                return Point(leaf.key, offset - leaf.start)
        last = table[-1]
        return Point(last.key, offset - last.start)

    # -- mutation ------------------------------------------------------

    def set_text(self, key: int, text: str) -> None:
        self._text_node(key).text = text
        self._touch()

    def apply_edits(self, edits: Iterable[TextEdit]) -> None:
        for edit in edits:
            self.set_text(edit.key, edit.text)

    def copy(self) -> "BufferDocument":
        return BufferDocument(
            _nodes={
                key: Node(key=node.key, type=node.type, text=node.text)
                for key, node in self._nodes.items()
            },
            _children={key: list(keys) for key, keys in self._children.items()},
            _parents=dict(self._parents),
            _next_key=self._next_key,
            version=self.version,
        )

    def _text_node(self, key: int) -> Node:
        node = self.get(key)
        if not node.is_text:
            raise BufferValidationError(f"Node {key} is not a text leaf")
        return node

    def _allocate(self) -> int:
        key = self._next_key
        self._next_key += 1
        return key

    def _attach(self, parent: int, node: Node) -> int:
        self._nodes[node.key] = node
        self._parents[node.key] = parent
        self._children.setdefault(parent, []).append(node.key)
        if not node.is_text:
            self._children.setdefault(node.key, [])
        self._touch()
        return node.key

    def _touch(self) -> None:
        self.version += 1

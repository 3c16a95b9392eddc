"""Typed XML tree: nodes, attributes, snapshots and tree merging."""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterable

_LONG_MIN = -(1 << 31)
_LONG_MAX = (1 << 31) - 1
_WHITESPACE = b" \t\n\v\f\r"


class XmlError(ValueError):
    """Raised on invalid operations on XML nodes."""


class XmlNodeType(enum.IntEnum):
    """Type of the value an XML node holds."""

    CHAR = 0
    SHORT = 1
    INT = 2
    STRING = 3
    ARRAY = 4
    EMPTY = 5
    FUNC = 6


_WIDTHS = {XmlNodeType.CHAR: 1, XmlNodeType.SHORT: 2, XmlNodeType.INT: 4}

_TYPE_NAMES = {
    XmlNodeType.CHAR: "char",
    XmlNodeType.SHORT: "short",
    XmlNodeType.INT: "int",
    XmlNodeType.STRING: "string",
    XmlNodeType.ARRAY: "array",
    XmlNodeType.EMPTY: "empty",
    XmlNodeType.FUNC: "function",
}

# "function" is written out but never accepted as a type attribute
_ALLOWED_TYPES = {
    name: node_type
    for node_type, name in _TYPE_NAMES.items()
    if node_type is not XmlNodeType.FUNC
}


def type_from_name(name: str) -> XmlNodeType:
    """Return the node type named by a ``type`` attribute value."""
    try:
        return _ALLOWED_TYPES[name]
    except KeyError:
        raise XmlError(f"Invalid XML node type ({name}).") from None


def type_to_name(node_type: int) -> str:
    """Return the name of a node type; unknown types are reported as ``empty``."""
    try:
        return _TYPE_NAMES[XmlNodeType(node_type)]
    except ValueError:
        return _TYPE_NAMES[XmlNodeType.EMPTY]


def _wrap(value: int, width: int) -> int:
    bits = 8 * width
    value &= (1 << bits) - 1
    return value - (1 << bits) if value >> (bits - 1) else value


def _strtol(text: bytes) -> int:
    """Parse a leading integer with automatic base detection, like strtol(..., 0)."""
    pos = 0
    while pos < len(text) and text[pos] in _WHITESPACE:
        pos += 1
    negative = False
    if pos < len(text) and text[pos] in b"+-":
        negative = text[pos] == ord("-")
        pos += 1
    base = 10
    rest = text[pos:]
    if rest[:2].lower() == b"0x" and rest[2:3] and rest[2:3] in b"0123456789abcdefABCDEF":
        base = 16
        pos += 2
    elif rest[:1] == b"0":
        base = 8
    digits = "0123456789abcdef"[:base]
    value = 0
    while pos < len(text):
        ch = chr(text[pos]).lower()
        if ch not in digits:
            break
        value = value * base + digits.index(ch)
        pos += 1
    if negative:
        value = -value
    return max(_LONG_MIN, min(_LONG_MAX, value))


def _blank(node_type: XmlNodeType, length: int) -> int | bytes | None:
    if node_type in _WIDTHS:
        return 0
    if node_type is XmlNodeType.STRING:
        return bytes(max(length - 1, 0))
    if node_type is XmlNodeType.ARRAY:
        return bytes(length)
    return None


def _to_bytes(content: bytes | str) -> bytes:
    return content.encode("latin-1") if isinstance(content, str) else bytes(content)


class XmlNode:
    """A named XML node with a typed value, attributes and children.

    Numeric nodes hold an ``int``; string nodes hold ``bytes`` without the
    terminating zero (``length`` counts it); array nodes hold raw ``bytes``.
    """

    def __init__(
        self,
        name: str | None = None,
        node_type: XmlNodeType = XmlNodeType.EMPTY,
        length: int = 0,
        allocate: bool = False,
    ) -> None:
        self.name = name
        self.node_type = XmlNodeType(node_type)
        self.length = length
        self.value: int | bytes | None = _blank(self.node_type, length) if allocate else None
        self.func: Callable[[], bytes] | None = None
        self.attributes: dict[str, str] = {}
        self.children: list[XmlNode] = []
        self._saved_length = length
        self._saved_value: int | bytes | None = None

    def __repr__(self) -> str:
        return (
            f"XmlNode(name={self.name!r}, type={self.node_type.name}, "
            f"value={self.value!r}, children={len(self.children)})"
        )

    @property
    def is_anonymous(self) -> bool:
        """True if the node has no name."""
        return not self.name

    @property
    def is_leaf(self) -> bool:
        """True if the node has no children."""
        return not self.children

    @property
    def is_numeric(self) -> bool:
        """True for char, short and int nodes."""
        return self.node_type in _WIDTHS

    @property
    def is_string(self) -> bool:
        """True for string nodes."""
        return self.node_type is XmlNodeType.STRING

    @property
    def has_content(self) -> bool:
        """True if the node carries a value worth writing out."""
        if self.is_anonymous or self.node_type in (XmlNodeType.EMPTY, XmlNodeType.FUNC):
            return False
        if self.value is None:
            return False
        if self.is_string:
            return bool(self.value) and self.value[0] != 0
        return True

    def raw_bytes(self) -> bytes:
        """Return the value as it is laid out in memory, ``length`` bytes long."""
        if self.value is None:
            return b""
        if self.node_type in _WIDTHS:
            width = _WIDTHS[self.node_type]
            return (self.value & ((1 << (8 * width)) - 1)).to_bytes(width, "little")
        if self.is_string:
            return bytes(self.value) + b"\0"
        return bytes(self.value)

    def add_child(self, child: "XmlNode") -> "XmlNode":
        """Insert ``child`` at the front of the children; returns self."""
        self.children.insert(0, child)
        return self

    def add_attribute(self, name: str, value: str) -> None:
        """Add an attribute; a ``type`` attribute also sets the node type."""
        if name in self.attributes:
            raise XmlError(f"Attribute '{name}' already specified for node '{self.name}'.")
        if name == "type":
            try:
                self.node_type = type_from_name(value)
            except XmlError:
                raise XmlError(
                    f"XML node '{self.name}' has invalid type ({value})."
                ) from None
        self.attributes[name] = value

    def get_attribute(self, name: str) -> str | None:
        """Return the value of attribute ``name`` or None."""
        return self.attributes.get(name)

    def set_content(self, node_type: XmlNodeType, content: int | bytes | str) -> None:
        """Set the node's type and value."""
        node_type = XmlNodeType(node_type)
        if node_type in _WIDTHS:
            if not isinstance(content, int):
                raise XmlError("Numeric node content must be an integer.")
            width = _WIDTHS[node_type]
            self.value = _wrap(content, width)
            self.length = width
        elif node_type is XmlNodeType.STRING:
            self.value = _to_bytes(content)
            self.length = len(self.value) + 1
        elif node_type is XmlNodeType.ARRAY:
            self.value = _to_bytes(content)
            self.length = len(self.value)
        else:
            raise XmlError(f"Node of type {type_to_name(node_type)} can't have content.")
        self.node_type = node_type

    def set_func(self, func: Callable[[], bytes]) -> None:
        """Make this a function node whose children view the data ``func`` returns."""
        self.node_type = XmlNodeType.FUNC
        self.func = func
        self.value = None
        self.length = 0

    def refresh_func_data(self) -> None:
        """Reload the children's values from the data block the function returns."""
        if self.node_type is not XmlNodeType.FUNC or self.func is None or not self.children:
            raise XmlError("Only function nodes with children can be refreshed.")
        data = bytes(self.func())
        ofs = 0
        for child in self.children:
            chunk = data[ofs:ofs + child.length]
            ofs += child.length
            if child.node_type in _WIDTHS:
                child.value = int.from_bytes(chunk, "little", signed=True) if chunk else 0
            elif child.is_string:
                child.value = chunk[:-1] if chunk else b""
            elif child.node_type is XmlNodeType.ARRAY:
                child.value = chunk

    def snapshot(self) -> None:
        """Remember the current values of this node and its descendants."""
        if not self.is_anonymous:
            if self.node_type is XmlNodeType.FUNC:
                self.refresh_func_data()
            elif self.node_type is not XmlNodeType.EMPTY:
                self._saved_length = self.length
                self._saved_value = self.value
        for child in self.children:
            child.snapshot()

    def unmodified(self) -> bool:
        """True if no value in this subtree changed since the last snapshot."""
        if not all(child.unmodified() for child in self.children):
            return False
        if self.is_anonymous:
            return True
        if self.node_type is XmlNodeType.FUNC:
            self.refresh_func_data()
            return True
        if self.node_type is XmlNodeType.EMPTY:
            return True
        return self.length == self._saved_length and self.value == self._saved_value

    def reverse_children(self) -> None:
        """Reverse the order of children at every level of the subtree."""
        self.children.reverse()
        for child in self.children:
            child.reverse_children()


def _merge_same_kind(dst: XmlNode, src: XmlNode) -> None:
    if dst.length <= 0:
        return
    if dst.node_type in _WIDTHS:
        dst.value = src.value
        return
    size = dst.length
    buf = src.raw_bytes()[:size].ljust(size, b"\0")
    if dst.is_string:
        dst.value = buf[:-1]
    else:
        dst.value = buf


def _number_into_buffer(dst: XmlNode, number: int) -> None:
    if dst.length <= 0:
        return
    digits = str(number).encode("ascii")[:dst.length - 1] + b"\0"
    old = dst.raw_bytes().ljust(dst.length, b"\0")
    buf = digits + old[len(digits):]
    dst.value = buf[:-1] if dst.is_string else buf


def _merge_nodes(dst: XmlNode, src: XmlNode) -> None:
    if src.is_anonymous:
        return
    text_types = (XmlNodeType.STRING, XmlNodeType.ARRAY)
    if dst.node_type == src.node_type or (
        dst.node_type in text_types and src.node_type in text_types
    ):
        _merge_same_kind(dst, src)
    elif dst.node_type in _WIDTHS:
        if src.node_type in _WIDTHS:
            number = src.value or 0
        elif src.node_type in text_types:
            number = _strtol(src.raw_bytes()[:32])
        else:
            return
        dst.value = _wrap(number, _WIDTHS[dst.node_type])
    elif dst.node_type in text_types and src.node_type in _WIDTHS:
        _number_into_buffer(dst, src.value or 0)


def _as_list(nodes: XmlNode | Iterable[XmlNode] | None) -> list[XmlNode]:
    if nodes is None:
        return []
    if isinstance(nodes, XmlNode):
        return [nodes]
    return list(nodes)


def merge_trees(
    dest: XmlNode | Iterable[XmlNode] | None, src: XmlNode | Iterable[XmlNode] | None
) -> None:
    """Copy values from ``src`` into matching nodes of ``dest``.

    ``dest`` decides the structure. Nodes are matched level by level by name,
    and values are converted when the types differ.
    """
    sources = _as_list(src)
    if not sources:
        return
    for node in _as_list(dest):
        match = next((s for s in sources if s.name == node.name), None)
        if match is not None:
            _merge_nodes(node, match)
            merge_trees(node.children, match.children)
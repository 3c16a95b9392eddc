"""Writing typed XML trees back out in the dialect the parser reads."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable

from .xmltree import XmlNode, XmlNodeType, type_to_name

log = logging.getLogger(__name__)

INDENT_STEP = 4
_LINE_LIMIT = 99
_CHUNK = 100

_QUOTE = ord('"')
_BACKSLASH = ord("\\")
_SPECIAL = frozenset(b'"=<>/\\ ')


def _needs_quotes(data: bytes) -> bool:
    return any(byte < 32 or byte > 126 or byte in _SPECIAL for byte in data)


def _write_string(out: bytearray, data: bytes, indent: int, zero_terminated: bool) -> None:
    """Append ``data``, quoting and escaping it when it can't stand bare."""
    if not _needs_quotes(data):
        if len(data) > _CHUNK:
            # long bare text is split into quoted pieces the parser joins again
            for start in range(0, len(data), _CHUNK):
                out += b" " * indent + b'"' + data[start:start + _CHUNK] + b'"\n'
        else:
            out += data
        return

    start_col = indent + 1 + INDENT_STEP
    col = start_col
    out += b'"'
    last = len(data) - 1
    for i, byte in enumerate(data):
        if zero_terminated and byte == 0:
            break
        if byte < 32 or byte > 126:
            out += b"\\x%02x" % byte
            col += 4
        elif byte == _QUOTE:
            out += b'\\"'
            col += 2
        elif byte == _BACKSLASH:
            out += b"\\\\"
            col += 4
        else:
            out.append(byte)
            col += 1
        if col > _LINE_LIMIT and i < last:
            out += b'"\n' + b" " * (indent + INDENT_STEP) + b'"'
            col = start_col
    out += b'"'


def _write_content(out: bytearray, node: XmlNode, indent: int) -> None:
    if node.is_numeric:
        out += str(node.value).encode("ascii")
    elif node.node_type in (XmlNodeType.STRING, XmlNodeType.ARRAY):
        _write_string(out, bytes(node.value or b""), indent, node.is_string)


def _name_bytes(text: str | None) -> bytes:
    return (text or "").encode("latin-1")


def _write_nodes(out: bytearray, nodes: list[XmlNode], indent: int) -> None:
    if not nodes or nodes[0].is_anonymous:
        return

    for node in nodes:
        if node.is_anonymous:
            continue

        numeric = node.is_numeric
        name = _name_bytes(node.name)

        out += b" " * indent + b"<"
        _write_string(out, name, indent, True)

        # the type attribute is always written, and first
        if (
            node.node_type not in (XmlNodeType.EMPTY, XmlNodeType.FUNC)
            and node.get_attribute("type") is None
        ):
            out += b' type="'
            _write_string(out, type_to_name(node.node_type).encode("ascii"), indent, True)
            out += b'"'

        for attr_name, attr_value in reversed(list(node.attributes.items())):
            out += b" "
            _write_string(out, _name_bytes(attr_name), indent, True)
            out += b"="
            _write_string(out, _name_bytes(attr_value), indent, True)

        has_content = node.has_content
        solo = node.is_leaf and not has_content
        if solo:
            out += b" /"
        out += b">"

        if has_content:
            if not numeric:
                out += b"\n" + b" " * (indent + INDENT_STEP)
            _write_content(out, node, indent)
            if not numeric:
                out += b"\n"
        else:
            out += b"\n"

        if node.node_type is XmlNodeType.FUNC:
            node.refresh_func_data()

        if not node.is_leaf:
            _write_nodes(out, node.children, indent + (0 if solo else INDENT_STEP))

        if not solo:
            if not numeric:
                out += b" " * indent
            out += b"</"
            _write_string(out, name, indent, True)
            out += b">\n"


def _as_list(nodes: XmlNode | Iterable[XmlNode]) -> list[XmlNode]:
    if isinstance(nodes, XmlNode):
        return [nodes]
    return list(nodes)


def write_tree(node: XmlNode | Iterable[XmlNode]) -> bytes:
    """Render a node (or a list of sibling nodes) and its subtree as XML bytes."""
    out = bytearray()
    _write_nodes(out, _as_list(node), 0)
    return bytes(out)


def save_xml(
    root: XmlNode | Iterable[XmlNode] | None,
    path: str | os.PathLike,
    check_if_needed: bool = False,
) -> bool:
    """Write the tree to ``path`` and snapshot it.

    With ``check_if_needed`` an unmodified tree is not written. Returns True
    if the file was written, False if it was skipped.
    """
    if root is None:
        raise ValueError("No XML tree to save.")
    nodes = _as_list(root)

    if check_if_needed and all(node.unmodified() for node in nodes):
        log.info("%s not modified, returning.", os.fspath(path))
        return False

    data = write_tree(nodes)
    with open(path, "wb") as f:
        f.write(data)

    for node in nodes:
        node.snapshot()
    log.info("%s written successfully.", os.fspath(path))
    return True
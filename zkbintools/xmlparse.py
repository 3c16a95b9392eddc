"""Lexer and parser for the typed XML dialect used by option files."""

from __future__ import annotations

import enum
import logging
import os
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from .xmltree import XmlError, XmlNode, XmlNodeType, type_to_name

log = logging.getLogger(__name__)

TEXT_BUFFER_SIZE = 8 * 1024

_LONG_MIN = -(1 << 31)
_LONG_MAX = (1 << 31) - 1

_SPACE = frozenset(b" \t\n\v\f\r")
_DIGITS = frozenset(b"0123456789")
_HEX = frozenset(b"0123456789abcdefABCDEF")

_LT, _GT, _SLASH, _EQ = ord("<"), ord(">"), ord("/"), ord("=")
_AMP, _QUOTE, _BACKSLASH, _BANG, _NL = ord("&"), ord('"'), ord("\\"), ord("!"), ord("\n")

_XML_ESCAPES = (
    (b"lt;", ord("<")),
    (b"gt;", ord(">")),
    (b"amp;", ord("&")),
    (b"apos;", ord("'")),
    (b"quot;", ord('"')),
)
_STRING_ESCAPES = {
    ord("\\"): ord("\\"),
    ord("n"): ord("\n"),
    ord("r"): ord("\r"),
    ord("t"): ord("\t"),
    ord("b"): ord("\b"),
    ord('"'): ord('"'),
    ord("'"): ord("'"),
}

_NUMBER_RE = re.compile(rb"[ \t\n\v\f\r]*([+-]?[0-9]+)")
_NUMERIC_RANGES = {
    XmlNodeType.CHAR: (-128, 127),
    XmlNodeType.SHORT: (-32768, 32767),
    XmlNodeType.INT: (_LONG_MIN, _LONG_MAX),
}


class XmlSymbol(enum.Enum):
    """Symbols produced by the lexer."""

    TAG_OPEN = "<"
    TAG_OPEN_END_TAG = "</"
    TAG_CLOSE = ">"
    TAG_CLOSE_SOLO_TAG = "/>"
    EQ = "="
    TEXT = "<text>"
    EOF = "end of file"

    def __str__(self) -> str:
        return self.value


class XmlSyntaxError(XmlError):
    """Raised when an XML document is malformed."""

    def __init__(self, message: str, file: str | None = None, line: int | None = None) -> None:
        self.message = message
        self.file = file
        self.line = line
        if line is not None:
            super().__init__(f"{file}({line}): {message}")
        else:
            super().__init__(message)


def _short_name(name: str) -> str:
    return str(name).replace("\\", "/").rsplit("/", 1)[-1]


class Lexer:
    """Splits XML bytes into symbols, resolving escapes inside text."""

    def __init__(self, data: bytes, name: str = "") -> None:
        self.data = bytes(data)
        self.file = _short_name(name)
        self.line = 1
        self.in_tag = False
        self._pos = 0
        self._lines_skipped = 0

    def _get(self) -> int:
        if self._pos < len(self.data):
            c = self.data[self._pos]
            self._pos += 1
            return c
        return -1

    def _peek(self) -> int:
        return self.data[self._pos] if self._pos < len(self.data) else -1

    def _unget(self, c: int) -> None:
        if c >= 0:
            self._pos -= 1

    def _skip_space(self) -> None:
        while self._peek() in _SPACE:
            if self._get() == _NL:
                self.line += 1

    def _report(self, message: str) -> None:
        log.warning("%s(%d): %s", self.file, self.line, message)

    def _xml_escape(self) -> int:
        for pattern, char in _XML_ESCAPES:
            if self.data.startswith(pattern, self._pos):
                self._pos += len(pattern)
                return char
        return 0

    def _string_escape(self) -> int:
        c = self._get()
        if c in _STRING_ESCAPES:
            return _STRING_ESCAPES[c]
        if c == ord("x"):
            value = 0
            count = 0
            while count < 2 and self._peek() in _HEX:
                value = value * 16 + int(chr(self._get()), 16)
                count += 1
            if count:
                return value
            self._report("\\x used with no following hex digits.")
        elif c in _DIGITS:
            value = c - ord("0")
            digits = 1
            while self._peek() in _DIGITS:
                d = self._get()
                if digits < 3:
                    value = value * 10 + d - ord("0")
                digits += 1
            if digits > 3 or value > 255:
                self._report("Numeric escape sequence out of range.")
            return value & 0xFF
        self._unget(c)
        return -1

    def _skip_comment(self) -> None:
        while True:
            c = self._get()
            if c < 0:
                self._report("Unterminated comment found.")
                return
            if c == ord("-") and self.data.startswith(b"->", self._pos):
                self._pos += 2
                return
            if c == _NL:
                self.line += 1

    def _get_text(self) -> bytes:
        buf = bytearray()
        room = TEXT_BUFFER_SIZE
        string_end = 0
        in_quote = False

        self._skip_space()
        while True:
            c = self._get()
            if c < 0:
                break
            if c == _AMP:
                escaped = self._xml_escape()
                if escaped:
                    c = escaped
            elif c == _QUOTE:
                in_quote = not in_quote
                if not in_quote:
                    string_end = max(len(buf) - 1, 0)
                    if not self.in_tag:
                        self._skip_space()
                else:
                    # whitespace between text and a string is dropped
                    while len(buf) - 1 > string_end and buf[-1] in _SPACE:
                        if buf.pop() == _NL:
                            self.line -= 1
                continue
            elif in_quote:
                if c == _BACKSLASH:
                    escaped = self._string_escape()
                    if escaped >= 0:
                        c = escaped
            elif c == _LT or c == _GT:
                self._unget(c)
                break
            elif c == _SLASH:
                if self._peek() == _GT:
                    self._unget(c)
                    break
            elif self.in_tag:
                if c == _EQ:
                    self._unget(c)
                    break
                if c in _SPACE:
                    self._skip_space()
                    break

            if room > 0:
                buf.append(c)
                room -= 1
                if c == _NL:
                    self.line += 1

        if in_quote:
            self._report("Unterminated string found.")
        elif buf:
            current = self.line
            while len(buf) > string_end + 1 and buf[-1] in _SPACE:
                if buf.pop() == _NL:
                    self.line -= 1
            # the text keeps its own line; the next symbol gets the skipped ones back
            self._lines_skipped = current - self.line

        if room <= 0 and buf:
            buf.pop()
        return bytes(buf)

    def _next_symbol(self) -> tuple[XmlSymbol, bytes]:
        while True:
            c = self._get()
            self.line += self._lines_skipped
            self._lines_skipped = 0

            if c == _LT:
                nxt = self._get()
                if nxt == _SLASH:
                    self.in_tag = True
                    return XmlSymbol.TAG_OPEN_END_TAG, b""
                if nxt == _BANG and self.data.startswith(b"--", self._pos):
                    self._pos += 2
                    self._skip_comment()
                    continue
                self._unget(nxt)
                self.in_tag = True
                return XmlSymbol.TAG_OPEN, b""
            if c == _GT:
                self.in_tag = False
                return XmlSymbol.TAG_CLOSE, b""
            if c == _SLASH and self._peek() == _GT:
                self._pos += 1
                self.in_tag = False
                return XmlSymbol.TAG_CLOSE_SOLO_TAG, b""
            if c == _EQ and self.in_tag:
                return XmlSymbol.EQ, b""
            if c < 0:
                return XmlSymbol.EOF, b""

            self._unget(c)
            text = self._get_text()
            if text:
                return XmlSymbol.TEXT, text

    def symbols(self) -> Iterator[tuple[XmlSymbol, bytes]]:
        """Yield ``(symbol, text)`` pairs up to and including EOF."""
        while True:
            symbol, text = self._next_symbol()
            yield symbol, text
            if symbol is XmlSymbol.EOF:
                return


class _State(enum.Enum):
    START = enum.auto()
    TAG_OPENED = enum.auto()
    INSIDE_TAG = enum.auto()
    GET_ATTR_EQ = enum.auto()
    GET_ATTR_VAL = enum.auto()
    GET_POSSIBLE_CONTENT = enum.auto()
    END_TAG_OPENED = enum.auto()
    EXPECT_END_TAG_CLOSE = enum.auto()


@dataclass
class _Open:
    node: XmlNode
    pieces: list[bytes] = field(default_factory=list)


def _decode(text: bytes) -> str:
    return text.decode("latin-1")


class Parser:
    """State machine building an XML tree from lexer symbols."""

    def __init__(self) -> None:
        self.root: XmlNode | None = None
        self._stack: list[_Open] = []
        self._state = _State.START
        self._attr_name: str | None = None

    @staticmethod
    def _expect(expected: XmlSymbol, given: XmlSymbol) -> None:
        if expected is not given:
            raise XmlSyntaxError(f"error: Expected '{expected}', got '{given}' instead.")

    def _after_close(self) -> None:
        self._state = _State.GET_POSSIBLE_CONTENT if self._stack else _State.START

    def _finish(self, entry: _Open) -> None:
        node = entry.node
        if node.node_type is XmlNodeType.STRING:
            node.set_content(XmlNodeType.STRING, b"".join(entry.pieces))
        elif node.node_type is XmlNodeType.ARRAY and entry.pieces:
            node.set_content(XmlNodeType.ARRAY, b"".join(entry.pieces))

    def _add_partial(self, entry: _Open, text: bytes) -> None:
        node = entry.node
        node_type = node.node_type
        if node_type is XmlNodeType.EMPTY:
            raise XmlSyntaxError("error: Empty node can't have content.")
        if node_type in (XmlNodeType.STRING, XmlNodeType.ARRAY):
            entry.pieces.append(text)
            return
        if node.has_content:
            raise XmlSyntaxError("error: Only strings and arrays are allowed to be splitted.")
        if node_type not in _NUMERIC_RANGES:
            raise XmlSyntaxError(
                f"error: Node of type {type_to_name(node_type)} can't have content."
            )

        match = _NUMBER_RE.match(text)
        if match is None:
            raise XmlSyntaxError("error: Invalid numerical constant.")
        value = int(match.group(1))
        if not _LONG_MIN <= value <= _LONG_MAX:
            log.warning("Numerical value out of specified range.")
            value = max(_LONG_MIN, min(_LONG_MAX, value))
        elif match.end() != len(text):
            raise XmlSyntaxError("error: Invalid numerical constant.")
        else:
            low, high = _NUMERIC_RANGES[node_type]
            if not low <= value <= high:
                log.warning("Numerical value out of specified range.")
        node.set_content(node_type, value)

    def process(self, symbol: XmlSymbol, text: bytes = b"") -> None:
        """Feed one symbol; raises XmlSyntaxError if it doesn't fit."""
        state = self._state

        if state is _State.START:
            if symbol is XmlSymbol.EOF:
                if self.root is None:
                    raise XmlSyntaxError("error: Root element missing.")
                return
            if not self._stack:
                self._expect(XmlSymbol.TAG_OPEN, symbol)
            self._state = _State.TAG_OPENED

        elif state is _State.TAG_OPENED:
            self._expect(XmlSymbol.TEXT, symbol)
            self._state = _State.INSIDE_TAG
            node = XmlNode(_decode(text))
            if not self._stack:
                if self.root is not None:
                    raise XmlSyntaxError("error: More than one root element found.")
                self.root = node
            else:
                self._stack[-1].node.add_child(node)
            self._stack.append(_Open(node))

        elif state is _State.INSIDE_TAG:
            if symbol in (XmlSymbol.TAG_CLOSE, XmlSymbol.TAG_CLOSE_SOLO_TAG):
                if symbol is XmlSymbol.TAG_CLOSE_SOLO_TAG:
                    self._finish(self._stack.pop())
                self._after_close()
            elif symbol is XmlSymbol.TEXT:
                self._attr_name = _decode(text)
                self._state = _State.GET_ATTR_EQ
            else:
                raise XmlSyntaxError(f"error: Unexpected symbol '{symbol}' inside a tag.")

        elif state is _State.GET_ATTR_EQ:
            self._expect(XmlSymbol.EQ, symbol)
            self._state = _State.GET_ATTR_VAL

        elif state is _State.GET_ATTR_VAL:
            self._expect(XmlSymbol.TEXT, symbol)
            self._state = _State.INSIDE_TAG
            try:
                self._stack[-1].node.add_attribute(self._attr_name or "", _decode(text))
            except XmlSyntaxError:
                raise
            except XmlError as exc:
                raise XmlSyntaxError(f"error: {exc}") from exc

        elif state is _State.GET_POSSIBLE_CONTENT:
            if symbol is XmlSymbol.TEXT:
                self._add_partial(self._stack[-1], text)
            elif symbol is XmlSymbol.TAG_OPEN:
                self._state = _State.TAG_OPENED
            elif symbol is XmlSymbol.TAG_OPEN_END_TAG:
                self._state = _State.END_TAG_OPENED
            else:
                raise XmlSyntaxError(
                    f"error: Unexpected symbol '{symbol}' found inside tag content."
                )

        elif state is _State.END_TAG_OPENED:
            self._expect(XmlSymbol.TEXT, symbol)
            name = (self._stack[-1].node.name or "").encode("latin-1")
            # only as many characters as the closing tag has are compared
            if not name.startswith(text):
                raise XmlSyntaxError("error: Closing tag doesn't match opening.")
            self._state = _State.EXPECT_END_TAG_CLOSE

        elif state is _State.EXPECT_END_TAG_CLOSE:
            self._expect(XmlSymbol.TAG_CLOSE, symbol)
            self._finish(self._stack.pop())
            self._after_close()


SymbolHandler = Callable[[XmlSymbol, bytes], object]


def parse_xml(
    data: bytes, name: str = "", handler: SymbolHandler | None = None
) -> XmlNode | None:
    """Parse XML bytes and return the root node.

    With ``handler`` given, every symbol (EOF included) goes to it instead of
    the tree builder and None is returned; a handler returning False stops
    parsing with an XmlSyntaxError.
    """
    lexer = Lexer(data, name)
    parser = Parser() if handler is None else None
    process = parser.process if parser is not None else handler

    for symbol, text in lexer.symbols():
        try:
            accepted = process(symbol, text)
        except XmlSyntaxError as exc:
            if exc.line is None:
                raise XmlSyntaxError(exc.message, lexer.file, lexer.line) from exc
            raise
        if accepted is False:
            raise XmlSyntaxError(f"Symbol '{symbol}' rejected.", lexer.file, lexer.line)

    if parser is None:
        return None
    root = parser.root
    if root is not None:
        root.reverse_children()
    return root


def load_xml(path: str | os.PathLike, handler: SymbolHandler | None = None) -> XmlNode | None:
    """Read and parse the XML file at ``path``."""
    with open(path, "rb") as f:
        data = f.read()
    return parse_xml(data, os.fspath(path), handler)
import pytest
from hypothesis import given, strategies as st

from zkbintools.xmltree import (
    XmlError,
    XmlNode,
    XmlNodeType,
    merge_trees,
    type_from_name,
    type_to_name,
)


def _node(name, node_type, content):
    node = XmlNode(name)
    node.set_content(node_type, content)
    return node


@pytest.mark.parametrize(
    "name,node_type",
    [
        ("char", XmlNodeType.CHAR),
        ("short", XmlNodeType.SHORT),
        ("int", XmlNodeType.INT),
        ("string", XmlNodeType.STRING),
        ("array", XmlNodeType.ARRAY),
        ("empty", XmlNodeType.EMPTY),
    ],
)
def test_type_names_round_trip(name, node_type):
    assert type_from_name(name) is node_type
    assert type_to_name(node_type) == name


def test_function_type_is_written_but_not_accepted():
    assert type_to_name(XmlNodeType.FUNC) == "function"
    with pytest.raises(XmlError):
        type_from_name("function")


def test_unknown_type_number_maps_to_empty():
    assert type_to_name(42) == "empty"


def test_type_attribute_sets_node_type():
    node = XmlNode("message")
    node.add_attribute("from", "another_time")
    node.add_attribute("type", "string")
    assert node.node_type is XmlNodeType.STRING
    assert node.get_attribute("type") == "string"
    assert node.get_attribute("from") == "another_time"
    assert node.get_attribute("missing") is None


def test_invalid_type_attribute_is_rejected():
    node = XmlNode("bad")
    with pytest.raises(XmlError):
        node.add_attribute("type", "float")
    assert node.get_attribute("type") is None


def test_duplicate_attribute_is_rejected():
    node = XmlNode("single")
    node.add_attribute("ondelete", "fast_delete()")
    with pytest.raises(XmlError):
        node.add_attribute("ondelete", "other")
    assert node.get_attribute("ondelete") == "fast_delete()"


@pytest.mark.parametrize(
    "node_type,value,expected",
    [
        (XmlNodeType.CHAR, -99, -99),
        (XmlNodeType.CHAR, 24, 24),
        (XmlNodeType.SHORT, -25000, -25000),
        (XmlNodeType.SHORT, 6072, 6072),
        (XmlNodeType.INT, -5000000, -5000000),
        (XmlNodeType.INT, -2147483648, -2147483648),
        (XmlNodeType.CHAR, 300, 44),
    ],
)
def test_numeric_content(node_type, value, expected):
    node = _node("n", node_type, value)
    assert node.value == expected
    assert node.length == {XmlNodeType.CHAR: 1, XmlNodeType.SHORT: 2, XmlNodeType.INT: 4}[node_type]


@given(st.integers(min_value=-(2**31), max_value=2**31 - 1))
def test_int_content_preserved(value):
    node = _node("i", XmlNodeType.INT, value)
    assert node.value == value
    assert int.from_bytes(node.raw_bytes(), "little", signed=True) == value


def test_string_content_length_counts_terminator():
    node = _node("s", XmlNodeType.STRING, b"hello")
    assert node.length == 6
    assert node.raw_bytes() == b"hello\0"
    assert node.has_content


def test_empty_string_has_no_content():
    node = _node("s", XmlNodeType.STRING, b"")
    assert not node.has_content


def test_empty_node_cannot_take_content():
    node = XmlNode("e")
    with pytest.raises(XmlError):
        node.set_content(XmlNodeType.EMPTY, b"x")


def test_add_child_prepends_and_reverse_restores_order():
    root = XmlNode("root")
    for name in ("a", "b", "c"):
        child = XmlNode(name)
        child.add_child(XmlNode(name + "1")).add_child(XmlNode(name + "2"))
        root.add_child(child)
    assert [c.name for c in root.children] == ["c", "b", "a"]
    root.reverse_children()
    assert [c.name for c in root.children] == ["a", "b", "c"]
    assert [c.name for c in root.children[0].children] == ["a1", "a2"]


def test_snapshot_and_modification_detection():
    root = XmlNode("root")
    leaf = _node("value", XmlNodeType.INT, 5)
    root.add_child(leaf)
    assert not root.unmodified()
    root.snapshot()
    assert root.unmodified()
    leaf.value = 6
    assert not root.unmodified()
    root.snapshot()
    assert root.unmodified()


def test_func_node_refresh():
    block = (7).to_bytes(2, "little", signed=True) + b"ab\0" + b"\xff"
    node = XmlNode("game")
    node.set_func(lambda: block)
    node.children = [
        XmlNode("version", XmlNodeType.SHORT, 2, allocate=True),
        XmlNode("name", XmlNodeType.STRING, 3, allocate=True),
        XmlNode("flag", XmlNodeType.CHAR, 1, allocate=True),
    ]
    node.refresh_func_data()
    assert [c.value for c in node.children] == [7, b"ab", -1]
    assert node.node_type is XmlNodeType.FUNC


def test_refresh_requires_function_node():
    with pytest.raises(XmlError):
        XmlNode("plain").refresh_func_data()


def test_merge_same_type_and_by_name():
    dest = XmlNode("root")
    dest.children = [
        XmlNode("a", XmlNodeType.INT, 4, allocate=True),
        XmlNode("b", XmlNodeType.SHORT, 2, allocate=True),
    ]
    src = XmlNode("root")
    src.children = [_node("b", XmlNodeType.SHORT, 123), _node("c", XmlNodeType.INT, 9)]
    merge_trees(dest, src)
    assert dest.children[0].value == 0
    assert dest.children[1].value == 123


@pytest.mark.parametrize(
    "text,expected",
    [(b"0x1F", 31), (b"-12abc", -12), (b"017", 15), (b"  42", 42), (b"junk", 0)],
)
def test_merge_string_into_int(text, expected):
    dest = XmlNode("v", XmlNodeType.INT, 4, allocate=True)
    merge_trees(dest, _node("v", XmlNodeType.STRING, text))
    assert dest.value == expected


def test_merge_narrows_numbers():
    char = XmlNode("v", XmlNodeType.CHAR, 1, allocate=True)
    merge_trees(char, _node("v", XmlNodeType.INT, 300))
    assert char.value == 44
    short = XmlNode("v", XmlNodeType.SHORT, 2, allocate=True)
    merge_trees(short, _node("v", XmlNodeType.INT, 70000))
    assert short.value == 4464


def test_merge_number_into_string_truncates():
    dest = XmlNode("v", XmlNodeType.STRING, 4, allocate=True)
    merge_trees(dest, _node("v", XmlNodeType.INT, 12345))
    assert dest.value == b"123"


def test_merge_string_into_shorter_string():
    dest = XmlNode("v", XmlNodeType.STRING, 4, allocate=True)
    merge_trees(dest, _node("v", XmlNodeType.STRING, b"abcdef"))
    assert dest.value == b"abc"


def test_merge_string_into_array_pads_with_zeros():
    dest = XmlNode("v", XmlNodeType.ARRAY, 6, allocate=True)
    dest.value = b"zzzzzz"
    merge_trees(dest, _node("v", XmlNodeType.STRING, b"ab"))
    assert dest.value == b"ab\0\0\0\0"


def test_merge_recurses_into_children():
    dest = XmlNode("root")
    inner = XmlNode("inner")
    inner.add_child(XmlNode("x", XmlNodeType.CHAR, 1, allocate=True))
    dest.add_child(inner)
    src = XmlNode("root")
    src_inner = XmlNode("inner")
    src_inner.add_child(_node("x", XmlNodeType.CHAR, -5))
    src.add_child(src_inner)
    merge_trees(dest, src)
    assert dest.children[0].children[0].value == -5


def test_merge_with_no_source_changes_nothing():
    dest = _node("v", XmlNodeType.INT, 3)
    merge_trees(dest, None)
    assert dest.value == 3
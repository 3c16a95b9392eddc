# zkbintools

Tools for inspecting ZK binary files, plus a small reader and writer for
typed XML trees.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Command-line tool: bindmp

`bindmp` dumps the contents of a ZK binary file:

- the header fields, with the stored checksum and the recomputed one
- a hex dump of the code and data section
- the data and fill blocks of the patch data
- the six relocation tables, each with the value found at the relocated spot

```
bindmp program.bin
```

The dump goes to standard output; the banner and any error go to standard
error. The exit status is 1 if the file can't be read, is not a well-formed
ZK binary, or has a relocation pointing outside its section, and 0 otherwise.

## Library use

### ZK binaries

```python
from zkbintools.zkformat import ZkHeader, checksum
from zkbintools.bindmp import dump

data = open("program.bin", "rb").read()
header = ZkHeader.from_bytes(data)      # raises ZkFormatError on a bad signature
text, valid = dump(data, "program.bin") # the same text bindmp prints
```

- `ZkHeader.to_bytes()` gives the little-endian on-disk form of a header.
- `checksum(seed, index, data)` continues the rolling checksum over `data`;
  `index` is the position of the first byte of `data` in the checksummed
  stream.
- `hex_dump(data)` and `format_patch_data(data)` in `zkbintools.bindmp`
  render the pieces of the dump separately.

### Typed XML trees

```python
from zkbintools.xmlparse import load_xml
from zkbintools.xmlwrite import save_xml, write_tree

root = load_xml("options.xml")           # raises XmlSyntaxError if malformed
save_xml(root, "options.xml", True)      # skipped if nothing changed
```

Node types are set with a `type` attribute: `char`, `short`, `int`,
`string`, `array` or `empty`. Numeric nodes hold an `int`, string and array
nodes hold `bytes`.

- `parse_xml(data, name, handler)` parses bytes; with a `handler`, every
  symbol (end of file included) goes to it instead of the tree builder.
  `Lexer(data).symbols()` yields the `(XmlSymbol, bytes)` pairs directly.
- `XmlNode` offers `add_child`, `add_attribute`, `get_attribute`,
  `set_content`, `set_func`, `snapshot`, `unmodified` and
  `reverse_children`.
- `merge_trees(dest, src)` copies values from `src` into the nodes of `dest`
  with the same names, converting between types where they differ.
- `write_tree(node)` returns the XML as bytes; `save_xml(root, path,
  check_if_needed)` writes it to a file, snapshots the tree, and returns
  False if the write was skipped because the tree was unmodified.

## What this package does not do

It does not create ZK binaries. There is no converter from executables to
the ZK format; the package only reads, checks and dumps ZK files that already
exist.
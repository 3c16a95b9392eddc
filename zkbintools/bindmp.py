"""Dump the contents of a ZK binary file in readable form."""

from __future__ import annotations

import struct
import sys

from .zkformat import ZkFormatError, ZkHeader, checksum

_DWORD = struct.Struct("<I")
_TERMINATOR = 0xFFFFFFFF

_RELOC_TITLES = (
    "Relocations code & data => SWOS code",
    "Relocations code & data => SWOS data",
    "Relocations code & data => SWOS++ load address",
    "Relocations patch data => SWOS code",
    "Relocations patch data => SWOS data",
    "Relocations patch data => SWOS++ load address",
)


def _signed(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def hex_dump(data: bytes) -> str:
    """Return a classic 16-bytes-per-line hex dump of ``data``."""
    lines = []
    for start in range(0, len(data), 16):
        chunk = data[start:start + 16]
        hex_part = "".join(f" {b:02x}" for b in chunk)
        padding = "   " * (16 - len(chunk))
        text = "".join("." if b < 32 or b > 127 else chr(b) for b in chunk)
        lines.append(f"0x{start:08x}:{hex_part} {padding}{text}\n")
    return "".join(lines)


def format_patch_data(data: bytes) -> str:
    """Describe the data and fill blocks of a patch data section."""
    out = []
    pos = 0
    consumed = 0
    while consumed < len(data):
        if pos + 5 > len(data):
            raise ZkFormatError("Patch data truncated.")
        size = data[pos]
        addr = _DWORD.unpack_from(data, pos + 1)[0]
        pos += 5
        if addr == _TERMINATOR:
            break
        kind = "[data block] " if size else "[fill block] "
        out.append(f"{kind}offset: 0x{addr:08x} ")
        if size:
            block = data[pos:pos + size]
            if len(block) < size:
                raise ZkFormatError("Patch data truncated.")
            out.append(f"length: {size}\n")
            out.append(hex_dump(block))
            pos += size
            consumed += size + 5
        else:
            if pos + 2 > len(data):
                raise ZkFormatError("Patch data truncated.")
            out.append(f"repeat value {data[pos]}, fill value 0x{data[pos + 1]:02x}\n")
            pos += 2
            consumed += 7
    return "".join(out)


def _format_relocs(contents: bytes, pos: int, section: bytes) -> tuple[str, int, bool]:
    limit = len(section)
    out = []
    valid = True
    while pos + 4 <= len(contents):
        value = _DWORD.unpack_from(contents, pos)[0]
        pos += 4
        if value == _TERMINATOR:
            return "".join(out), pos, valid
        if _signed(value) > limit - 4 or _signed(value) < 0:
            out.append(f"<< INVALID RELOCATION >> 0x{value:08x} > 0x{limit & 0xFFFFFFFF:08x}\n")
            valid = False
        else:
            target = _DWORD.unpack_from(section, value)[0]
            out.append(f"0x{value:08x} [{target:08x}]\n")
    raise ZkFormatError("Invalid relocation section, terminator is missing!")


def _region(contents: bytes, offset: int, size: int, what: str) -> bytes:
    if offset + size > len(contents):
        raise ZkFormatError(
            f"{what} (offset {offset}, size {size}) extends past end of file."
        )
    return contents[offset:offset + size]


def dump(data: bytes, name: str) -> tuple[str, bool]:
    """Render a full dump of a ZK binary.

    Returns the dump text and whether all relocations were valid.
    """
    zk = ZkHeader.from_bytes(data)
    code = _region(data, zk.code_offset, zk.code_size, "Code section")
    patch = _region(data, zk.patch_offset, zk.patch_size, "Patch section")
    relocs = _region(data, zk.reloc_offset, zk.reloc_size, "Relocation section")

    c = checksum(0, 0, code)
    c = checksum(c, zk.code_size, patch)
    c = checksum(c, zk.code_size + zk.patch_size, relocs)

    out = [
        f"[{name}]\n\n",
        f"File size:             {len(data)}\n",
        f"Signature:             {zk.signature.decode('latin-1')}\n",
        f"Version:               {zk.ver_major}.{zk.ver_minor}\n",
        f"Header size:           {_signed(zk.header_size)}\n",
        f"Checksum:              {zk.checksum} ({c})\n",
        f"Offset to code:        {_signed(zk.code_offset)}\n",
        f"Size of code:          {_signed(zk.code_size)}\n",
        f"Offset to patch data:  {_signed(zk.patch_offset)}\n",
        f"Size of patch data:    {_signed(zk.patch_size)}\n",
        f"Offset to relocations: {_signed(zk.reloc_offset)}\n",
        f"Size of relocations:   {_signed(zk.reloc_size)}\n",
        f"BSS size:              {_signed(zk.bss_size)}\n",
        f"Entry point:           {_signed(zk.entry_point)}\n",
        "\n\n",
        "Code and data section hex dump:\n\n",
        hex_dump(code),
        "\nPatch data:\n\n",
        format_patch_data(patch),
    ]

    valid = True
    pos = zk.reloc_offset
    for index, title in enumerate(_RELOC_TITLES):
        section = code if index < 3 else patch
        out.append(f"\n{title}\n")
        text, pos, ok = _format_relocs(data, pos, section)
        out.append(text)
        valid = valid and ok

    return "".join(out), valid


def main(argv: list[str] | None = None) -> int:
    """Command-line entry: dump the ZK file named by the first argument."""
    args = sys.argv[1:] if argv is None else list(argv)
    sys.stderr.write("bindmp - utility for dumping ZK binary files\n\n")

    if not args:
        sys.stderr.write("Input filename missing.\n")
        return 1

    path = args[0]
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError:
        sys.stderr.write(f"Can't open {path}.\n")
        return 1

    try:
        text, valid = dump(data, path)
    except ZkFormatError as exc:
        sys.stderr.write(f"{exc}\n")
        return 1

    sys.stdout.write(text)
    return 0 if valid else 1


if __name__ == "__main__":
    sys.exit(main())
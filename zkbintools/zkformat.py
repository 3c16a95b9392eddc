"""ZK binary format: header layout and checksum."""

from __future__ import annotations

import struct
from dataclasses import dataclass

SIGNATURE = b"ZKBF"
_HEADER_STRUCT = struct.Struct("<4sHH10I")
HEADER_SIZE = _HEADER_STRUCT.size

_MASK = 0xFFFFFFFF


class ZkFormatError(ValueError):
    """Raised when data is not a well-formed ZK binary."""


@dataclass
class ZkHeader:
    """Fixed-size header at the start of every ZK binary file."""

    signature: bytes = SIGNATURE
    ver_major: int = 1
    ver_minor: int = 0
    header_size: int = HEADER_SIZE
    checksum: int = 0
    code_offset: int = HEADER_SIZE
    code_size: int = 0
    patch_offset: int = HEADER_SIZE
    patch_size: int = 0
    reloc_offset: int = HEADER_SIZE
    reloc_size: int = 0
    bss_size: int = 0
    entry_point: int = 0

    @classmethod
    def from_bytes(cls, data: bytes) -> "ZkHeader":
        """Parse a header from the start of ``data``, checking its signature."""
        if len(data) < HEADER_SIZE:
            raise ZkFormatError(
                f"File too short for a ZK header ({len(data)} < {HEADER_SIZE} bytes)."
            )
        fields = _HEADER_STRUCT.unpack_from(data, 0)
        if fields[0] != SIGNATURE:
            shown = fields[0].decode("latin-1")
            raise ZkFormatError(f"Invalid ZK signature: {shown}")
        return cls(*fields)

    def to_bytes(self) -> bytes:
        """Serialize the header to its little-endian on-disk form."""
        return _HEADER_STRUCT.pack(
            self.signature,
            self.ver_major,
            self.ver_minor,
            self.header_size & _MASK,
            self.checksum & _MASK,
            self.code_offset & _MASK,
            self.code_size & _MASK,
            self.patch_offset & _MASK,
            self.patch_size & _MASK,
            self.reloc_offset & _MASK,
            self.reloc_size & _MASK,
            self.bss_size & _MASK,
            self.entry_point & _MASK,
        )


def checksum(seed: int, index: int, data: bytes) -> int:
    """Continue the ZK rolling checksum over ``data``.

    ``seed`` is the running value and ``index`` the position of the first
    byte of ``data`` within the checksummed stream. Returns an unsigned
    32-bit value.
    """
    c = seed & _MASK
    for byte in data:
        v = (index + byte) & _MASK
        c = (c + v) & _MASK
        c = ((c << 1) | (c >> 31)) & _MASK
        c ^= v
        index += 1
    return c
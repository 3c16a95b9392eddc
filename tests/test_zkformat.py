import pytest
from hypothesis import given, strategies as st

from zkbintools.zkformat import (
    HEADER_SIZE,
    ZkFormatError,
    ZkHeader,
    checksum,
)


def test_header_size_matches_packed_layout():
    assert HEADER_SIZE == 48
    assert len(ZkHeader().to_bytes()) == HEADER_SIZE


def test_header_starts_with_signature():
    assert ZkHeader().to_bytes()[:4] == b"ZKBF"


def test_header_round_trip():
    header = ZkHeader(
        checksum=0xDEADBEEF,
        code_size=100,
        patch_offset=148,
        patch_size=20,
        reloc_offset=168,
        reloc_size=24,
        bss_size=4096,
        entry_point=12,
    )
    assert ZkHeader.from_bytes(header.to_bytes()) == header


def test_header_parses_with_trailing_data():
    header = ZkHeader(code_size=7)
    parsed = ZkHeader.from_bytes(header.to_bytes() + b"\x00" * 10)
    assert parsed.code_size == 7


def test_header_rejects_bad_signature():
    data = b"ABCD" + ZkHeader().to_bytes()[4:]
    with pytest.raises(ZkFormatError, match="Invalid ZK signature"):
        ZkHeader.from_bytes(data)


def test_header_rejects_short_data():
    with pytest.raises(ZkFormatError):
        ZkHeader.from_bytes(b"ZKBF")


def test_checksum_of_empty_returns_seed():
    assert checksum(12345, 7, b"") == 12345


def test_checksum_single_byte():
    assert checksum(0, 0, b"\x01") == 3


@given(st.binary(max_size=64), st.binary(max_size=64), st.integers(0, 2**32 - 1))
def test_checksum_chains(a, b, seed):
    whole = checksum(seed, 0, a + b)
    chained = checksum(checksum(seed, 0, a), len(a), b)
    assert whole == chained


@given(st.binary(max_size=128), st.integers(0, 2**32 - 1), st.integers(0, 1000))
def test_checksum_is_32_bit(data, seed, index):
    assert 0 <= checksum(seed, index, data) < 2**32


def test_checksum_depends_on_index():
    data = b"hello"
    assert checksum(0, 0, data) != checksum(0, 1, data)
"""
Canonical RLP encoding for proofs and headers.

Thin layer over pyrlp that fixes the integer convention used throughout the
project (minimal big-endian, zero as the empty string) and turns every
decoding failure into a DecodeError. Decoded items are either ``bytes``
(a byte-string node) or ``list`` (a list node).
"""

from typing import List, Sequence, Union

import rlp
from rlp.exceptions import DecodingError, EncodingError, SerializationError
from rlp.sedes import big_endian_int

from storage_proofs.shared.exceptions import DecodeError

RLPItem = Union[bytes, List["RLPItem"]]
Encodable = Union[bytes, bytearray, int, Sequence["Encodable"]]


def int_to_bytes(value: int) -> bytes:
    """Minimal big-endian form of a non-negative integer; 0 -> b''."""
    if value < 0:
        raise ValueError(f"Cannot encode negative integer {value}")
    return big_endian_int.serialize(value)


def _normalize(item: Encodable) -> RLPItem:
    if isinstance(item, bool):
        raise TypeError("Booleans have no RLP representation")
    if isinstance(item, int):
        return int_to_bytes(item)
    if isinstance(item, (bytes, bytearray)):
        return bytes(item)
    if isinstance(item, (list, tuple)):
        return [_normalize(child) for child in item]
    raise TypeError(f"Cannot RLP-encode value of type {type(item).__name__}")


def encode(item: Encodable) -> bytes:
    """RLP-encode a byte-string, integer, or (nested) list of those."""
    try:
        return rlp.encode(_normalize(item))
    except (EncodingError, SerializationError) as e:
        raise ValueError(f"RLP encoding failed: {e}") from e


def decode(data: bytes) -> RLPItem:
    """
    Decode canonical RLP.

    Raises:
        DecodeError: truncated input, trailing bytes, or a non-minimal
            length prefix.
    """
    if not data:
        raise DecodeError("Cannot decode empty input")
    try:
        return rlp.decode(bytes(data), strict=True)
    except (DecodingError, IndexError) as e:
        raise DecodeError(f"Invalid RLP: {e}") from e


def decode_int(data: bytes) -> int:
    """Inverse of int_to_bytes, rejecting leading zero bytes."""
    if data[:1] == b"\x00":
        raise DecodeError("Integer encoded with a leading zero byte")
    return int.from_bytes(data, "big")


def reencode_list(encoded_items: Sequence[bytes]) -> bytes:
    """
    Wrap independently encoded items into one RLP list.

    Each item is decoded first so the result is byte-identical to encoding
    the decoded structures directly.
    """
    return encode([decode(item) for item in encoded_items])

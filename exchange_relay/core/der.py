"""Conversion of DER-encoded ECDSA signatures to the JOSE compact form."""

from __future__ import annotations

from .errors import SigningError

_SEQUENCE = 0x30
_INTEGER = 0x02


def _read_length(der: bytes, offset: int) -> tuple[int, int]:
    if offset >= len(der):
        raise SigningError("Invalid DER signature: truncated length")
    first = der[offset]
    offset += 1
    if not first & 0x80:
        return first, offset

    num_bytes = first & 0x7F
    if num_bytes == 0 or num_bytes > 4:
        raise SigningError("Invalid DER signature: unsupported length encoding")
    if offset + num_bytes > len(der):
        raise SigningError("Invalid DER signature: truncated length")
    length = int.from_bytes(der[offset : offset + num_bytes], "big")
    return length, offset + num_bytes


def _read_integer(der: bytes, offset: int) -> tuple[bytes, int]:
    if offset >= len(der) or der[offset] != _INTEGER:
        raise SigningError("Invalid DER signature: expected INTEGER")
    length, offset = _read_length(der, offset + 1)
    end = offset + length
    if end > len(der):
        raise SigningError("Invalid DER signature: truncated INTEGER")
    return der[offset:end], end


def der_to_jose(der: bytes, part_length: int = 32) -> bytes:
    """Return ``r || s`` with each half left-padded to ``part_length`` bytes.

    ``der`` must be a ``SEQUENCE { INTEGER r, INTEGER s }`` as produced by
    ECDSA signers. Raises :class:`SigningError` on any structural problem.
    """

    if not der or der[0] != _SEQUENCE:
        raise SigningError("Invalid DER signature: expected SEQUENCE")
    seq_length, offset = _read_length(der, 1)
    seq_end = offset + seq_length
    if seq_end > len(der):
        raise SigningError("Invalid DER signature: truncated SEQUENCE")
    if seq_end != len(der):
        raise SigningError("Invalid DER signature: trailing bytes after SEQUENCE")

    r, offset = _read_integer(der, offset)
    s, offset = _read_integer(der, offset)
    if offset != seq_end:
        raise SigningError("Invalid DER signature: trailing bytes inside SEQUENCE")

    parts = []
    for value in (r, s):
        value = value.lstrip(b"\x00")
        if len(value) > part_length:
            raise SigningError("Invalid DER signature: integer exceeds curve size")
        parts.append(value.rjust(part_length, b"\x00"))
    return parts[0] + parts[1]


__all__ = ["der_to_jose"]

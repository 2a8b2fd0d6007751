from __future__ import annotations

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature, encode_dss_signature

from exchange_relay.core.der import der_to_jose
from exchange_relay.core.errors import SigningError

from .fakes import ec_private_key_pem


def _der_integer(value: bytes) -> bytes:
    return bytes([0x02, len(value)]) + value


def _der_signature(r: bytes, s: bytes, long_form: bool = False) -> bytes:
    body = _der_integer(r) + _der_integer(s)
    if long_form:
        return bytes([0x30, 0x81, len(body)]) + body
    return bytes([0x30, len(body)]) + body


SAMPLES = [
    b"\x01",
    b"\x00\x80" + b"\x11" * 31,
    b"\x7f" * 32,
    b"\x00" + b"\xff" * 32,
    b"\x00\x00\x05",
    bytes(range(1, 21)),
]


def test_output_is_fixed_length_and_recovers_integers() -> None:
    for r in SAMPLES:
        for s in SAMPLES:
            jose = der_to_jose(_der_signature(r, s), 32)
            assert len(jose) == 64
            assert jose[:32].lstrip(b"\x00") == r.lstrip(b"\x00")
            assert jose[32:].lstrip(b"\x00") == s.lstrip(b"\x00")


def test_long_form_sequence_length() -> None:
    r = b"\x00" + b"\xaa" * 32
    s = b"\x00" + b"\xbb" * 32
    jose = der_to_jose(_der_signature(r, s, long_form=True), 32)
    assert jose == b"\xaa" * 32 + b"\xbb" * 32


def test_matches_cryptography_encoding() -> None:
    _, key = ec_private_key_pem()
    der = key.sign(b"payload", ec.ECDSA(hashes.SHA256()))
    r, s = decode_dss_signature(der)
    jose = der_to_jose(der, 32)
    assert int.from_bytes(jose[:32], "big") == r
    assert int.from_bytes(jose[32:], "big") == s
    rebuilt = encode_dss_signature(int.from_bytes(jose[:32], "big"), int.from_bytes(jose[32:], "big"))
    key.public_key().verify(rebuilt, b"payload", ec.ECDSA(hashes.SHA256()))


@pytest.mark.parametrize(
    "der",
    [
        b"",
        b"\x31\x06\x02\x01\x01\x02\x01\x01",
        b"\x30\x06\x03\x01\x01\x02\x01\x01",
        b"\x30\x06\x02\x01\x01\x04\x01\x01",
        b"\x30\x06\x02\x01\x01\x02\x05\x01",
        b"\x30\x40\x02\x01\x01\x02\x01\x01",
        b"\x30\x06\x02\x01\x01",
        b"\x30",
        b"\x30\x85\x00\x00\x00\x00\x06",
    ],
)
def test_malformed_input_raises_signing_error(der: bytes) -> None:
    with pytest.raises(SigningError):
        der_to_jose(der, 32)


def test_integer_wider_than_curve_is_rejected() -> None:
    with pytest.raises(SigningError):
        der_to_jose(_der_signature(b"\x01" * 33, b"\x01"), 32)


def test_integers_must_fit_inside_declared_sequence() -> None:
    with pytest.raises(SigningError):
        der_to_jose(b"\x30\x00\x02\x01\x01\x02\x01\x01", 32)
    with pytest.raises(SigningError):
        der_to_jose(b"\x30\x03\x02\x01\x01\x02\x01\x01", 32)


def test_trailing_bytes_are_rejected() -> None:
    with pytest.raises(SigningError):
        der_to_jose(_der_signature(b"\x01", b"\x02") + b"\x00", 32)
    with pytest.raises(SigningError):
        der_to_jose(b"\x30\x07\x02\x01\x01\x02\x01\x01\x00", 32)

"""Signature verification tests for secp256k1 and P-256 label keys."""

import base58
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from conftest import base_label

from labeler_audit import (
    VerificationError,
    did_key_from_multibase,
    encode_signable,
    format_did_key,
    parse_did_key,
    reduce_label,
    sign_label,
    verify_label,
    verify_signature,
)
from labeler_audit.keys import P256, SECP256K1
from labeler_audit.sign import sign_bytes


def _signable_and_sig(label: dict):
    return reduce_label(label), label["sig"]


def _flip_byte(data: bytes, index: int) -> bytes:
    return data[:index] + bytes([data[index] ^ 0x01]) + data[index + 1:]


def test_secp256k1_valid_signature_passes(signed_label, did_key):
    signable, sig = _signable_and_sig(signed_label())
    assert verify_label(signable, sig, did_key)


def test_p256_valid_signature_passes(p256_key, p256_did_key):
    signable, sig = _signable_and_sig(sign_label(base_label(), p256_key))
    assert verify_label(signable, sig, p256_did_key)


def _did_key_for(private_key) -> str:
    return format_did_key(SECP256K1, private_key.public_key())


def test_wrong_key_fails(signed_label):
    other = ec.generate_private_key(ec.SECP256K1())
    signable, sig = _signable_and_sig(signed_label())
    assert not verify_label(signable, sig, _did_key_for(other))


def test_tampered_label_fails(signed_label, did_key):
    label = signed_label()
    tampered = dict(label, val="spam")
    assert not verify_label(reduce_label(tampered), label["sig"], did_key)


def test_any_flipped_payload_byte_fails(labeler_key, did_key):
    message = encode_signable(reduce_label(base_label()))
    sig = sign_bytes(labeler_key, message)
    assert verify_signature(did_key, message, sig)
    for index in range(len(message)):
        assert not verify_signature(did_key, _flip_byte(message, index), sig)


def test_tampered_signature_fails(signed_label, did_key):
    signable, sig = _signable_and_sig(signed_label())
    assert not verify_label(signable, _flip_byte(sig, 10), did_key)


def test_wrong_length_signature_fails(signed_label, did_key):
    signable, sig = _signable_and_sig(signed_label())
    assert not verify_label(signable, sig[:63], did_key)
    assert not verify_label(signable, b"", did_key)


def test_high_s_signature_fails(signed_label, did_key):
    """The same signature with s replaced by n - s is valid ECDSA but not canonical."""
    signable, sig = _signable_and_sig(signed_label())
    s = int.from_bytes(sig[32:], "big")
    high_s = sig[:32] + (SECP256K1.order - s).to_bytes(32, "big")
    assert not verify_label(signable, high_s, did_key)


def test_sign_bytes_is_low_s(labeler_key):
    for _ in range(10):
        sig = sign_bytes(labeler_key, b"payload")
        assert int.from_bytes(sig[32:], "big") <= SECP256K1.order // 2


class TestKeyMaterial:
    """Malformed keys raise instead of returning False."""

    def test_not_a_did_key(self, signed_label):
        signable, sig = _signable_and_sig(signed_label())
        with pytest.raises(VerificationError):
            verify_label(signable, sig, "did:plc:notakey")

    def test_bad_multibase_prefix(self):
        with pytest.raises(VerificationError):
            parse_did_key("did:key:m123")

    def test_bad_base58(self):
        with pytest.raises(VerificationError):
            parse_did_key("did:key:z0OIl")

    def test_unknown_multicodec(self):
        key = "did:key:z" + base58.b58encode(b"\xed\x01" + b"\x02" * 32).decode()
        with pytest.raises(VerificationError, match="unsupported key type"):
            parse_did_key(key)

    def test_point_not_on_curve(self):
        key = "did:key:z" + base58.b58encode(SECP256K1.codec + b"\x05" * 33).decode()
        with pytest.raises(VerificationError):
            parse_did_key(key)

    def test_parse_roundtrip(self, did_key):
        assert parse_did_key(did_key).algorithm is SECP256K1

    def test_p256_algorithm(self, p256_did_key):
        assert parse_did_key(p256_did_key).algorithm is P256


class TestDidKeyFromMultibase:

    def test_multikey(self, did_key):
        multibase = did_key[len("did:key:"):]
        assert did_key_from_multibase(multibase, "Multikey") == did_key

    def test_legacy_secp256k1(self, labeler_key, did_key):
        point = labeler_key.public_key().public_bytes(
            encoding=serialization.Encoding.X962,
            format=serialization.PublicFormat.CompressedPoint,
        )
        multibase = "z" + base58.b58encode(point).decode()
        assert did_key_from_multibase(multibase, "EcdsaSecp256k1VerificationKey2019") == did_key

    def test_unsupported_type(self, did_key):
        with pytest.raises(VerificationError):
            did_key_from_multibase(did_key[len("did:key:"):], "JsonWebKey2020")

"""
did:key handling for labeler validation keys.

A did:key wraps a base58btc multibase string ("z" prefix) whose payload is
a multicodec varint followed by a compressed elliptic curve point.
"""

from dataclasses import dataclass

import base58
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from .errors import VerificationError


DID_KEY_PREFIX = "did:key:"
BASE58BTC_PREFIX = "z"

SECP256K1_CODEC = b"\xe7\x01"
P256_CODEC = b"\x80\x24"


@dataclass(frozen=True)
class KeyAlgorithm:
    """An elliptic curve supported for label signatures."""
    name: str
    codec: bytes
    curve: type[ec.EllipticCurve]
    # Group order, used to reject high-S signatures
    order: int


SECP256K1 = KeyAlgorithm(
    name="ES256K",
    codec=SECP256K1_CODEC,
    curve=ec.SECP256K1,
    order=0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141,
)

P256 = KeyAlgorithm(
    name="ES256",
    codec=P256_CODEC,
    curve=ec.SECP256R1,
    order=0xFFFFFFFF00000000FFFFFFFFFFFFFFFFBCE6FAADA7179E84F3B9CAC2FC632551,
)

ALGORITHMS = (SECP256K1, P256)

# Verification method types whose multibase carries a bare compressed key
LEGACY_METHOD_TYPES = {
    "EcdsaSecp256k1VerificationKey2019": SECP256K1,
    "EcdsaSecp256r1VerificationKey2019": P256,
}


@dataclass(frozen=True)
class ParsedKey:
    """A decoded did:key."""
    algorithm: KeyAlgorithm
    public_key: ec.EllipticCurvePublicKey


def _decode_multibase(value: str) -> bytes:
    if not value.startswith(BASE58BTC_PREFIX):
        raise VerificationError(f"unsupported multibase encoding: {value[:1]!r}")
    try:
        return base58.b58decode(value[1:])
    except ValueError as exc:
        raise VerificationError(f"invalid base58btc key ({exc})") from exc


def _encode_multibase(data: bytes) -> str:
    return BASE58BTC_PREFIX + base58.b58encode(data).decode("ascii")


def parse_did_key(did_key: str) -> ParsedKey:
    """
    Decode a did:key into a public key object.

    Args:
        did_key: "did:key:z..." string

    Returns:
        ParsedKey with the curve and loaded public key

    Raises:
        VerificationError: If the key is not a supported did:key
    """
    if not did_key.startswith(DID_KEY_PREFIX):
        raise VerificationError(f"not a did:key: {did_key}")

    decoded = _decode_multibase(did_key[len(DID_KEY_PREFIX):])
    for algorithm in ALGORITHMS:
        if decoded.startswith(algorithm.codec):
            point = decoded[len(algorithm.codec):]
            try:
                public_key = ec.EllipticCurvePublicKey.from_encoded_point(algorithm.curve(), point)
            except ValueError as exc:
                raise VerificationError(f"invalid {algorithm.name} public key ({exc})") from exc
            return ParsedKey(algorithm=algorithm, public_key=public_key)

    raise VerificationError(f"unsupported key type with multicodec prefix {decoded[:2].hex()}")


def format_did_key(algorithm: KeyAlgorithm, public_key: ec.EllipticCurvePublicKey) -> str:
    """Serialize a public key as a did:key string."""
    point = public_key.public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.CompressedPoint,
    )
    return DID_KEY_PREFIX + _encode_multibase(algorithm.codec + point)


def did_key_from_multibase(public_key_multibase: str, method_type: str = "Multikey") -> str:
    """
    Convert a DID document verification method key to a did:key.

    Args:
        public_key_multibase: The method's publicKeyMultibase value
        method_type: The method's type ("Multikey" or a legacy 2019 type)

    Returns:
        did:key string

    Raises:
        VerificationError: If the key cannot be converted
    """
    if method_type == "Multikey":
        did_key = DID_KEY_PREFIX + public_key_multibase
    elif method_type in LEGACY_METHOD_TYPES:
        algorithm = LEGACY_METHOD_TYPES[method_type]
        raw = _decode_multibase(public_key_multibase)
        did_key = DID_KEY_PREFIX + _encode_multibase(algorithm.codec + raw)
    else:
        raise VerificationError(f"unsupported verification method type: {method_type}")

    # Fail early on keys that will never verify anything
    parse_did_key(did_key)
    return did_key

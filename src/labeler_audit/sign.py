"""
Label signing for labeler-audit.

Produces signatures the way a conforming labeler does, so the verifier can
be checked end to end against known-good labels.

SECURITY: Private keys MUST come from a secrets manager in real use.
Never hardcode or commit them.
"""

from typing import Any

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from .canonical import REQUIRED_FIELDS, encode_signable, reduce_label
from .keys import ALGORITHMS, KeyAlgorithm


def algorithm_for(private_key: ec.EllipticCurvePrivateKey) -> KeyAlgorithm:
    """Find the supported algorithm matching a private key's curve."""
    for algorithm in ALGORITHMS:
        if isinstance(private_key.curve, algorithm.curve):
            return algorithm
    raise ValueError(f"unsupported curve: {private_key.curve.name}")


def sign_bytes(private_key: ec.EllipticCurvePrivateKey, message: bytes) -> bytes:
    """
    Sign bytes and return a 64-byte low-S compact signature.

    Args:
        private_key: secp256k1 or P-256 private key
        message: Bytes to sign (hashed with SHA-256)

    Returns:
        `r || s`, each 32 bytes big-endian
    """
    algorithm = algorithm_for(private_key)
    der = private_key.sign(message, ec.ECDSA(hashes.SHA256()))
    r, s = decode_dss_signature(der)
    if s > algorithm.order // 2:
        s = algorithm.order - s
    return r.to_bytes(32, "big") + s.to_bytes(32, "big")


def sign_label(
    label: dict[str, Any],
    private_key: ec.EllipticCurvePrivateKey,
) -> dict[str, Any]:
    """
    Sign a label and return a new label dict carrying `sig`.

    Does not mutate the original label. Fields outside the label schema
    are kept on the returned dict but are not covered by the signature.

    Args:
        label: Label-shaped dict (src, uri, val, cts, ...)
        private_key: Labeler signing key

    Returns:
        New label dict with `sig` set to the raw signature bytes

    Raises:
        ValueError: If the label is missing a required field
    """
    missing = [name for name in REQUIRED_FIELDS if not label.get(name)]
    if missing:
        raise ValueError(f"Label missing {', '.join(missing)}")

    unsigned = {k: v for k, v in label.items() if k != "sig"}
    signature = sign_bytes(private_key, encode_signable(reduce_label(unsigned)))

    signed = dict(unsigned)
    signed["sig"] = signature
    return signed

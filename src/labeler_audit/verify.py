"""
Label signature verification for labeler-audit.

Signatures are compact 64-byte `r || s` ECDSA signatures over the SHA-256
of the DAG-CBOR encoded signable label. Only low-S signatures are accepted.

Pure functions: no network access, no shared state.
"""

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

from .canonical import SignableLabel, encode_signable
from .keys import KeyAlgorithm, parse_did_key


COMPACT_SIGNATURE_LENGTH = 64


def _split_compact_signature(signature: bytes) -> tuple[int, int]:
    half = COMPACT_SIGNATURE_LENGTH // 2
    r = int.from_bytes(signature[:half], "big")
    s = int.from_bytes(signature[half:], "big")
    return r, s


def _is_low_s(algorithm: KeyAlgorithm, s: int) -> bool:
    return 0 < s <= algorithm.order // 2


def verify_signature(did_key: str, message: bytes, signature: bytes) -> bool:
    """
    Check a compact ECDSA signature against a did:key.

    Args:
        did_key: Signer's public key as a did:key string
        message: The signed bytes (hashed with SHA-256 here)
        signature: 64-byte compact signature

    Returns:
        True if the signature is valid and canonical

    Raises:
        VerificationError: If the key material is malformed
    """
    parsed = parse_did_key(did_key)

    if len(signature) != COMPACT_SIGNATURE_LENGTH:
        return False

    r, s = _split_compact_signature(signature)
    if r == 0 or not _is_low_s(parsed.algorithm, s):
        return False

    try:
        parsed.public_key.verify(
            encode_dss_signature(r, s),
            message,
            ec.ECDSA(hashes.SHA256()),
        )
    except InvalidSignature:
        return False
    return True


def verify_label(signable: SignableLabel, signature: bytes, did_key: str) -> bool:
    """
    Verify a label's signature over its canonical signable payload.

    Args:
        signable: Output of `reduce_label`
        signature: The label's `sig` bytes
        did_key: The labeler's validation key

    Returns:
        True if the signature verifies

    Raises:
        VerificationError: On malformed key material or encoding failure
    """
    return verify_signature(did_key, encode_signable(signable), signature)

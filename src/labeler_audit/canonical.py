"""
Canonical signable payloads for AT Protocol labels.

A label signature covers the DAG-CBOR encoding of the label without its
`sig` field and without any field outside the label schema.

Rules:
- `src`, `uri`, `val`, `cts` are always present
- `ver`, `cid`, `neg`, `exp` are present only if the source label set them
- A field carried with no value (None) is omitted, never encoded as null
- Map keys sorted by encoded length, then bytewise (DAG-CBOR)
- Integers use their shortest encoding
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import cbor2

from .errors import VerificationError


REQUIRED_FIELDS = ("src", "uri", "val", "cts")
OPTIONAL_FIELDS = ("ver", "cid", "neg", "exp")
SIGNED_FIELDS = REQUIRED_FIELDS + OPTIONAL_FIELDS


@dataclass(frozen=True)
class SignableLabel:
    """The exact subset of a label that its signature covers."""
    src: str
    uri: str
    val: str
    cts: str
    ver: int | None = None
    cid: str | None = None
    neg: bool | None = None
    exp: str | None = None

    def to_record(self) -> dict[str, Any]:
        """Build the record to encode, setting each optional field only if present."""
        record: dict[str, Any] = {
            "src": self.src,
            "uri": self.uri,
            "val": self.val,
            "cts": self.cts,
        }
        if self.ver is not None:
            record["ver"] = self.ver
        if self.cid is not None:
            record["cid"] = self.cid
        if self.neg is not None:
            record["neg"] = self.neg
        if self.exp is not None:
            record["exp"] = self.exp
        return record


def _field(label: Any, name: str) -> Any:
    if isinstance(label, Mapping):
        return label.get(name)
    return getattr(label, name, None)


def reduce_label(label: Any) -> SignableLabel:
    """
    Reduce a label to its signable form.

    Args:
        label: A `Label` model or a label-shaped mapping

    Returns:
        SignableLabel holding only the signed fields
    """
    return SignableLabel(**{name: _field(label, name) for name in SIGNED_FIELDS})


def canonical_cbor(value: Any) -> bytes:
    """
    Serialize a value to deterministic DAG-CBOR bytes.

    Args:
        value: Any CBOR-serializable value

    Returns:
        Canonical CBOR encoding

    Raises:
        VerificationError: If the value cannot be encoded
    """
    try:
        return cbor2.dumps(value, canonical=True)
    except (cbor2.CBOREncodeError, TypeError, ValueError) as exc:
        raise VerificationError(f"cannot encode signable label ({exc})") from exc


def encode_signable(signable: SignableLabel) -> bytes:
    """Encode a signable label to the bytes its signature covers."""
    return canonical_cbor(signable.to_record())

"""
labeler-audit: Compliance checks for AT Protocol labeler services.

Fetches labels over queryLabels and subscribeLabels, rebuilds the exact
payload each label's signature covers, verifies it against the labeler's
validation key and checks label values against the declared policies.
"""

from .assessment import Assessment
from .canonical import SignableLabel, canonical_cbor, encode_signable, reduce_label
from .cancel import AbortSignal, AbortTimer
from .errors import (
    AbortCause,
    DeadlineExceeded,
    LabelerAuditError,
    MessageValidationError,
    NoLabelsBeforeTimeoutError,
    NoPassingLabelsError,
    QueryTransportError,
    ResolutionError,
    SubscriptionAborted,
    SubscriptionTransportError,
    TransportError,
    VerificationError,
)
from .keys import did_key_from_multibase, format_did_key, parse_did_key
from .models import Label, validate_label
from .query import query_labels
from .sign import sign_label
from .subscribe import subscribe_labels
from .verify import verify_label, verify_signature

__version__ = "0.1.0"
__all__ = [
    # Accumulator
    "Assessment",
    # Canonical payloads
    "SignableLabel",
    "canonical_cbor",
    "encode_signable",
    "reduce_label",
    # Cancellation
    "AbortSignal",
    "AbortTimer",
    # Keys and signatures
    "did_key_from_multibase",
    "format_did_key",
    "parse_did_key",
    "sign_label",
    "verify_label",
    "verify_signature",
    # Wire schemas
    "Label",
    "validate_label",
    # Pipelines
    "query_labels",
    "subscribe_labels",
    # Errors
    "AbortCause",
    "DeadlineExceeded",
    "LabelerAuditError",
    "MessageValidationError",
    "NoLabelsBeforeTimeoutError",
    "NoPassingLabelsError",
    "QueryTransportError",
    "ResolutionError",
    "SubscriptionAborted",
    "SubscriptionTransportError",
    "TransportError",
    "VerificationError",
]

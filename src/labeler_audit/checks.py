"""
Per-label signature and policy checks shared by both pipelines.
"""

from .assessment import Assessment
from .canonical import reduce_label
from .models import Label
from .verify import verify_label


NO_SIGNATURE = "Label used no signature"
SKIPPED_VALIDATION = "Skipped label signature validation"
INVALID_STANDARD_FIELDS = "Invalid signature on label with only standard fields"


def unregistered_value(val: str) -> str:
    return f"Label assigned an unregistered value {val}"


def invalid_with_overflow(fields: list[str]) -> str:
    return f"Invalid signature on label with non-standard fields [{', '.join(fields)}]"


def crashed_validation(exc: BaseException) -> str:
    return f"Label crashed signature validation: {exc}"


def check_signed_label(
    assess: Assessment,
    label: Label,
    key: str,
    registered_labels: set[str] | frozenset[str] | None,
) -> None:
    """
    Verify a signed label and record exactly one outcome on `assess`.

    Args:
        assess: The pipeline's accumulator
        label: A structurally valid label with `sig` set
        key: The labeler's validation key (did:key)
        registered_labels: Declared label values, or None for no constraint
    """
    try:
        valid = verify_label(reduce_label(label), label.sig or b"", key)
    except Exception as exc:
        assess.add_flag(crashed_validation(exc))
        return

    if not valid:
        overflow = label.overflow_fields
        if overflow:
            assess.add_flag(invalid_with_overflow(overflow))
        else:
            assess.add_flag(INVALID_STANDARD_FIELDS)
    elif registered_labels is not None and label.val not in registered_labels:
        assess.add_flag(unregistered_value(label.val))
    else:
        assess.add_passed()

"""
Error types for labeler-audit.

Per-label problems never raise: they become flags on an Assessment.
Only whole-pipeline failures propagate as the exceptions below.
"""

from enum import Enum


class AbortCause(str, Enum):
    """
    Causes that end a label subscription normally.
    Any other abort cause is treated as fatal.
    """
    TIMEOUT = "Timeout"
    LIMIT_REACHED = "LimitReached"


def describe_cause(cause: object) -> str:
    """Render an abort cause (enum member or free text) as plain text."""
    if isinstance(cause, AbortCause):
        return cause.value
    return str(cause)


class LabelerAuditError(Exception):
    """Base class for every error raised by labeler-audit."""


class TransportError(LabelerAuditError):
    """The labeler could not be reached or rejected the request."""


class QueryTransportError(TransportError):
    """The queryLabels request failed."""

    def __init__(self, cause: object):
        self.cause = cause
        super().__init__(f"Query endpoint rejected request: {cause}")


class SubscriptionTransportError(TransportError):
    """The subscribeLabels stream failed or closed abnormally."""


class SubscriptionAborted(SubscriptionTransportError):
    """The subscribeLabels stream was stopped through its abort signal."""

    def __init__(self, cause: object):
        self.cause = cause
        super().__init__(describe_cause(cause))

    @property
    def is_normal(self) -> bool:
        return self.cause in (AbortCause.TIMEOUT, AbortCause.LIMIT_REACHED)


class VerificationError(LabelerAuditError):
    """Key material or a signable payload could not be processed."""


class MessageValidationError(LabelerAuditError):
    """A stream frame did not match the subscribeLabels message schema."""


class NoPassingLabelsError(LabelerAuditError):
    """
    Raised after all input was consumed without a single passing label.

    The message enumerates every flag and its count.
    """

    def __init__(self, flags: dict[str, int]):
        self.flags = dict(flags)
        if self.flags:
            parts = [f"{flag} (x{count})" for flag, count in self.flags.items()]
            message = f"No passing labels. {'. '.join(parts)}."
        else:
            message = "No labels."
        super().__init__(message)


class NoLabelsBeforeTimeoutError(LabelerAuditError):
    """The subscription went quiet before delivering any label."""

    def __init__(self):
        super().__init__("Timeout occurred before finding any labels")


class ResolutionError(LabelerAuditError):
    """The labeler's identity, service endpoint or policies could not be resolved."""


class DeadlineExceeded(TransportError):
    """A pipeline did not finish within the orchestrator's overall deadline."""

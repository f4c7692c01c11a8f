"""
Subscription pipeline: consume com.atproto.label.subscribeLabels until the
stream goes quiet, enough results were seen, or the stream fails.

States: connecting -> streaming -> timed out | limit reached | fatal error -> closed.
Timeout and limit are normal endings. Any other cause is fatal.
"""

import logging
from contextlib import AbstractAsyncContextManager, AsyncExitStack
from typing import Callable, Protocol

from .assessment import Assessment
from .cancel import AbortSignal, AbortTimer
from .checks import SKIPPED_VALIDATION, check_signed_label
from .config import DEFAULT_USER_AGENT
from .errors import (
    AbortCause,
    MessageValidationError,
    NoLabelsBeforeTimeoutError,
    SubscriptionAborted,
    SubscriptionTransportError,
    describe_cause,
)
from .models import ErrorMessage, InfoMessage, Label, LabelsMessage, decode_frame
from .stream import open_label_stream, subscription_url


DEFAULT_SUBSCRIPTION_LIMIT = 250
INACTIVITY_TIMEOUT_SECONDS = 1.0


class LabelStream(Protocol):
    async def recv(self) -> bytes | None: ...


StreamOpener = Callable[[str, str], AbstractAsyncContextManager[LabelStream]]


def invalid_message(exc: BaseException) -> str:
    return f"Message failed XRPC LabelMessage validation: {exc}"


def fatal_termination(exc: BaseException) -> str:
    return f"The message iterator stopped with a fatal error: {exc}"


def _check_streamed_label(
    assess: Assessment,
    label: Label,
    key: str | None,
    registered_labels: set[str] | frozenset[str] | None,
) -> None:
    # Unsigned labels on the stream are not counted, with or without a key
    if label.sig is None:
        return
    if key is None:
        assess.add_flag(SKIPPED_VALIDATION)
        return
    check_signed_label(assess, label, key, registered_labels)


def _process_frame(
    assess: Assessment,
    frame: bytes,
    key: str | None,
    registered_labels: set[str] | frozenset[str] | None,
) -> None:
    try:
        message = decode_frame(frame)
    except MessageValidationError as exc:
        assess.add_flag(invalid_message(exc))
        return

    if isinstance(message, ErrorMessage):
        raise SubscriptionTransportError(f"labeler sent an error frame: {message.describe()}")
    if isinstance(message, InfoMessage):
        logging.info("Labeler sent %s: %s", message.name, message.message)
        return
    if isinstance(message, LabelsMessage):
        for label in message.labels:
            _check_streamed_label(assess, label, key, registered_labels)


async def consume_stream(
    url: str,
    assess: Assessment,
    signal: AbortSignal,
    *,
    key: str | None,
    registered_labels: set[str] | frozenset[str] | None,
    limit: int,
    user_agent: str,
    connect: StreamOpener,
    inactivity_timeout: float,
) -> None:
    """
    Read frames in arrival order until the server closes the stream.

    Raises:
        SubscriptionAborted: When the signal fires (timeout, limit or external)
        SubscriptionTransportError: When the stream fails
    """
    async with AsyncExitStack() as stack:
        stream = await signal.race(stack.enter_async_context(connect(url, user_agent)))
        with AbortTimer(inactivity_timeout, signal) as timer:
            while True:
                frame = await signal.race(stream.recv())
                if frame is None:
                    logging.debug("Subscription closed by the labeler")
                    return
                timer.rearm()
                _process_frame(assess, frame, key, registered_labels)
                if assess.total >= limit:
                    signal.abort(AbortCause.LIMIT_REACHED)


async def subscribe_labels(
    endpoint: str,
    *,
    registered_labels: set[str] | frozenset[str] | None = None,
    key: str | None = None,
    limit: int = DEFAULT_SUBSCRIPTION_LIMIT,
    cursor: int = 0,
    user_agent: str = DEFAULT_USER_AGENT,
    signal: AbortSignal | None = None,
    connect: StreamOpener = open_label_stream,
    inactivity_timeout: float = INACTIVITY_TIMEOUT_SECONDS,
) -> Assessment:
    """
    Assess a labeler's subscribeLabels endpoint.

    Args:
        endpoint: Labeler service URL; http(s) is mapped to ws(s)
        registered_labels: Declared label values, or None to skip the policy check
        key: Validation key as a did:key, or None to skip signature checks
        limit: Stop once this many results were recorded
        cursor: Sequence number to start from
        user_agent: User-Agent header value
        signal: Abort signal for external cancellation
        connect: Stream opener, `open_label_stream` by default
        inactivity_timeout: Seconds without a frame before the stream is considered drained

    Returns:
        Assessment with at least one passing label

    Raises:
        NoLabelsBeforeTimeoutError: If the stream went quiet before any result
        SubscriptionTransportError: If the stream failed before any result
        NoPassingLabelsError: If no label passed
    """
    assess = Assessment()
    if signal is None:
        signal = AbortSignal()
    url = subscription_url(endpoint, cursor)

    failure: SubscriptionTransportError | None = None
    try:
        await consume_stream(
            url,
            assess,
            signal,
            key=key,
            registered_labels=registered_labels,
            limit=limit,
            user_agent=user_agent,
            connect=connect,
            inactivity_timeout=inactivity_timeout,
        )
    except SubscriptionTransportError as exc:
        failure = exc

    normal = failure is None or (isinstance(failure, SubscriptionAborted) and failure.is_normal)
    if isinstance(failure, SubscriptionAborted):
        assess.stopped_by = describe_cause(failure.cause)
    elif failure is not None:
        assess.stopped_by = str(failure)

    logging.debug(
        "Subscription finished: %d seen, %d passed, stopped by %s",
        assess.total, assess.passed, assess.stopped_by,
    )

    if assess.total == 0:
        if isinstance(failure, SubscriptionAborted) and failure.cause == AbortCause.TIMEOUT:
            raise NoLabelsBeforeTimeoutError() from failure
        if not normal:
            raise failure
    elif not normal:
        assess.add_flag(fatal_termination(failure))

    return assess.require_passing()

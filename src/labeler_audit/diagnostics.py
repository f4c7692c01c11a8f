"""
Drives both pipelines against a resolved labeler endpoint.
"""

import asyncio
import logging
from collections.abc import Awaitable

from .assessment import Assessment
from .cancel import AbortSignal, AbortTimer
from .config import DEFAULT_USER_AGENT
from .errors import DeadlineExceeded, LabelerAuditError
from .query import query_labels
from .subscribe import subscribe_labels
from .summary import EndpointReport


DEADLINE_CAUSE = "Timeout expired waiting for results"
DEFAULT_DEADLINE_SECONDS = 15.0
DEFAULT_DEPTH = 10


async def assess_endpoint(name: str, pipeline: Awaitable[Assessment]) -> EndpointReport:
    """Await a pipeline and turn its outcome into a report; never raises LabelerAuditError."""
    try:
        assessment = await pipeline
    except LabelerAuditError as exc:
        logging.debug("%s failed: %s", name, exc)
        return EndpointReport(name=name, error=str(exc))
    return EndpointReport(name=name, assessment=assessment)


async def query_with_deadline(deadline: float, **kwargs) -> Assessment:
    """Run the query pipeline, cancelling the request when the deadline passes."""
    try:
        return await asyncio.wait_for(query_labels(**kwargs), deadline)
    except asyncio.TimeoutError as exc:
        raise DeadlineExceeded(DEADLINE_CAUSE) from exc


async def subscribe_with_deadline(deadline: float, **kwargs) -> Assessment:
    """Run the subscription pipeline, aborting it through its signal when the deadline passes."""
    signal = AbortSignal()
    with AbortTimer(deadline, signal, DEADLINE_CAUSE):
        return await subscribe_labels(signal=signal, **kwargs)


async def run_diagnostics(
    endpoint: str,
    *,
    key: str | None = None,
    registered_labels: set[str] | None = None,
    user_agent: str = DEFAULT_USER_AGENT,
    depth: int = DEFAULT_DEPTH,
    deadline: float = DEFAULT_DEADLINE_SECONDS,
    concurrent: bool = False,
) -> list[EndpointReport]:
    """
    Assess both label transports of a labeler.

    Args:
        endpoint: Labeler service URL
        key: Validation key as a did:key
        registered_labels: Declared label values
        user_agent: User-Agent header value
        depth: Target number of labels to validate per transport
        deadline: Overall seconds allowed per pipeline
        concurrent: Run both pipelines at the same time

    Returns:
        Reports for queryLabels and subscribeLabels, in that order
    """
    query = assess_endpoint(
        "queryLabels",
        query_with_deadline(
            deadline,
            endpoint=endpoint,
            cursor=0,
            limit=depth,
            uri_patterns=["*"],
            registered_labels=registered_labels,
            key=key,
            user_agent=user_agent,
        ),
    )
    subscription = assess_endpoint(
        "subscribeLabels",
        subscribe_with_deadline(
            deadline,
            endpoint=endpoint,
            cursor=0,
            registered_labels=registered_labels,
            key=key,
            limit=depth,
            user_agent=user_agent,
        ),
    )

    if concurrent:
        return list(await asyncio.gather(query, subscription))
    return [await query, await subscription]

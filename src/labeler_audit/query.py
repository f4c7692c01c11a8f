"""
Query pipeline: one com.atproto.label.queryLabels request, then every
returned label is checked.
"""

import logging
from collections.abc import Sequence

import httpx

from .assessment import Assessment
from .checks import NO_SIGNATURE, SKIPPED_VALIDATION, check_signed_label
from .config import DEFAULT_USER_AGENT
from .errors import QueryTransportError
from .models import QueryLabelsOutput, validate_label


QUERY_LABELS_PATH = "/xrpc/com.atproto.label.queryLabels"
DEFAULT_QUERY_LIMIT = 10
REQUEST_TIMEOUT_SECONDS = 10.0


def query_url(endpoint: str | httpx.URL) -> httpx.URL:
    return httpx.URL(str(endpoint)).join(QUERY_LABELS_PATH)


async def fetch_labels(
    client: httpx.AsyncClient,
    endpoint: str | httpx.URL,
    cursor: int,
    limit: int | None,
    uri_patterns: Sequence[str],
    user_agent: str,
) -> list:
    """
    Request one page of labels.

    Returns:
        The raw label records, not yet validated

    Raises:
        QueryTransportError: If the request fails or the response is not a queryLabels output
    """
    params: list[tuple[str, str]] = [("uriPatterns", pattern) for pattern in uri_patterns]
    params.append(("cursor", str(cursor)))
    if limit is not None:
        params.append(("limit", str(limit)))

    url = query_url(endpoint)
    logging.debug("Querying labels from %s", url)
    try:
        response = await client.get(url, params=params, headers={"User-Agent": user_agent})
        response.raise_for_status()
        # JSON decode errors and pydantic validation errors are both ValueErrors
        output = QueryLabelsOutput.model_validate(response.json())
    except (httpx.HTTPError, ValueError) as exc:
        raise QueryTransportError(exc) from exc

    logging.debug("Query returned %d labels", len(output.labels))
    return output.labels


async def query_labels(
    endpoint: str | httpx.URL,
    *,
    cursor: int = 0,
    limit: int | None = DEFAULT_QUERY_LIMIT,
    uri_patterns: Sequence[str] = ("*",),
    registered_labels: set[str] | frozenset[str] | None = None,
    key: str | None = None,
    user_agent: str = DEFAULT_USER_AGENT,
    client: httpx.AsyncClient | None = None,
) -> Assessment:
    """
    Assess a labeler's queryLabels endpoint.

    Args:
        endpoint: Labeler service URL (http or https)
        cursor: Starting cursor
        limit: Page size
        uri_patterns: Glob-style subject URI patterns
        registered_labels: Declared label values, or None to skip the policy check
        key: Validation key as a did:key, or None to skip signature checks
        user_agent: User-Agent header value
        client: HTTP client to use; a short-lived one is created if omitted

    Returns:
        Assessment with at least one passing label

    Raises:
        QueryTransportError: If the request was rejected
        NoPassingLabelsError: If no label passed
    """
    assess = Assessment()

    if client is None:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT_SECONDS) as own_client:
            records = await fetch_labels(own_client, endpoint, cursor, limit, uri_patterns, user_agent)
    else:
        records = await fetch_labels(client, endpoint, cursor, limit, uri_patterns, user_agent)

    for record in records:
        validation = validate_label(record)
        if not validation.valid:
            # Schema conformance of the record itself is not assessed here
            logging.debug("Skipping malformed label: %s", validation.error)
            continue

        label = validation.label
        if label.sig is not None and key is not None:
            check_signed_label(assess, label, key, registered_labels)
        elif label.sig is None:
            assess.add_flag(NO_SIGNATURE)
        else:
            assess.add_flag(SKIPPED_VALIDATION)

    return assess.require_passing()

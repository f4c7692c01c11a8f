"""
Identity resolution for a labeler: handle -> DID -> DID document ->
service endpoint, validation key and declared label values.
"""

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import LabelerAuditError, ResolutionError
from .keys import did_key_from_multibase


RESOLVE_HANDLE_PATH = "/xrpc/com.atproto.identity.resolveHandle"
LIST_RECORDS_PATH = "/xrpc/com.atproto.repo.listRecords"
LABELER_SERVICE_COLLECTION = "app.bsky.labeler.service"

LABEL_KEY_FRAGMENT = "#atproto_label"
PDS_SERVICE_FRAGMENT = "#atproto_pds"
LABELER_SERVICE_FRAGMENT = "#atproto_labeler"


@dataclass
class LabelerIdentity:
    """What the DID document says about a labeler."""
    did: str
    pds_url: str
    service_url: str
    validation_key: str


class LabelerPolicies(BaseModel):
    label_values: list[str] = Field(alias="labelValues")


class LabelerServiceRecord(BaseModel):
    """app.bsky.labeler.service"""
    model_config = ConfigDict(populate_by_name=True)

    policies: LabelerPolicies
    created_at: str = Field(alias="createdAt")


async def _get_json(client: httpx.AsyncClient, url: str | httpx.URL, params: dict[str, str] | None = None) -> Any:
    try:
        response = await client.get(url, params=params)
        response.raise_for_status()
        return response.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise ResolutionError(f"Request to {url} failed: {exc}") from exc


async def resolve_handle(
    client: httpx.AsyncClient,
    handle: str,
    pds_url: str,
    did: str | None = None,
) -> str:
    """
    Resolve a handle to its DID through a PDS.

    Args:
        client: HTTP client
        handle: Normalized handle
        pds_url: PDS used for resolution
        did: DID already known for the labeler, checked against the result

    Returns:
        The resolved DID

    Raises:
        ResolutionError: If nothing was resolved or the known DID does not match
    """
    data = await _get_json(client, httpx.URL(pds_url).join(RESOLVE_HANDLE_PATH), {"handle": handle})
    resolved = data.get("did") if isinstance(data, dict) else None
    if not resolved:
        raise ResolutionError("Resolver returned nothing")
    if did is not None and did != resolved:
        raise ResolutionError(f"Known DID {did} does not match resolved DID {resolved}")
    return resolved


def did_document_url(did: str, plc_url: str) -> str:
    if did.startswith("did:plc:"):
        return f"{plc_url.rstrip('/')}/{did}"
    if did.startswith("did:web:"):
        host = did[len("did:web:"):]
        return f"https://{host}/.well-known/did.json"
    raise ResolutionError(f"Unsupported DID method for {did}")


def _find_service(services: list[dict[str, Any]], fragment: str) -> str | None:
    for service in services:
        service_id = service.get("id", "")
        endpoint = service.get("serviceEndpoint")
        if service_id.endswith(fragment) and isinstance(endpoint, str):
            return endpoint
    return None


def _normalize_url(raw: str, what: str) -> str:
    try:
        url = httpx.URL(raw)
    except httpx.InvalidURL as exc:
        raise ResolutionError(f"Invalid {what} URL reported by PLC") from exc
    if url.scheme not in ("http", "https") or not url.host:
        raise ResolutionError(f"Invalid {what} URL reported by PLC")
    return str(url)


def parse_did_document(did: str, doc: Any) -> LabelerIdentity:
    """
    Extract the labeler's endpoints and validation key from a DID document.

    Raises:
        ResolutionError: Naming the first missing or invalid piece
    """
    if not isinstance(doc, dict):
        raise ResolutionError(f"The PLC doesn't recognize {did}")
    methods = doc.get("verificationMethod")
    if not methods:
        raise ResolutionError(f"The PLC doesn't have any verification keys for {did}")
    services = doc.get("service")
    if not services:
        raise ResolutionError(f"The PLC doesn't know of any services for {did}")

    method = next(
        (m for m in methods if m.get("id", "").endswith(LABEL_KEY_FRAGMENT) and m.get("publicKeyMultibase")),
        None,
    )
    if method is None:
        raise ResolutionError(f"The PLC doesn't know of a labeler service for {did}")

    try:
        validation_key = did_key_from_multibase(method["publicKeyMultibase"], method.get("type", "Multikey"))
    except LabelerAuditError as exc:
        raise ResolutionError(f"The PLC doesn't have a valid key for the labeler ({exc})") from exc

    pds = _find_service(services, PDS_SERVICE_FRAGMENT)
    if pds is None:
        raise ResolutionError("The PLC doesn't have a PDS endpoint for the labeler")
    labeler = _find_service(services, LABELER_SERVICE_FRAGMENT)
    if labeler is None:
        raise ResolutionError("The PLC doesn't have service endpoint for the labeler")

    return LabelerIdentity(
        did=did,
        pds_url=_normalize_url(pds, "PDS"),
        service_url=_normalize_url(labeler, "labeler endpoint"),
        validation_key=validation_key,
    )


async def resolve_did(client: httpx.AsyncClient, did: str, plc_url: str) -> LabelerIdentity:
    """Fetch and parse a labeler's DID document."""
    doc = await _get_json(client, did_document_url(did, plc_url))
    identity = parse_did_document(did, doc)
    logging.debug("Resolved %s to %s", did, identity.service_url)
    return identity


async def resolve_policies(client: httpx.AsyncClient, did: str, pds_url: str) -> set[str]:
    """
    Read the label values a labeler declared in its service record.

    Raises:
        ResolutionError: If the record is missing or malformed
    """
    data = await _get_json(
        client,
        httpx.URL(pds_url).join(LIST_RECORDS_PATH),
        {"repo": did, "collection": LABELER_SERVICE_COLLECTION},
    )
    records = data.get("records", []) if isinstance(data, dict) else []
    for record in records:
        value = record.get("value") if isinstance(record, dict) else None
        if not isinstance(value, dict) or value.get("$type") != LABELER_SERVICE_COLLECTION:
            continue
        try:
            service = LabelerServiceRecord.model_validate(value)
        except ValidationError as exc:
            raise ResolutionError("Labeler service record failed validation") from exc
        return set(service.policies.label_values)
    raise ResolutionError("Labeler service record missing")

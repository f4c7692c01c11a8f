import argparse
import asyncio
import logging
import re
import sys

import httpx

from .config import Settings, load_settings
from .diagnostics import DEFAULT_DEPTH, run_diagnostics
from .errors import LabelerAuditError
from .keys import did_key_from_multibase
from .resolve import resolve_did, resolve_handle, resolve_policies
from .summary import format_report


DID_RE = re.compile(r"^did:[a-z]+:[a-zA-Z0-9._:%-]*[a-zA-Z0-9._-]$")
HANDLE_RE = re.compile(
    r"^([a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+[a-zA-Z]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?$"
)
MAX_HANDLE_LENGTH = 253
MAX_DID_LENGTH = 2048


def normalize_url(raw: str) -> str:
    try:
        url = httpx.URL(raw)
    except httpx.InvalidURL:
        raise argparse.ArgumentTypeError("Not a valid URL")
    if url.scheme not in ("http", "https"):
        raise argparse.ArgumentTypeError("URL must use HTTP/HTTPS")
    if not url.host:
        raise argparse.ArgumentTypeError("Not a valid URL")
    return str(url)


def normalize_did(raw: str) -> str:
    did = raw.lower()
    if len(did) > MAX_DID_LENGTH or not DID_RE.match(did):
        raise argparse.ArgumentTypeError(f"Not a valid DID: {raw}")
    return did


def normalize_handle(raw: str) -> str:
    handle = raw[1:] if raw.startswith("@") else raw
    handle = handle.lower()
    if len(handle) > MAX_HANDLE_LENGTH or not HANDLE_RE.match(handle):
        raise argparse.ArgumentTypeError("Not a valid handle")
    return handle


def normalize_key(raw: str) -> str:
    if raw.startswith("did:"):
        # Assume it's a valid did:key
        return raw
    try:
        return did_key_from_multibase(raw)
    except LabelerAuditError:
        raise argparse.ArgumentTypeError("Not a valid validation key")


def normalize_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError("Not an integer")
    if str(value) != raw:
        raise argparse.ArgumentTypeError("Not a valid integer")
    if value < 1:
        raise argparse.ArgumentTypeError("Must be at least 1")
    return value


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="labeler-audit",
        description="AT Protocol Labeler Diagnostics",
        epilog=(
            "The following environment variables control the default behavior: "
            "ATPROTO_PDS, ATPROTO_PLC, USER_AGENT, REQUEST_TIMEOUT."
        ),
    )
    p.add_argument("handle", type=normalize_handle, help="The labeler's handle")
    p.add_argument("--agent", default=settings.user_agent,
                   help="The user-agent string to use when connecting to the labeler")
    p.add_argument("--depth", type=normalize_int, default=DEFAULT_DEPTH,
                   help="The target number of labels to validate")
    p.add_argument("--did", type=normalize_did, help="The labeler's DID")
    p.add_argument("--endpoint", type=normalize_url, help="The labeler's service endpoint URL")
    p.add_argument("--full", action="store_true", help="Run additional validation tests")
    p.add_argument("--key", type=normalize_key, help="The labeler's validation key")
    p.add_argument("--pds", type=normalize_url, default=settings.atproto_pds, help="The PDS of the labeler")
    p.add_argument("--plc", type=normalize_url, default=settings.atproto_plc,
                   help="The PLC directory is used to resolve DIDs")
    p.add_argument("--concurrent", action="store_true", help="Test both endpoints at the same time")
    p.add_argument("--verbose", "-v", action="store_true", help="Log debug output")
    return p


async def run(ns: argparse.Namespace, settings: Settings) -> int:
    did = ns.did
    endpoint = ns.endpoint
    key = ns.key
    pds_url = ns.pds
    labels: set[str] | None = None

    async with httpx.AsyncClient(timeout=settings.request_timeout, headers={"User-Agent": ns.agent}) as client:
        if ns.full or did is None:
            try:
                did = await resolve_handle(client, ns.handle, pds_url, did)
                print(f"Resolving DID from handle... Found {did}")
            except LabelerAuditError as exc:
                print(f"Resolving DID from handle... {exc}")

        if did is not None and (ns.full or key is None or endpoint is None):
            try:
                identity = await resolve_did(client, did, ns.plc)
                print(f"Resolving service endpoint from DID... Found {identity.service_url}")
                pds_url = identity.pds_url
                key = identity.validation_key
                endpoint = identity.service_url
            except LabelerAuditError as exc:
                print(f"Resolving service endpoint from DID... {exc}")

        if did is not None:
            try:
                labels = await resolve_policies(client, did, pds_url)
                print(f"Resolving label policies... Found {len(labels)} label policies")
                print("    " + ", ".join(sorted(labels)))
            except LabelerAuditError as exc:
                print(f"Resolving label policies... {exc}")

    if endpoint is None:
        print("No service endpoint to test")
        return 1

    reports = await run_diagnostics(
        endpoint,
        key=key,
        registered_labels=labels,
        user_agent=ns.agent,
        depth=ns.depth,
        deadline=settings.request_timeout,
        concurrent=ns.concurrent,
    )
    for report in reports:
        print(format_report(report))

    print("All done!")
    return 0 if all(report.ok for report in reports) else 1


def main(argv: list[str] | None = None) -> int:
    settings = load_settings()
    ns = build_parser(settings).parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if ns.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    print("AT Protocol Labeler Diagnostics\n")
    return asyncio.run(run(ns, settings))


if __name__ == "__main__":
    sys.exit(main())

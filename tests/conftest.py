"""Shared fixtures: labeler keys, signed labels and an in-memory label stream."""

import asyncio
import base64
from contextlib import asynccontextmanager
from pathlib import Path

import sys

import cbor2
import pytest
from cryptography.hazmat.primitives.asymmetric import ec

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from labeler_audit import format_did_key, sign_label
from labeler_audit.keys import P256, SECP256K1


LABELER_DID = "did:plc:ar7c4by46qjdydhdevvrndac"


def base_label(**overrides) -> dict:
    label = {
        "ver": 1,
        "src": LABELER_DID,
        "uri": "at://did:plc:abc123/app.bsky.feed.post/3k2a",
        "val": "nudity",
        "cts": "2024-05-01T12:00:00.000Z",
    }
    label.update(overrides)
    return label


def json_label(label: dict) -> dict:
    """Wrap raw sig bytes the way the JSON transport does."""
    encoded = dict(label)
    if isinstance(encoded.get("sig"), bytes):
        encoded["sig"] = {"$bytes": base64.b64encode(encoded["sig"]).decode("ascii").rstrip("=")}
    return encoded


def labels_frame(labels: list[dict], seq: int = 1) -> bytes:
    return cbor2.dumps({"op": 1, "t": "#labels"}) + cbor2.dumps({"seq": seq, "labels": labels})


class FakeLabelStream:
    """Serves queued frames, then either closes cleanly or stays silent forever."""

    def __init__(self, frames, close_when_drained: bool = False):
        self.frames = list(frames)
        self.close_when_drained = close_when_drained
        self.received = 0

    async def recv(self):
        await asyncio.sleep(0)
        if self.frames:
            item = self.frames.pop(0)
            if isinstance(item, BaseException):
                raise item
            self.received += 1
            return item
        if self.close_when_drained:
            return None
        await asyncio.Event().wait()


class FakeOpener:
    def __init__(self, stream: FakeLabelStream):
        self.stream = stream
        self.urls: list[str] = []
        self.user_agents: list[str] = []
        self.closed = False

    @asynccontextmanager
    async def __call__(self, url: str, user_agent: str):
        self.urls.append(url)
        self.user_agents.append(user_agent)
        try:
            yield self.stream
        finally:
            self.closed = True


@pytest.fixture
def labeler_key():
    return ec.generate_private_key(ec.SECP256K1())


@pytest.fixture
def did_key(labeler_key):
    return format_did_key(SECP256K1, labeler_key.public_key())


@pytest.fixture
def p256_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def p256_did_key(p256_key):
    return format_did_key(P256, p256_key.public_key())


@pytest.fixture
def signed_label(labeler_key):
    """Factory: build a label from overrides and sign it with the labeler key."""
    def _make(**overrides) -> dict:
        return sign_label(base_label(**overrides), labeler_key)
    return _make


@pytest.fixture
def fake_opener():
    """Factory: wrap frames in a FakeLabelStream and return its opener."""
    def _make(frames, close_when_drained: bool = False) -> FakeOpener:
        return FakeOpener(FakeLabelStream(frames, close_when_drained))
    return _make

"""Command-line argument normalization and settings tests."""

import argparse

import pytest

from labeler_audit.cli import (
    build_parser,
    normalize_did,
    normalize_handle,
    normalize_int,
    normalize_key,
    normalize_url,
)
from labeler_audit.config import DEFAULT_USER_AGENT, Settings


class TestNormalizers:

    def test_url(self):
        assert normalize_url("https://labeler.example.com").startswith("https://labeler.example.com")

    @pytest.mark.parametrize("raw", ["ftp://example.com", "wss://example.com", "nonsense"])
    def test_url_rejected(self, raw):
        with pytest.raises(argparse.ArgumentTypeError):
            normalize_url(raw)

    def test_did_lowercased(self):
        assert normalize_did("DID:PLC:ABC123") == "did:plc:abc123"

    def test_did_rejected(self):
        with pytest.raises(argparse.ArgumentTypeError):
            normalize_did("plc:abc")

    def test_handle_strips_at(self):
        assert normalize_handle("@Labeler.Example.COM") == "labeler.example.com"

    @pytest.mark.parametrize("raw", ["nodots", "-bad.example.com", "bad..example.com"])
    def test_handle_rejected(self, raw):
        with pytest.raises(argparse.ArgumentTypeError):
            normalize_handle(raw)

    def test_key_did_passthrough(self):
        assert normalize_key("did:key:zQ3sh") == "did:key:zQ3sh"

    def test_key_multibase(self, did_key):
        assert normalize_key(did_key[len("did:key:"):]) == did_key

    def test_key_rejected(self):
        with pytest.raises(argparse.ArgumentTypeError):
            normalize_key("not-a-key")

    def test_int(self):
        assert normalize_int("25") == 25

    @pytest.mark.parametrize("raw", ["ten", "10.5", "010", "0", "-5"])
    def test_int_rejected(self, raw):
        with pytest.raises(argparse.ArgumentTypeError):
            normalize_int(raw)


class TestParser:

    def test_defaults(self):
        ns = build_parser(Settings()).parse_args(["labeler.example.com"])
        assert ns.handle == "labeler.example.com"
        assert ns.depth == 10
        assert ns.did is None
        assert ns.full is False
        assert ns.concurrent is False

    def test_depth_must_be_positive(self):
        with pytest.raises(SystemExit):
            build_parser(Settings()).parse_args(["labeler.example.com", "--depth", "0"])

    def test_options(self, did_key):
        ns = build_parser(Settings()).parse_args([
            "@labeler.example.com",
            "--did", "did:plc:abc123",
            "--endpoint", "https://labeler.example.com",
            "--key", did_key,
            "--depth", "25",
            "--full",
        ])
        assert ns.key == did_key
        assert ns.depth == 25
        assert ns.full


class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in ("USER_AGENT", "ATPROTO_PDS", "ATPROTO_PLC", "REQUEST_TIMEOUT"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings()
        assert settings.user_agent == DEFAULT_USER_AGENT
        assert settings.atproto_pds == "https://bsky.social"
        assert settings.atproto_plc == "https://plc.directory"
        assert settings.request_timeout == 15.0

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("ATPROTO_PLC", "https://plc.example.com")
        monkeypatch.setenv("REQUEST_TIMEOUT", "3")
        settings = Settings()
        assert settings.atproto_plc == "https://plc.example.com"
        assert settings.request_timeout == 3.0

    def test_parser_uses_settings(self, monkeypatch):
        monkeypatch.setenv("USER_AGENT", "custom/2.0")
        ns = build_parser(Settings()).parse_args(["labeler.example.com"])
        assert ns.agent == "custom/2.0"

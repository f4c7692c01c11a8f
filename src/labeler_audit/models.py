"""
Wire schemas for the com.atproto.label lexicons.

Labels are validated structurally here, independent of their signature.
Stream frames are decoded into a tagged variant over the message kinds
of com.atproto.label.subscribeLabels.
"""

import base64
import io
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Union

import cbor2
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import MessageValidationError


MAX_LABEL_VALUE_LENGTH = 128

# RFC 3339 date-time; any number of fractional digits, offset required
DATETIME_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[Tt](\d{2}:\d{2}:\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})$"
)


def _check_rfc3339(value: str) -> None:
    match = DATETIME_RE.match(value)
    if match is None:
        raise ValueError(f"not an RFC 3339 datetime: {value}")
    date, time, fraction, offset = match.groups()
    # fromisoformat only takes 3 or 6 fractional digits before 3.11
    micros = (fraction or "").ljust(6, "0")[:6]
    offset = "+00:00" if offset in ("Z", "z") else offset
    try:
        datetime.fromisoformat(f"{date}T{time}.{micros}{offset}")
    except ValueError as exc:
        raise ValueError(f"not an RFC 3339 datetime: {value}") from exc


def _decode_bytes(value: Any) -> Any:
    # JSON transport wraps bytes as {"$bytes": "<base64>"}
    if isinstance(value, dict) and set(value) == {"$bytes"}:
        encoded = value["$bytes"]
        if not isinstance(encoded, str):
            raise ValueError("$bytes must be a base64 string")
        padded = encoded + "=" * (-len(encoded) % 4)
        return base64.b64decode(padded, validate=True)
    return value


class Label(BaseModel):
    """
    com.atproto.label.defs#label

    Unknown keys are kept as overflow fields, in the order received.
    """
    model_config = ConfigDict(extra="allow", strict=True)

    ver: int | None = None
    src: str
    uri: str = Field(min_length=1)
    cid: str | None = None
    val: str
    neg: bool | None = None
    cts: str
    exp: str | None = None
    sig: bytes | None = None

    @field_validator("src")
    @classmethod
    def _check_did(cls, value: str) -> str:
        if not value.startswith("did:") or len(value.split(":", 2)) < 3:
            raise ValueError(f"not a DID: {value}")
        return value

    @field_validator("val")
    @classmethod
    def _check_value_length(cls, value: str) -> str:
        # Lexicon maxLength counts UTF-8 bytes
        if len(value.encode("utf-8")) > MAX_LABEL_VALUE_LENGTH:
            raise ValueError(f"label value longer than {MAX_LABEL_VALUE_LENGTH} bytes")
        return value

    @field_validator("cts", "exp")
    @classmethod
    def _check_datetime(cls, value: str | None) -> str | None:
        if value is not None:
            _check_rfc3339(value)
        return value

    @field_validator("sig", mode="before")
    @classmethod
    def _check_sig(cls, value: Any) -> Any:
        return _decode_bytes(value)

    @property
    def overflow_fields(self) -> list[str]:
        return list(self.model_extra or {})


@dataclass
class LabelValidation:
    """Result of structurally validating one label record."""
    valid: bool
    label: Label | None = None
    error: str | None = None


def describe_validation_error(exc: ValidationError) -> str:
    """Collapse a pydantic error into one line."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "message"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def validate_label(record: Any) -> LabelValidation:
    """
    Validate a label record against com.atproto.label.defs#label.

    Args:
        record: Decoded JSON or CBOR value

    Returns:
        LabelValidation with the parsed Label on success
    """
    try:
        return LabelValidation(valid=True, label=Label.model_validate(record))
    except ValidationError as exc:
        return LabelValidation(valid=False, error=describe_validation_error(exc))


class QueryLabelsOutput(BaseModel):
    """com.atproto.label.queryLabels output; labels are validated one by one."""
    cursor: str | None = None
    labels: list[Any]


class FrameHeader(BaseModel):
    model_config = ConfigDict(strict=True)

    op: Literal[1, -1]
    t: str | None = None


class LabelsMessage(BaseModel):
    """#labels: the only message kind that carries labels."""
    kind: Literal["#labels"] = "#labels"
    seq: int
    labels: list[Label]


class InfoMessage(BaseModel):
    kind: Literal["#info"] = "#info"
    name: Literal["OutdatedCursor"]
    message: str | None = None


class ErrorMessage(BaseModel):
    """An error frame (op -1); the server ends the stream after sending it."""
    kind: Literal["error"] = "error"
    error: str
    message: str | None = None

    def describe(self) -> str:
        if self.message:
            return f"{self.error}: {self.message}"
        return self.error


StreamMessage = Union[LabelsMessage, InfoMessage, ErrorMessage]

MESSAGE_TYPES: dict[str, type[BaseModel]] = {
    "#labels": LabelsMessage,
    "#info": InfoMessage,
}


def decode_frame(frame: bytes) -> StreamMessage:
    """
    Decode one subscribeLabels frame: a CBOR header followed by a CBOR body.

    Args:
        frame: Raw binary WebSocket frame

    Returns:
        LabelsMessage, InfoMessage or ErrorMessage

    Raises:
        MessageValidationError: If the frame does not match the schema
    """
    if not isinstance(frame, (bytes, bytearray)):
        raise MessageValidationError("expected a binary frame")

    try:
        decoder = cbor2.CBORDecoder(io.BytesIO(frame))
        header = decoder.decode()
        body = decoder.decode()
    except cbor2.CBORDecodeError as exc:
        raise MessageValidationError(f"undecodable frame ({exc})") from exc

    if not isinstance(body, dict):
        raise MessageValidationError("frame body must be a map")

    try:
        parsed_header = FrameHeader.model_validate(header)
        if parsed_header.op == -1:
            return ErrorMessage.model_validate(body)
        message_type = MESSAGE_TYPES.get(parsed_header.t or "")
        if message_type is None:
            raise MessageValidationError(f"unknown message type {parsed_header.t}")
        return message_type.model_validate(body)
    except ValidationError as exc:
        raise MessageValidationError(describe_validation_error(exc)) from exc

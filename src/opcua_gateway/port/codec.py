"""JSON codec for command and result payloads.

A command payload is a JSON object ``{"method": <str>, "args": <any>}``.
A result payload is the JSON encoding of the success value, or of the bare
error string on failure. The wire does not tag success versus failure; the
host interprets the payload against the method's documented success type.
"""

import json
from dataclasses import dataclass
from typing import Any

from opcua_gateway.core.errors import DecodeError

# JSON-compatible value: None, bool, int, float, str, list[Value], dict[str, Value]
Value = Any

# Reported when a payload cannot be decoded into a command
INVALID_PARAMETERS = "invalid parameters"


@dataclass(frozen=True)
class Command:
    """A decoded host request.

    Attributes:
        method: Name of the dispatcher route
        args: Method-specific arguments, validated by the dispatcher
    """

    method: str
    args: Value = None


@dataclass(frozen=True)
class Result:
    """Outcome of one command: a success value or an error message."""

    value: Value = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Value) -> "Result":
        return cls(value=value)

    @classmethod
    def failure(cls, message: str) -> "Result":
        return cls(error=message)


def _reject_constant(token: str) -> None:
    raise ValueError(f"non-standard JSON constant {token}")


def _unique_object(pairs: list[tuple[str, Value]]) -> dict[str, Value]:
    obj: dict[str, Value] = {}
    for key, value in pairs:
        if key in obj:
            raise ValueError(f"duplicate key {key!r}")
        obj[key] = value
    return obj


def decode_command(payload: bytes) -> Command:
    """Decode a message payload into a Command.

    Raises:
        DecodeError: If the payload is not UTF-8 JSON (NaN, Infinity and
            duplicate object keys included), not an object, or has no
            string ``method`` field
    """
    try:
        data = json.loads(
            payload.decode("utf-8"),
            parse_constant=_reject_constant,
            object_pairs_hook=_unique_object,
        )
    except (UnicodeDecodeError, ValueError) as e:
        raise DecodeError(f"malformed command payload: {e}") from e

    if not isinstance(data, dict):
        raise DecodeError("command payload is not an object")

    method = data.get("method")
    if not isinstance(method, str):
        raise DecodeError("command method is not a string")

    return Command(method=method, args=data.get("args"))


def encode_result(result: Result) -> bytes:
    """Encode a Result as a response payload."""
    body = result.value if result.ok else result.error
    return json.dumps(body, ensure_ascii=False, separators=(",", ":")).encode("utf-8")

"""Conversion between OPC UA values and JSON-compatible values.

Reads are flattened into plain JSON types; writes coerce the host's JSON
value into a Variant of the node's declared variant type.
"""

import base64
import math
import uuid
from dataclasses import fields, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from asyncua import ua

_INTEGER_TYPES = frozenset(
    {
        ua.VariantType.SByte,
        ua.VariantType.Byte,
        ua.VariantType.Int16,
        ua.VariantType.UInt16,
        ua.VariantType.Int32,
        ua.VariantType.UInt32,
        ua.VariantType.Int64,
        ua.VariantType.UInt64,
    }
)

_FLOAT_TYPES = frozenset({ua.VariantType.Float, ua.VariantType.Double})


def to_json(value: Any) -> Any:
    """Convert a value read from an OPC UA node into a JSON-compatible value."""
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        # NaN and infinities have no JSON representation
        return value if math.isfinite(value) else None
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, ua.Variant):
        return to_json(value.Value)
    if isinstance(value, ua.LocalizedText):
        return value.Text
    if isinstance(value, ua.QualifiedName):
        return value.Name
    if isinstance(value, ua.NodeId):
        return value.to_string()
    if isinstance(value, ua.StatusCode):
        return value.name
    if isinstance(value, (list, tuple)):
        return [to_json(item) for item in value]
    if isinstance(value, dict):
        return {str(key): to_json(item) for key, item in value.items()}
    if is_dataclass(value):
        # Decoded structures (ExtensionObject bodies) become objects
        return {f.name: to_json(getattr(value, f.name)) for f in fields(value)}
    return str(value)


def to_variant(value: Any, variant_type: ua.VariantType) -> ua.Variant:
    """Wrap a JSON value in a Variant of the given type.

    Lists are written as arrays of the element type.

    Raises:
        TypeError: If the value cannot represent the variant type
        ValueError: If a string value does not parse as the variant type
    """
    if isinstance(value, list):
        return ua.Variant([_coerce(item, variant_type) for item in value], variant_type)
    return ua.Variant(_coerce(value, variant_type), variant_type)


def _coerce(value: Any, variant_type: ua.VariantType) -> Any:
    if value is None:
        raise TypeError("null is not writable")

    if variant_type == ua.VariantType.Boolean:
        if isinstance(value, (bool, int, float)):
            return bool(value)
        raise TypeError(f"expected boolean, got {type(value).__name__}")

    if variant_type in _INTEGER_TYPES:
        if isinstance(value, float) and not value.is_integer():
            raise ValueError(f"{value} is not an integer")
        if isinstance(value, (bool, int, float, str)):
            return int(value)
        raise TypeError(f"expected integer, got {type(value).__name__}")

    if variant_type in _FLOAT_TYPES:
        if isinstance(value, (bool, int, float, str)):
            return float(value)
        raise TypeError(f"expected number, got {type(value).__name__}")

    if not isinstance(value, str):
        if variant_type == ua.VariantType.String and isinstance(value, (int, float)):
            return str(value)
        raise TypeError(f"expected string, got {type(value).__name__}")

    if variant_type == ua.VariantType.String:
        return value
    if variant_type == ua.VariantType.LocalizedText:
        return ua.LocalizedText(Text=value)
    if variant_type == ua.VariantType.DateTime:
        return datetime.fromisoformat(value)
    if variant_type == ua.VariantType.ByteString:
        return base64.b64decode(value, validate=True)
    if variant_type == ua.VariantType.Guid:
        return uuid.UUID(value)
    if variant_type == ua.VariantType.NodeId:
        return ua.NodeId.from_string(value)
    raise TypeError(f"writing {variant_type.name} values is not supported")

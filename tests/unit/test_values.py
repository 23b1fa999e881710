"""Unit tests for OPC-UA <-> JSON value conversion."""

import uuid
from datetime import datetime, timezone

import pytest
from asyncua import ua

from opcua_gateway.opcua.values import to_json, to_variant


class TestToJson:
    """Tests for values read from nodes."""

    @pytest.mark.parametrize("value", [None, True, False, 0, -7, 3.25, "text"])
    def test_plain_values_pass_through(self, value) -> None:
        assert to_json(value) == value

    def test_non_finite_floats_become_null(self) -> None:
        assert to_json(float("nan")) is None
        assert to_json(float("inf")) is None

    def test_datetime(self) -> None:
        stamp = datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)
        assert to_json(stamp) == "2024-03-01T12:30:00+00:00"

    def test_bytes_are_base64(self) -> None:
        assert to_json(b"\x00\x01\xff") == "AAH/"

    def test_uuid(self) -> None:
        guid = uuid.UUID("12345678-1234-5678-1234-567812345678")
        assert to_json(guid) == "12345678-1234-5678-1234-567812345678"

    def test_localized_text(self) -> None:
        assert to_json(ua.LocalizedText(Text="Oven", Locale="en")) == "Oven"

    def test_qualified_name(self) -> None:
        assert to_json(ua.QualifiedName(Name="Temperature", NamespaceIndex=2)) == "Temperature"

    def test_node_id(self) -> None:
        assert to_json(ua.NodeId(Identifier=1234, NamespaceIndex=2)) == "ns=2;i=1234"

    def test_enum_becomes_int(self) -> None:
        assert to_json(ua.NodeClass.Variable) == 2

    def test_arrays_recursive(self) -> None:
        assert to_json([1.5, [True, b"\x01"]]) == [1.5, [True, "AQ=="]]

    def test_variant_unwrapped(self) -> None:
        assert to_json(ua.Variant(42, ua.VariantType.Int32)) == 42

    def test_structure_becomes_object(self) -> None:
        rng = ua.Range(Low=0.0, High=100.0)
        assert to_json(rng) == {"Low": 0.0, "High": 100.0}


class TestToVariant:
    """Tests for values written to nodes."""

    def test_double(self) -> None:
        variant = to_variant(21, ua.VariantType.Double)
        assert variant.Value == 21.0
        assert isinstance(variant.Value, float)
        assert variant.VariantType == ua.VariantType.Double

    def test_integer_from_integral_float(self) -> None:
        assert to_variant(5.0, ua.VariantType.Int16).Value == 5

    def test_integer_rejects_fraction(self) -> None:
        with pytest.raises(ValueError):
            to_variant(5.5, ua.VariantType.Int32)

    def test_integer_from_string(self) -> None:
        assert to_variant("12", ua.VariantType.UInt32).Value == 12

    def test_integer_from_bad_string(self) -> None:
        with pytest.raises(ValueError):
            to_variant("twelve", ua.VariantType.UInt32)

    def test_boolean(self) -> None:
        assert to_variant(True, ua.VariantType.Boolean).Value is True
        assert to_variant(0, ua.VariantType.Boolean).Value is False

    def test_boolean_rejects_string(self) -> None:
        with pytest.raises(TypeError):
            to_variant("true", ua.VariantType.Boolean)

    def test_string(self) -> None:
        assert to_variant("batch-7", ua.VariantType.String).Value == "batch-7"
        assert to_variant(7, ua.VariantType.String).Value == "7"

    def test_datetime(self) -> None:
        variant = to_variant("2024-03-01T12:30:00+00:00", ua.VariantType.DateTime)
        assert variant.Value == datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)

    def test_bytestring(self) -> None:
        assert to_variant("AAH/", ua.VariantType.ByteString).Value == b"\x00\x01\xff"

    def test_array(self) -> None:
        variant = to_variant([1, 2, 3], ua.VariantType.Float)
        assert variant.Value == [1.0, 2.0, 3.0]

    def test_null_rejected(self) -> None:
        with pytest.raises(TypeError):
            to_variant(None, ua.VariantType.Double)

    def test_object_rejected(self) -> None:
        with pytest.raises(TypeError):
            to_variant({"a": 1}, ua.VariantType.Double)

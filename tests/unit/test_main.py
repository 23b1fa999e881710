"""Unit tests for the process entry point and its exit status."""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from opcua_gateway.core.config import Settings
from opcua_gateway.main import build_dispatcher, main, run
from opcua_gateway.port.framing import encode_message


class RecordingWriter:
    def __init__(self):
        self.buffer = bytearray()

    def write(self, data: bytes) -> None:
        self.buffer.extend(data)

    async def drain(self) -> None:
        pass


def frame(method: str, args=None) -> bytes:
    body = {"method": method}
    if args is not None:
        body["args"] = args
    return encode_message(json.dumps(body).encode())


def fake_stdio(data: bytes):
    """Build an open_stdio replacement feeding data then EOF."""
    writer = RecordingWriter()

    async def open_stdio():
        reader = asyncio.StreamReader()
        reader.feed_data(data)
        reader.feed_eof()
        return reader, writer

    return open_stdio, writer


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, header_length=2, connect_timeout=2.5)


@pytest.fixture
def gateway(settings, dispatcher):
    """Patch main's collaborators so main() runs against the fake driver."""
    with (
        patch("opcua_gateway.main.get_settings", return_value=settings),
        patch("opcua_gateway.main.configure_logging"),
        patch("opcua_gateway.main.build_dispatcher", return_value=dispatcher),
    ):
        yield dispatcher


CONNECT = frame("connect", {"url": "opc.tcp://10.0.0.1:4840"})


class TestMain:
    """Tests for main() exit status."""

    def test_clean_eof_exits_normally(self, gateway, driver_factory) -> None:
        open_stdio, writer = fake_stdio(CONNECT + frame("read_item", "temp1"))

        with patch("opcua_gateway.main.open_stdio", open_stdio):
            main()

        assert bytes(writer.buffer) == encode_message(b'"ok"') + encode_message(b"21.5")
        assert driver_factory.drivers[0].calls[-1] == ("disconnect",)
        assert gateway.session.is_connected is False

    def test_truncated_frame_exits_with_error(self, gateway, driver_factory) -> None:
        open_stdio, writer = fake_stdio(CONNECT + b"\x00\x20{\"method\"")

        with patch("opcua_gateway.main.open_stdio", open_stdio):
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 1
        assert bytes(writer.buffer) == encode_message(b'"ok"')
        assert driver_factory.drivers[0].calls[-1] == ("disconnect",)

    def test_empty_channel_exits_normally(self, gateway, driver_factory) -> None:
        open_stdio, writer = fake_stdio(b"")

        with patch("opcua_gateway.main.open_stdio", open_stdio):
            main()

        assert writer.buffer == bytearray()
        assert driver_factory.drivers == []


@pytest.mark.asyncio
class TestRun:
    """Tests for run()."""

    async def test_returns_commands_handled(self, settings, dispatcher, driver_factory) -> None:
        open_stdio, _ = fake_stdio(CONNECT + frame("browse_nodes") + frame("shutdown"))

        with (
            patch("opcua_gateway.main.open_stdio", open_stdio),
            patch("opcua_gateway.main.build_dispatcher", return_value=dispatcher),
        ):
            handled = await run(settings)

        assert handled == 3
        assert dispatcher.session.is_connected is False
        assert driver_factory.drivers[0].connected is False

    async def test_discovery_uses_connect_timeout(self, settings) -> None:
        dispatcher = build_dispatcher(settings)

        with patch(
            "opcua_gateway.main.browse_servers",
            AsyncMock(return_value=["opc.tcp://plc:4840"]),
        ) as discover:
            result = await dispatcher.handle("browse_servers", {"host": "plc", "port": 4840})

        assert result.value == ["opc.tcp://plc:4840"]
        discover.assert_awaited_once_with("plc", 4840, timeout=2.5)

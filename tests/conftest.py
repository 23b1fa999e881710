"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pytest
import pytest_asyncio

from opcua_gateway.core.dispatcher import Dispatcher
from opcua_gateway.core.errors import DriverError
from opcua_gateway.core.session import Session
from opcua_gateway.opcua.client import OPCUAConfig


class FakeDriver:
    """In-memory endpoint driver.

    Values are keyed by path; paths missing from the map fail reads and
    writes with "invalid node path: <path>".
    """

    def __init__(
        self,
        config: OPCUAConfig,
        values: dict[str, Any] | None = None,
        connect_error: str | None = None,
    ):
        self.config = config
        self.values = dict(values or {})
        self.connect_error = connect_error
        self.connected = False
        self.calls: list[tuple] = []

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def connect(self) -> None:
        self.calls.append(("connect", self.config.endpoint_url))
        if self.connect_error:
            raise DriverError(self.connect_error)
        self.connected = True

    async def disconnect(self) -> None:
        self.calls.append(("disconnect",))
        self.connected = False

    async def read_value(self, path: str) -> Any:
        self.calls.append(("read", path))
        if path not in self.values:
            raise DriverError(f"invalid node path: {path}")
        return self.values[path]

    async def write_value(self, path: str, value: Any) -> None:
        self.calls.append(("write", path, value))
        if path not in self.values:
            raise DriverError(f"invalid node path: {path}")
        self.values[path] = value

    def cached_paths(self) -> Sequence[str]:
        return tuple(self.values)


class FakeDriverFactory:
    """Driver factory recording every driver it builds."""

    def __init__(self, values: dict[str, Any] | None = None):
        self.values = values or {}
        self.connect_errors: list[str] = []
        self.drivers: list[FakeDriver] = []

    def __call__(self, config: OPCUAConfig) -> FakeDriver:
        error = self.connect_errors.pop(0) if self.connect_errors else None
        driver = FakeDriver(config, values=self.values, connect_error=error)
        self.drivers.append(driver)
        return driver


@pytest.fixture
def plant_values() -> dict[str, Any]:
    """Node values of a small simulated plant, in browse order."""
    return {
        "Line1": None,
        "Line1/Oven": None,
        "Line1/Oven/Temperature": 182.5,
        "Line1/Oven/Setpoint": 180.0,
        "Line1/Conveyor/Running": True,
        "Line2/Press/Count": 4711,
        "temp1": 21.5,
    }


@pytest.fixture
def driver_factory(plant_values) -> FakeDriverFactory:
    return FakeDriverFactory(plant_values)


@pytest.fixture
def session(driver_factory) -> Session:
    return Session(driver_factory=driver_factory)


@pytest.fixture
def discovered_urls() -> list[str]:
    return ["opc.tcp://10.0.0.1:4840", "opc.tcp://10.0.0.1:4841/sim"]


@pytest.fixture
def discover(discovered_urls):
    calls: list[tuple[str, int]] = []

    async def _discover(host: str, port: int) -> list[str]:
        calls.append((host, port))
        if host == "unreachable":
            raise DriverError("Connection refused")
        return list(discovered_urls)

    _discover.calls = calls
    return _discover


@pytest.fixture
def dispatcher(session, discover) -> Dispatcher:
    return Dispatcher(session, discover=discover)


@pytest_asyncio.fixture
async def connected_dispatcher(dispatcher) -> Dispatcher:
    result = await dispatcher.handle("connect", {"url": "opc.tcp://10.0.0.1:4840"})
    assert result.ok
    return dispatcher

"""Command dispatcher: routes host commands to their handlers.

Each route validates its own arguments, checks the session gate, and
either returns a JSON-compatible value or raises a GatewayError. The
dispatcher turns every error into a failure Result, so nothing raised by a
handler ever reaches the command loop.

Routes:
    browse_servers  {host, port}                 -> [url, ...]
    connect         {url, certificate?, private_key?, login?, password?,
                     update_cycle?}              -> "ok"
    read_item       path                         -> value
    read_items      [path, ...]                  -> [value | "error: ...", ...]
    write_item      [path, value]                -> "ok"
    write_items     [[path, value], ...]         -> ["ok" | "error: ...", ...]
    browse_nodes    (ignored)                    -> [path, ...]
    search          substring                    -> [path, ...]
"""

import base64
import binascii
import dataclasses
import math
import structlog
from collections.abc import Awaitable, Callable

from opcua_gateway.core.batch import run_batch
from opcua_gateway.core.cache import NodeCache
from opcua_gateway.core.driver import ServerDiscovery
from opcua_gateway.core.errors import (
    AlreadyConnectedError,
    GatewayError,
    ValidationError,
)
from opcua_gateway.core.session import Session
from opcua_gateway.opcua.client import OPCUAConfig, browse_servers
from opcua_gateway.port.codec import Command, Result, Value

logger = structlog.get_logger(__name__)

Handler = Callable[[Value], Awaitable[Value]]

OK = "ok"


def _is_number(value: Value) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, float):
        return math.isfinite(value)
    return isinstance(value, int)


def _is_string(value: Value) -> bool:
    return isinstance(value, str)


def _decode_base64(value: str, message: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError(message) from None


class Dispatcher:
    """Routes commands to handlers over a static method table.

    Args:
        session: The process-wide session
        discover: Coroutine used by browse_servers
        base_config: Defaults (timeouts, browse limits) for new connections
    """

    def __init__(
        self,
        session: Session,
        discover: ServerDiscovery = browse_servers,
        base_config: OPCUAConfig | None = None,
    ):
        self._session = session
        self._discover = discover
        self._base_config = base_config or OPCUAConfig()
        self._routes: dict[str, Handler] = {
            "browse_servers": self._browse_servers,
            "connect": self._connect,
            "read_item": self._read_item,
            "read_items": self._read_items,
            "write_item": self._write_item,
            "write_items": self._write_items,
            "browse_nodes": self._browse_nodes,
            "search": self._search,
        }

    @property
    def session(self) -> Session:
        return self._session

    @property
    def methods(self) -> list[str]:
        return list(self._routes)

    async def handle_command(self, command: Command) -> Result:
        return await self.handle(command.method, command.args)

    async def handle(self, method: str, args: Value) -> Result:
        """Run one command and wrap its outcome in a Result."""
        logger.debug("gateway_request", method=method)

        handler = self._routes.get(method)
        if handler is None:
            logger.info("gateway_request_failed", method=method, error="invalid method")
            return Result.failure("invalid method")

        try:
            value = await handler(args)
        except GatewayError as e:
            logger.info("gateway_request_failed", method=method, error=e.message)
            return Result.failure(e.message)
        except Exception as e:
            logger.exception("gateway_handler_crashed", method=method)
            return Result.failure(str(e) or type(e).__name__)

        return Result.success(value)

    # --- Discovery ---

    async def _browse_servers(self, args: Value) -> list[str]:
        if not isinstance(args, dict):
            raise ValidationError("invalid parameters")

        host = args.get("host")
        if not _is_string(host):
            raise ValidationError("host is not defined")

        port = args.get("port")
        if not _is_number(port):
            raise ValidationError("port is not defined")

        return await self._discover(host, int(port))

    # --- Session ---

    async def _connect(self, args: Value) -> str:
        if self._session.is_connected:
            raise AlreadyConnectedError()

        config = self._parse_connect_args(args)
        await self._session.connect(config)
        return OK

    def _parse_connect_args(self, args: Value) -> OPCUAConfig:
        """Validate connect arguments into a connection config.

        Optional fields of the wrong type count as absent; a certificate
        needs a private key and a login needs a password.
        """
        if not isinstance(args, dict):
            raise ValidationError("invalid parameters")

        url = args.get("url")
        if not _is_string(url):
            raise ValidationError("url is not defined")

        certificate = None
        private_key = None
        if _is_string(args.get("certificate")):
            if not _is_string(args.get("private_key")):
                raise ValidationError("key is not defined")
            certificate = _decode_base64(args["certificate"], "invalid certificate")
            private_key = _decode_base64(args["private_key"], "invalid private key")

        username = None
        password = None
        if _is_string(args.get("login")):
            if not _is_string(args.get("password")):
                raise ValidationError("password is not defined")
            username = args["login"]
            password = args["password"]

        # update_cycle is given in seconds, the driver works in milliseconds
        update_cycle = 0
        seconds = args.get("update_cycle")
        if _is_number(seconds) and _is_number(seconds * 1000):
            update_cycle = max(int(round(seconds * 1000)), 0)

        return dataclasses.replace(
            self._base_config,
            endpoint_url=url,
            certificate=certificate,
            private_key=private_key,
            username=username,
            password=password,
            update_cycle=update_cycle,
        )

    # --- Values ---

    async def _read_item(self, args: Value) -> Value:
        driver = self._session.require_connection()
        return await self._read_one(driver, args)

    async def _read_items(self, args: Value) -> list[Value]:
        driver = self._session.require_connection()
        return await run_batch(
            args,
            lambda item: self._read_one(driver, item),
            "invalid read arguments",
        )

    async def _write_item(self, args: Value) -> str:
        driver = self._session.require_connection()
        return await self._write_one(driver, args)

    async def _write_items(self, args: Value) -> list[Value]:
        driver = self._session.require_connection()
        return await run_batch(
            args,
            lambda item: self._write_one(driver, item),
            "invalid write_items arguments",
        )

    @staticmethod
    async def _read_one(driver, path: Value) -> Value:
        if not _is_string(path):
            raise ValidationError("path is not defined")
        return await driver.read_value(path)

    @staticmethod
    async def _write_one(driver, item: Value) -> str:
        if not isinstance(item, list):
            raise ValidationError("invalid write_item arguments")
        if not item or not _is_string(item[0]):
            raise ValidationError("item path is not defined")
        if len(item) < 2:
            raise ValidationError("item value is not defined")

        await driver.write_value(item[0], item[1])
        return OK

    # --- Node cache ---

    async def _browse_nodes(self, args: Value) -> list[str]:
        driver = self._session.require_connection()
        return list(NodeCache(driver.cached_paths).enumerate())

    async def _search(self, args: Value) -> list[str]:
        driver = self._session.require_connection()
        if not _is_string(args):
            raise ValidationError("undefined search string")
        return list(NodeCache(driver.cached_paths).search(args))

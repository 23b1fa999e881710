"""Batch execution with per-item error isolation.

A failing item never aborts the batch: its slot in the output carries the
string ``"error: <message>"`` instead of a value, so the result stays an
ordinary array aligned one-to-one with the input.
"""

import structlog
from collections.abc import Awaitable, Callable

from opcua_gateway.core.errors import ValidationError
from opcua_gateway.port.codec import Value

logger = structlog.get_logger(__name__)

ERROR_PREFIX = "error: "

ItemOperation = Callable[[Value], Awaitable[Value]]


def format_item_error(error: BaseException) -> str:
    return f"{ERROR_PREFIX}{str(error) or type(error).__name__}"


async def run_batch(items: Value, op: ItemOperation, invalid_message: str) -> list[Value]:
    """Apply op to every item in order, collecting values or error strings.

    Args:
        items: Batch argument from the host, must be an array
        op: Single-item coroutine (read one / write one)
        invalid_message: Error reported when items is not an array

    Returns:
        One entry per input item, in input order

    Raises:
        ValidationError: If items is not an array
    """
    if not isinstance(items, list):
        raise ValidationError(invalid_message)

    results: list[Value] = []
    failed = 0
    for item in items:
        try:
            results.append(await op(item))
        except Exception as e:
            failed += 1
            results.append(format_item_error(e))

    if failed:
        logger.info("batch_item_failures", total=len(items), failed=failed)
    return results

"""Request/response command loop over a framed channel.

One message in, one message out: each command is decoded, dispatched and
answered before the next message is read, so responses leave in exactly
the order the commands arrived.
"""

import structlog

from opcua_gateway.core.dispatcher import Dispatcher
from opcua_gateway.core.errors import DecodeError, EndOfStream
from opcua_gateway.port.codec import (
    INVALID_PARAMETERS,
    Result,
    decode_command,
    encode_result,
)
from opcua_gateway.port.framing import Framer, max_payload_size

logger = structlog.get_logger(__name__)

RESPONSE_TOO_LARGE = "response too large"


async def process_message(payload: bytes, dispatcher: Dispatcher) -> Result:
    """Decode and execute a single command payload."""
    try:
        command = decode_command(payload)
    except DecodeError as e:
        logger.info("gateway_decode_failed", error=str(e), size=len(payload))
        return Result.failure(INVALID_PARAMETERS)
    return await dispatcher.handle_command(command)


def build_response(result: Result, header_length: int) -> bytes:
    """Encode a result, replacing it with an error if it cannot be framed."""
    try:
        response = encode_result(result)
    except (TypeError, ValueError) as e:
        logger.error("gateway_encode_failed", error=str(e))
        response = encode_result(Result.failure(f"unable to encode result: {e}"))

    if len(response) > max_payload_size(header_length):
        logger.warning(
            "gateway_response_too_large",
            size=len(response),
            max=max_payload_size(header_length),
        )
        response = encode_result(Result.failure(RESPONSE_TOO_LARGE))
    return response


async def serve(framer: Framer, dispatcher: Dispatcher) -> int:
    """Run the command loop until the host closes the channel.

    Returns:
        Number of commands processed

    Raises:
        TransportError: If the channel fails or a frame is truncated
    """
    handled = 0
    logger.info("gateway_loop_started", header_length=framer.header_length)

    while True:
        try:
            payload = await framer.read_message()
        except EndOfStream:
            logger.info("gateway_channel_closed", handled=handled)
            return handled

        handled += 1
        with structlog.contextvars.bound_contextvars(command=handled):
            result = await process_message(payload, dispatcher)
            response = build_response(result, framer.header_length)
        await framer.write_message(response)

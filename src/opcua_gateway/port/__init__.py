"""Host port: message framing, payload codec, and the command loop."""

from opcua_gateway.port.codec import Command, Result, decode_command, encode_result
from opcua_gateway.port.framing import Framer, encode_message, open_stdio

__all__ = [
    "Command",
    "Framer",
    "Result",
    "decode_command",
    "encode_message",
    "encode_result",
    "open_stdio",
]

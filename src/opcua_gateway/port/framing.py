"""Length-prefixed message framing over a duplex byte stream.

Wire format
-----------
Every message in either direction is a big-endian unsigned length header of
``header_length`` bytes followed by exactly that many payload bytes:

  [ length : uint BE, H bytes ] [ payload : length bytes ]

The framer never looks inside the payload.
"""

import asyncio
import sys

import structlog

from opcua_gateway.core.errors import EndOfStream, TransportError

logger = structlog.get_logger(__name__)

DEFAULT_HEADER_LENGTH = 2


def max_payload_size(header_length: int) -> int:
    """Largest payload length a header of the given width can carry."""
    return (1 << (8 * header_length)) - 1


def encode_message(payload: bytes, header_length: int = DEFAULT_HEADER_LENGTH) -> bytes:
    """Prefix a payload with its big-endian length header.

    Raises:
        TransportError: If the payload is too long for the header width
    """
    size = len(payload)
    if size > max_payload_size(header_length):
        raise TransportError(
            f"payload of {size} bytes exceeds {header_length}-byte length header"
        )
    return size.to_bytes(header_length, "big") + payload


def decode_header(header: bytes) -> int:
    """Decode a big-endian length header into a payload length."""
    return int.from_bytes(header, "big")


class Framer:
    """Reads and writes length-prefixed messages on an asyncio stream pair.

    Reads block until a complete message is available. A channel that closes
    before the first header byte is a clean close (EndOfStream); a channel
    that closes anywhere later leaves a truncated frame (TransportError).
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        header_length: int = DEFAULT_HEADER_LENGTH,
    ):
        self._reader = reader
        self._writer = writer
        self._header_length = header_length

    @property
    def header_length(self) -> int:
        return self._header_length

    async def read_message(self) -> bytes:
        """Read one complete message payload.

        Returns:
            The payload bytes (possibly empty)

        Raises:
            EndOfStream: If the peer closed the channel between messages
            TransportError: If the channel closed mid-frame or failed
        """
        try:
            header = await self._reader.readexactly(self._header_length)
        except asyncio.IncompleteReadError as e:
            if not e.partial:
                raise EndOfStream() from None
            raise TransportError(
                f"channel closed after {len(e.partial)} of "
                f"{self._header_length} header bytes"
            ) from None
        except (ConnectionError, OSError) as e:
            raise TransportError(f"read failed: {e}") from e

        length = decode_header(header)
        if length == 0:
            return b""

        try:
            return await self._reader.readexactly(length)
        except asyncio.IncompleteReadError as e:
            raise TransportError(
                f"channel closed after {len(e.partial)} of {length} payload bytes"
            ) from None
        except (ConnectionError, OSError) as e:
            raise TransportError(f"read failed: {e}") from e

    async def write_message(self, payload: bytes) -> None:
        """Write one message and wait until it is flushed.

        Raises:
            TransportError: If the payload does not fit or the write fails
        """
        frame = encode_message(payload, self._header_length)
        try:
            self._writer.write(frame)
            await self._writer.drain()
        except (ConnectionError, OSError) as e:
            raise TransportError(f"write failed: {e}") from e


async def open_stdio(
    loop: asyncio.AbstractEventLoop | None = None,
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Wrap the process stdin/stdout pipes in an asyncio stream pair."""
    loop = loop or asyncio.get_running_loop()

    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(
        lambda: asyncio.StreamReaderProtocol(reader), sys.stdin.buffer
    )

    transport, protocol = await loop.connect_write_pipe(
        asyncio.streams.FlowControlMixin, sys.stdout.buffer
    )
    writer = asyncio.StreamWriter(transport, protocol, reader, loop)

    logger.debug("stdio_channel_opened")
    return reader, writer

"""Error taxonomy for the gateway.

Everything derived from GatewayError is recoverable: the dispatcher turns it
into a failure Result and the command loop keeps running. Transport errors
are fatal and end the process.
"""


class GatewayError(Exception):
    """Base class for errors reported back to the host as a failure Result."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ValidationError(GatewayError):
    """Malformed or missing command arguments."""


class StateError(GatewayError):
    """Command not allowed in the current session state."""


class NotConnectedError(StateError):
    def __init__(self, message: str = "no connection"):
        super().__init__(message)


class AlreadyConnectedError(StateError):
    def __init__(self, message: str = "already connected"):
        super().__init__(message)


class DriverError(GatewayError):
    """The OPC UA endpoint driver reported a failure."""


class DecodeError(Exception):
    """A message payload is not a well-formed command."""


class TransportError(Exception):
    """The byte channel failed or carried a truncated frame."""


class EndOfStream(Exception):
    """The peer closed the channel on a frame boundary."""

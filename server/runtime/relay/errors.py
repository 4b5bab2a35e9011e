"""
Ephemeral Chat Relay - Error Types

Only AdmissionRejected ever reaches a client. The other errors are raised
inside the core and absorbed where the request or fan-out is handled.
"""


class RelayError(Exception):
    """Base class for relay errors"""


class AdmissionRejected(RelayError):
    """The distinct-origin quota is exhausted"""

    def __init__(self, origin: str, quota: int):
        super().__init__(f"Chat room is full (at most {quota} different networks)")
        self.origin = origin
        self.quota = quota


class MalformedPayload(RelayError):
    """Request body could not be parsed or does not describe a valid action"""


class UnauthorizedAction(RelayError):
    """Identity is not allowed to perform the action on the target"""


class ChannelWriteError(RelayError):
    """A single push channel could not accept a frame"""


class UpstreamUnavailable(RelayError):
    """An outbound lookup service failed or is not configured"""

"""
ycmd-ide - Error taxonomy

Every failure the client can observe maps onto one of these. The supervisor
raises them; the client turns them into boolean results for the editor and
keeps the last one around so integrity failures can be reported on their own.
"""


class YcmdError(Exception):
    """Base class for all ycmd-ide errors."""


class CryptoSelfCheckError(YcmdError):
    """HMAC-SHA256 known-answer test failed. Fatal: nothing can be signed."""


class EntropyError(YcmdError):
    """The randomness source returned fewer bytes than requested."""

    def __init__(self, message: str, partial: bytes = b""):
        super().__init__(message)
        self.partial = partial


class PortExhaustionError(YcmdError):
    """No unused localhost port could be obtained."""


class SpawnFailure(YcmdError):
    """The completion server exited right after being spawned."""

    def __init__(self, message: str, returncode: int | None = None):
        super().__init__(message)
        self.returncode = returncode


class TransportError(YcmdError):
    """Connection refused, timed out or broken while talking to the server."""


class IntegrityError(YcmdError):
    """Response HMAC did not match. The response body must not be used."""


class ProtocolParseError(YcmdError):
    """Response body was not the JSON shape the endpoint promises."""

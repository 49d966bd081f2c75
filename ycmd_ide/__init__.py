"""
ycmd-ide - authenticated client and supervisor for a local ycmd server.
"""

from .client import CompletionResult, YcmdClient
from .config import Settings, ToolPaths
from .errors import (
    CryptoSelfCheckError,
    EntropyError,
    IntegrityError,
    PortExhaustionError,
    ProtocolParseError,
    SpawnFailure,
    TransportError,
    YcmdError,
)
from .supervisor import ServerSession, ServerState, ServerSupervisor

__version__ = "0.1.0"

__all__ = [
    "YcmdClient",
    "CompletionResult",
    "Settings",
    "ToolPaths",
    "ServerSupervisor",
    "ServerSession",
    "ServerState",
    "YcmdError",
    "CryptoSelfCheckError",
    "EntropyError",
    "PortExhaustionError",
    "SpawnFailure",
    "TransportError",
    "IntegrityError",
    "ProtocolParseError",
]

"""
ycmd-ide - Ephemeral port discovery

ycmd wants its port on the command line, so the client has to pick one:
bind port 0, read back what the OS chose, close the socket. Another process
can grab the port between the close and ycmd's own bind. On a localhost-only
setup that race is accepted rather than worked around.
"""

import logging
import socket

from .errors import PortExhaustionError

logger = logging.getLogger(__name__)


def find_unused_port(host: str = "") -> int:
    """Return a TCP port the OS currently considers free.

    The socket is never listened on. Raises PortExhaustionError.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind((host, 0))
            port = sock.getsockname()[1]
    except OSError as e:
        raise PortExhaustionError(f"failed to find unused port: {e}") from e
    logger.debug("Found unused port at %d", port)
    return port

"""
ycmd-ide - Shared secret

The HMAC key shared with the completion server. It is generated once per
client, handed to the server only inside the startup options file, and
zeroed on teardown.
"""

import base64
import hashlib
import hmac
import logging

from .config import ENTROPY_SOURCE, SECRET_KEY_LENGTH
from .errors import CryptoSelfCheckError, EntropyError

logger = logging.getLogger(__name__)

# RFC 4231, test case 2
_SELF_CHECK_KEY = b"Jefe"
_SELF_CHECK_DATA = b"what do ya want for nothing?"
_SELF_CHECK_DIGEST = "5bdcc146bf60754e6a042426089575c75a003f089d2739839dec58b964ec3843"


class Secret:
    """Raw key bytes plus their base64 form."""

    def __init__(self, raw: bytes):
        self._raw = bytearray(raw)
        self.base64 = to_base64(raw)
        self._released = False

    @property
    def raw(self) -> bytes:
        return bytes(self._raw)

    @property
    def released(self) -> bool:
        return self._released

    def release(self):
        """Overwrite the key material in place."""
        for i in range(len(self._raw)):
            self._raw[i] = 0
        self.base64 = ""
        self._released = True

    def __len__(self) -> int:
        return len(self._raw)

    def __repr__(self) -> str:
        return f"Secret(<{len(self._raw)} bytes>)"


def to_base64(raw: bytes) -> str:
    """Standard base64 without line wrapping."""
    return base64.b64encode(raw).decode("ascii")


def read_entropy(source: str = ENTROPY_SOURCE, length: int = SECRET_KEY_LENGTH) -> bytes:
    """Read exactly `length` bytes from a blocking randomness device.

    Raises EntropyError (with whatever was read) on a short read or when the
    source cannot be opened or read.
    """
    try:
        with open(source, "rb", buffering=0) as f:
            data = f.read(length)
    except OSError as e:
        raise EntropyError(f"cannot read {source}: {e}", partial=b"") from e
    if len(data) != length:
        raise EntropyError(
            f"read {len(data)} of {length} bytes from {source}",
            partial=data,
        )
    return data


def generate(source: str = ENTROPY_SOURCE) -> Secret:
    """Generate the secret, failing with EntropyError on a short read."""
    return Secret(read_entropy(source))


def generate_degraded(source: str = ENTROPY_SOURCE) -> Secret:
    """Generate the secret, zero-padding it if the source came up short.

    A padded key is weaker than a full one. The short read is logged, not
    hidden.
    """
    try:
        return generate(source)
    except EntropyError as e:
        logger.warning("Insufficient entropy for HMAC secret (%s); using zero-padded key", e)
        return Secret(e.partial.ljust(SECRET_KEY_LENGTH, b"\0"))


def crypto_self_check():
    """Known-answer test for HMAC-SHA256. Raises CryptoSelfCheckError."""
    digest = hmac.new(_SELF_CHECK_KEY, _SELF_CHECK_DATA, hashlib.sha256).hexdigest()
    if digest != _SELF_CHECK_DIGEST:
        raise CryptoSelfCheckError("HMAC-SHA256 self-check produced a wrong digest")

"""
ycmd-ide - Request signing and response verification

ycmd authenticates both directions with HMAC-SHA256 over the shared secret:

    request:  b64( HMAC(k, HMAC(k, method) + HMAC(k, path) + HMAC(k, body)) )
    response: b64( HMAC(k, body) )

The request digest travels in the X-Ycm-Hmac header; the server answers with
its own digest of the response body in the same header.
"""

import base64
import hashlib
import hmac

from .errors import IntegrityError
from .secret import Secret

HMAC_HEADER = "X-Ycm-Hmac"
HMAC_SIZE = 32


def _to_bytes(value) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return value.encode("utf-8")


def _hmac(key: bytes, data) -> bytes:
    return hmac.new(key, _to_bytes(data), hashlib.sha256).digest()


def _b64(digest: bytes) -> str:
    return base64.b64encode(digest).decode("ascii")


class Authenticator:
    """Signs outgoing requests and checks incoming responses.

    Holds the Secret itself rather than a copy of its bytes, so releasing the
    secret also disables signing.
    """

    def __init__(self, key):
        self._secret = key if isinstance(key, Secret) else Secret(key)

    @property
    def released(self) -> bool:
        return self._secret.released

    def _key(self) -> bytes:
        if self._secret.released:
            raise IntegrityError("HMAC secret has been released")
        return self._secret.raw

    def request_digest(self, method: str, path: str, body="") -> bytes:
        key = self._key()
        joined = _hmac(key, method) + _hmac(key, path) + _hmac(key, body)
        return _hmac(key, joined)

    def sign_request(self, method: str, path: str, body="") -> str:
        """Header value for a request. `path` excludes the query string."""
        return _b64(self.request_digest(method, path, body))

    def compute_response(self, body) -> str:
        """Digest the server should have attached to `body`."""
        return _b64(_hmac(self._key(), body))

    def verify(self, body, remote_digest: str | None) -> bool:
        """True iff `remote_digest` is exactly the digest of `body`."""
        if not remote_digest:
            return False
        expected = self.compute_response(body)
        return hmac.compare_digest(_to_bytes(expected), _to_bytes(remote_digest))

    def check_response(self, body, remote_digest: str | None):
        """Like verify(), but raises IntegrityError on mismatch."""
        if not self.verify(body, remote_digest):
            raise IntegrityError("response HMAC mismatch; possible compromised connection")

"""Tests for request signing and response verification."""

import base64

import pytest

from ycmd_ide.errors import IntegrityError
from ycmd_ide.hmac_auth import HMAC_HEADER, Authenticator
from ycmd_ide.secret import Secret
from ycmd_ide.stub_server import request_hmac, response_hmac

from .conftest import FIXED_KEY


@pytest.fixture
def auth():
    return Authenticator(FIXED_KEY)


class TestRequestSigning:
    """Golden vectors computed independently with openssl."""

    def test_post_golden_vector(self, auth):
        digest = auth.sign_request("POST", "/completions", '{"line_num": 1}')
        assert digest == "OGQpHqRQpE+FjFqJME/V5TN4Hx72J3tT6VVLZ/AaJR4="

    def test_get_empty_body_golden_vector(self, auth):
        assert auth.sign_request("GET", "/healthy", "") == "3c/WvdBySE42l8wVH9bG89MMVCOtiiT2iWTtYp8egK4="

    def test_deterministic(self, auth):
        first = auth.sign_request("POST", "/event_notification", "{}")
        second = Authenticator(FIXED_KEY).sign_request("POST", "/event_notification", "{}")
        assert first == second

    def test_digest_is_single_line_base64_of_32_bytes(self, auth):
        digest = auth.sign_request("POST", "/completions", "x" * 10000)
        assert "\n" not in digest
        assert len(base64.b64decode(digest)) == 32

    def test_order_of_parts_matters(self, auth):
        assert auth.sign_request("GET", "/a", "b") != auth.sign_request("GET", "/b", "a")

    def test_str_and_bytes_body_agree(self, auth):
        assert auth.sign_request("POST", "/x", "héllo") == auth.sign_request("POST", "/x", "héllo".encode())

    def test_different_key_different_digest(self, auth):
        other = Authenticator(bytes(16))
        assert auth.sign_request("GET", "/healthy") != other.sign_request("GET", "/healthy")

    def test_matches_server_side_implementation(self, auth):
        for method, path, body in [
            ("GET", "/ready", ""),
            ("POST", "/completions", '{"contents": "a\\nb"}'),
            ("POST", "/event_notification", "ünïcode"),
        ]:
            assert auth.sign_request(method, path, body) == request_hmac(
                FIXED_KEY, method, path, body.encode("utf-8")
            )


class TestResponseVerification:
    def test_response_golden_vector(self, auth):
        assert auth.compute_response(b"true") == "Tjk/55k66RZIILPuGzu1YfCYokfyR7MlfHGgMQHL7+g="

    def test_verify_accepts_matching_digest(self, auth):
        body = b'{"completions": []}'
        assert auth.verify(body, response_hmac(FIXED_KEY, body))

    def test_verify_rejects_missing_header(self, auth):
        assert not auth.verify(b"true", None)
        assert not auth.verify(b"true", "")

    def test_any_bit_flip_in_body_fails(self, auth):
        body = b'{"completion_start_column": 5}'
        digest = auth.compute_response(body)
        for i in range(len(body)):
            for bit in range(8):
                tampered = bytearray(body)
                tampered[i] ^= 1 << bit
                assert not auth.verify(bytes(tampered), digest)

    def test_any_bit_flip_in_digest_fails(self, auth):
        body = b"true"
        digest = auth.compute_response(body).encode("ascii")
        for i in range(len(digest)):
            for bit in range(8):
                tampered = bytearray(digest)
                tampered[i] ^= 1 << bit
                assert not auth.verify(body, tampered.decode("latin-1"))

    def test_prefix_of_digest_is_not_enough(self, auth):
        digest = auth.compute_response(b"true")
        assert not auth.verify(b"true", digest[:-1])

    def test_check_response_raises_integrity_error(self, auth):
        with pytest.raises(IntegrityError):
            auth.check_response(b"true", "AAAA")

    def test_header_name(self):
        assert HMAC_HEADER == "X-Ycm-Hmac"


class TestReleasedSecret:
    def test_shares_the_secret_material(self):
        secret = Secret(FIXED_KEY)
        auth = Authenticator(secret)
        assert auth.sign_request("GET", "/healthy") == "3c/WvdBySE42l8wVH9bG89MMVCOtiiT2iWTtYp8egK4="
        secret.release()
        assert auth.released

    def test_cannot_sign_or_verify_after_release(self):
        secret = Secret(FIXED_KEY)
        auth = Authenticator(secret)
        digest = auth.compute_response(b"true")
        secret.release()
        with pytest.raises(IntegrityError):
            auth.sign_request("POST", "/completions", "{}")
        with pytest.raises(IntegrityError):
            auth.check_response(b"true", digest)

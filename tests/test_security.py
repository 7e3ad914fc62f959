"""
Unit tests for password hashing, token signing and code generation.
"""
import datetime as dt

import jwt
import pytest

from app.core.config import Settings
from app.services.codes import generate_numeric_code, generate_opaque_token, matches_hash, sha256_hex
from app.services.password import hash_password, needs_rehash, verify_password
from app.services.tokens import TokenSigner


@pytest.fixture
def signer() -> TokenSigner:
    return TokenSigner(
        Settings(
            _env_file=None,
            jwt_access_secret="unit-access-secret-0123456789abcdef",
            jwt_refresh_secret="unit-refresh-secret-0123456789abcdef",
        )
    )


CLAIMS = {"sub": "user-1", "email": "a@x.com", "role": "admin", "username": "a", "fullName": None}


class TestPasswordHashing:
    """Tests for password hashing and verification."""

    def test_hash_is_salted(self):
        assert hash_password("pw123456") != hash_password("pw123456")

    def test_verify_correct_and_incorrect(self):
        hashed = hash_password("pw123456")
        assert verify_password("pw123456", hashed) is True
        assert verify_password("pw1234567", hashed) is False

    def test_verify_garbage_hash_is_false(self):
        assert verify_password("pw123456", "not-an-argon2-hash") is False

    def test_fresh_hash_needs_no_rehash(self):
        assert needs_rehash(hash_password("pw123456")) is False


class TestTokenSigner:
    """Tests for JWT signing with separate access and refresh keys."""

    def test_access_token_round_trip(self, signer):
        claims = signer.decode_access(signer.sign_access(CLAIMS))
        assert claims["sub"] == "user-1"
        assert claims["username"] == "a"
        assert "jti" in claims

    def test_keys_are_not_interchangeable(self, signer):
        access, refresh = signer.issue_pair(CLAIMS)
        with pytest.raises(jwt.InvalidSignatureError):
            signer.decode_refresh(access)
        with pytest.raises(jwt.InvalidSignatureError):
            signer.decode_access(refresh)

    def test_tokens_minted_together_differ(self, signer):
        assert signer.sign_refresh(CLAIMS) != signer.sign_refresh(CLAIMS)

    def test_expiry_matches_settings(self, signer):
        claims = signer.decode_refresh(signer.sign_refresh(CLAIMS))
        lifetime = dt.timedelta(seconds=claims["exp"] - claims["iat"])
        assert lifetime == dt.timedelta(days=7)

    def test_expired_token_rejected(self, signer):
        signer.access_ttl = dt.timedelta(seconds=-1)
        with pytest.raises(jwt.ExpiredSignatureError):
            signer.decode_access(signer.sign_access(CLAIMS))


class TestCodes:
    @pytest.mark.parametrize("length", [4, 6, 8])
    def test_numeric_code_length(self, length):
        code = generate_numeric_code(length)
        assert len(code) == length
        assert code.isdigit()

    def test_opaque_token_is_hex(self):
        token = generate_opaque_token()
        assert len(token) == 64
        int(token, 16)

    def test_hash_matching(self):
        digest = sha256_hex("123456")
        assert len(digest) == 64
        assert matches_hash("123456", digest) is True
        assert matches_hash("654321", digest) is False

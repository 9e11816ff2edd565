"""
DisasterHub Backend — Credential Primitive Tests
==================================================

Test Strategy:
    ✅ bcrypt hash/verify round trip, salted hashes differ
    ✅ Token carries subject and role, decodes back to the user id
    ❌ Expired, tampered, wrong-secret and subject-less tokens → 401
    ❌ Malformed stored hash → mismatch, not a crash
"""

import uuid
from datetime import timedelta

import pytest
from jose import jwt

from disasterhub.config import settings
from disasterhub.exceptions import UnauthenticatedError
from disasterhub.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)


class TestPasswordHashing:

    def test_hash_verifies(self):
        hashed = hash_password("secret123")
        assert hashed != "secret123"
        assert verify_password("secret123", hashed)

    def test_wrong_password_rejected(self):
        assert not verify_password("wrong", hash_password("secret123"))

    def test_hashes_are_salted(self):
        assert hash_password("secret123") != hash_password("secret123")

    def test_malformed_hash_is_a_mismatch(self):
        assert verify_password("secret123", "not-a-bcrypt-hash") is False


class TestAccessTokens:

    def setup_method(self):
        self.user_id = uuid.uuid4()

    def test_round_trip(self):
        token = create_access_token(self.user_id, "volunteer")
        assert decode_access_token(token) == self.user_id

    def test_payload_claims(self):
        token = create_access_token(self.user_id, "admin")
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        assert claims["sub"] == str(self.user_id)
        assert claims["role"] == "admin"
        assert claims["exp"] > claims["iat"]

    def test_expired_token(self):
        token = create_access_token(self.user_id, "user", expires_delta=timedelta(seconds=-10))
        with pytest.raises(UnauthenticatedError) as exc_info:
            decode_access_token(token)
        assert "expired" in exc_info.value.message

    def test_wrong_secret(self):
        token = jwt.encode({"sub": str(self.user_id)}, "some-other-secret", algorithm="HS256")
        with pytest.raises(UnauthenticatedError):
            decode_access_token(token)

    def test_garbage_token(self):
        with pytest.raises(UnauthenticatedError):
            decode_access_token("not.a.token")

    def test_subject_must_be_uuid(self):
        token = jwt.encode({"sub": "42"}, settings.jwt_secret, algorithm=settings.jwt_algorithm)
        with pytest.raises(UnauthenticatedError):
            decode_access_token(token)

    def test_missing_subject(self):
        token = jwt.encode({"role": "user"}, settings.jwt_secret, algorithm=settings.jwt_algorithm)
        with pytest.raises(UnauthenticatedError):
            decode_access_token(token)

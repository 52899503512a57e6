"""Unit tests for password hashing and access tokens."""

import uuid
from datetime import timedelta

import jwt
import pytest

from app.core.config import settings
from app.core.security import (
    ALGORITHM,
    create_access_token,
    get_password_hash,
    verify_password,
)


class TestPasswordHashing:
    def test_hash_is_salted(self) -> None:
        assert get_password_hash("same_password") != get_password_hash("same_password")

    def test_verify_correct_password(self) -> None:
        hashed = get_password_hash("correct_horse_battery_staple")
        is_valid, updated_hash = verify_password("correct_horse_battery_staple", hashed)
        assert is_valid is True
        assert updated_hash is None

    def test_verify_wrong_password(self) -> None:
        hashed = get_password_hash("correct_password")
        is_valid, _ = verify_password("wrong_password", hashed)
        assert is_valid is False


class TestAccessToken:
    def test_subject_is_user_id(self) -> None:
        user_id = uuid.uuid4()
        token = create_access_token(subject=user_id, expires_delta=timedelta(hours=1))
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
        assert payload["sub"] == str(user_id)
        assert "exp" in payload

    def test_invalid_signature_raises(self) -> None:
        token = create_access_token(subject="user-1", expires_delta=timedelta(hours=1))
        with pytest.raises(jwt.InvalidSignatureError):
            jwt.decode(token, "wrong-secret-key", algorithms=[ALGORITHM])

    def test_expired_token_raises(self) -> None:
        token = create_access_token(subject="user-1", expires_delta=timedelta(seconds=-1))
        with pytest.raises(jwt.ExpiredSignatureError):
            jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])

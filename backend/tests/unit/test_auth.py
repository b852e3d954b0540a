"""Tests for bearer token decoding."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt

from wayfare.config import settings
from wayfare.dependencies import create_access_token, get_current_user_id


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


@pytest.mark.asyncio
async def test_valid_token_yields_user_id() -> None:
    user_id = uuid.uuid4()

    assert await get_current_user_id(_bearer(create_access_token(str(user_id)))) == user_id


@pytest.mark.asyncio
async def test_missing_credentials_are_rejected() -> None:
    with pytest.raises(HTTPException) as exc:
        await get_current_user_id(None)
    assert exc.value.status_code == 401


@pytest.mark.asyncio
async def test_expired_token_is_rejected() -> None:
    expired = jwt.encode(
        {"sub": str(uuid.uuid4()), "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        settings.secret_key,
        algorithm=settings.algorithm,
    )

    with pytest.raises(HTTPException) as exc:
        await get_current_user_id(_bearer(expired))
    assert exc.value.status_code == 401


@pytest.mark.asyncio
async def test_wrong_key_and_non_uuid_subject_are_rejected() -> None:
    forged = jwt.encode({"sub": str(uuid.uuid4())}, "not-the-key", algorithm=settings.algorithm)
    not_uuid = create_access_token("traveller-42")

    for token in (forged, not_uuid, "garbage"):
        with pytest.raises(HTTPException) as exc:
            await get_current_user_id(_bearer(token))
        assert exc.value.status_code == 401

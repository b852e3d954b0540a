import uuid
from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from wayfare.config import settings
from wayfare.services.itinerary_pipeline import ItineraryPipeline, itinerary_pipeline

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: str) -> str:
    """Issue a token for a user id; accounts themselves live in the identity service."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {"sub": user_id, "exp": expire}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> uuid.UUID:
    """Return the user id carried in the bearer token's `sub` claim."""
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise unauthorized
    try:
        payload = jwt.decode(credentials.credentials, settings.secret_key, algorithms=[settings.algorithm])
        return uuid.UUID(str(payload.get("sub")))
    except (JWTError, ValueError):
        raise unauthorized


def get_pipeline() -> ItineraryPipeline:
    return itinerary_pipeline

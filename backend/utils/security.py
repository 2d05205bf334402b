from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from utils.deps import get_stores
from utils.jwt import decode_token, TokenError

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


async def _user_from_token(token: str, stores) -> dict:
    try:
        payload = decode_token(token)
    except TokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    email = payload.get("sub")
    session_id = payload.get("sid")

    if not email or not session_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    user = await stores.users.get(email)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    # logged out or evicted sessions no longer authenticate
    if session_id not in user.get("sessions", []):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session has ended. Please log in again.",
        )

    user["session_id"] = session_id
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    stores=Depends(get_stores),
):
    return await _user_from_token(credentials.credentials, stores)


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_security),
    stores=Depends(get_stores),
):
    if credentials is None:
        return None
    return await _user_from_token(credentials.credentials, stores)


async def require_admin(user=Depends(get_current_user)):
    if not user.get("is_admin"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access only",
        )
    return user

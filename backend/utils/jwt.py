from datetime import datetime, timedelta
from jose import jwt, JWTError
from config.env import JWT_SECRET, JWT_ALGORITHM, ACCESS_TOKEN_DAYS


class TokenError(Exception):
    pass


def _require_jwt_secret() -> str:
    secret = (JWT_SECRET or "").strip()
    if not secret:
        raise RuntimeError("JWT_SECRET is not configured")
    return secret


def create_access_token(email: str, session_id: str, is_admin: bool = False) -> str:
    now = datetime.utcnow()
    payload = {
        "sub": email,
        "sid": session_id,
        "adm": is_admin,
        "exp": now + timedelta(days=ACCESS_TOKEN_DAYS),
        "iat": now,
    }
    return jwt.encode(payload, _require_jwt_secret(), algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, _require_jwt_secret(), algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        raise TokenError("Invalid or expired token") from e

# ===============================================================
# utils/security.py
# ===============================================================
from typing import Optional

from fastapi import Header, Request
from jose import JWTError, jwt

from errors import AuthError

ALGORITHM = "HS256"


def decode_token(token: str, secret: str) -> dict:
    """Verify an HS256 bearer token issued by the auth service."""
    try:
        return jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError:
        raise AuthError("Forbidden", status_code=403)


async def require_user(request: Request, authorization: Optional[str] = Header(None)) -> dict:
    """FastAPI dependency: decoded JWT claims of the caller."""
    if not authorization:
        raise AuthError("Unauthorized")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise AuthError("Unauthorized")

    return decode_token(token, request.app.state.settings.jwt_secret)

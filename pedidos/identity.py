from typing import Optional

from fastapi import Request
from jose import JWTError, jwt
from pydantic import BaseModel

from . import config
from .errors import AuthenticationError


class Caller(BaseModel):
    id: str
    role: Optional[str] = None
    email: Optional[str] = None


def _caller_from_token(token: str) -> Caller:
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError:
        raise AuthenticationError("Invalid token")
    sub = payload.get("sub")
    if not sub:
        raise AuthenticationError("Invalid token")
    return Caller(id=str(sub), role=payload.get("role"), email=payload.get("email"))


def resolve_caller(request: Request) -> Optional[Caller]:
    """Identify the caller from a bearer token or the gateway's X-User-* headers."""
    auth = request.headers.get("authorization")
    if auth and auth.lower().startswith("bearer "):
        return _caller_from_token(auth.split(None, 1)[1])
    if config.TRUST_GATEWAY_HEADERS:
        user_id = request.headers.get("X-User-Id")
        if user_id:
            return Caller(
                id=user_id,
                role=request.headers.get("X-User-Role"),
                email=request.headers.get("X-User-Email"),
            )
    return None


def get_current_caller(request: Request) -> Caller:
    caller = resolve_caller(request)
    if caller is None:
        raise AuthenticationError("User not authenticated")
    return caller

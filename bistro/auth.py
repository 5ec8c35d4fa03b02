import logging
import time
from typing import Optional

import jwt
from fastapi import Depends, Header
from pydantic import BaseModel, Field, ValidationError
from pydantic.config import ConfigDict
from sqlalchemy.orm import Session

from . import config, crud
from .db import get_db
from .schemas import Role

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


class AuthError(Exception):
    status_code = 401
    default_message = "Unauthorized Access"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(AuthError):
    status_code = 401
    default_message = "Unauthorized Access"


class Forbidden(AuthError):
    status_code = 403
    default_message = "Forbidden Access"


class TokenClaims(BaseModel):
    """Identity carried inside an access token. Unknown fields are rejected."""
    email: str = Field(..., min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")

    model_config = ConfigDict(extra="forbid", frozen=True)


def issue_token(claims: TokenClaims, expires_in: Optional[int] = None, now: Optional[int] = None) -> str:
    now = int(time.time()) if now is None else now
    ttl = config.settings().token_expires if expires_in is None else expires_in
    payload = {**claims.model_dump(), "iat": now, "exp": now + ttl}
    logger.debug("issued token for %s (ttl=%ss)", claims.email, ttl)
    return jwt.encode(payload, config.settings().token_secret, algorithm=ALGORITHM)


def verify_token(token: Optional[str]) -> TokenClaims:
    """Decode a bearer token and return its claims, or raise Unauthorized."""
    if not token:
        raise Unauthorized()
    try:
        payload = jwt.decode(
            token,
            config.settings().token_secret,
            algorithms=[ALGORITHM],
            options={"require": ["exp"]},
        )
    except jwt.ExpiredSignatureError:
        logger.info("rejected expired token")
        raise Unauthorized()
    except jwt.PyJWTError as e:
        logger.info("rejected invalid token: %s", e)
        raise Unauthorized()

    payload.pop("iat", None)
    payload.pop("exp", None)
    try:
        return TokenClaims(**payload)
    except ValidationError:
        logger.info("rejected token with malformed claims")
        raise Unauthorized()


# -------------------- request gate --------------------

def get_current_claims(authorization: Optional[str] = Header(default=None)) -> TokenClaims:
    if not authorization:
        raise Unauthorized()
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        raise Unauthorized()
    return verify_token(token.strip())


def require_admin(claims: TokenClaims = Depends(get_current_claims), db: Session = Depends(get_db)) -> TokenClaims:
    user = crud.get_user_by_email(db, claims.email)
    # no record means plain user privileges
    is_admin = user is not None and user.role == Role.admin.value
    if not is_admin:
        logger.warning("admin route refused for %s", claims.email)
        raise Forbidden()
    return claims


def ensure_self(email: str, claims: TokenClaims, message: Optional[str] = None) -> None:
    """Personal-data routes: the path email must be the caller's own, admins included."""
    if email != claims.email:
        logger.warning("%s tried to read data of %s", claims.email, email)
        raise Forbidden(message)

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from authentication.identity import CallerIdentity
from authentication.models import User
from authentication.repository import get_user_by_username
from authentication.security import decode_token
from db.deps import get_db

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise _unauthorized("Not authenticated")

    try:
        claims = decode_token(credentials.credentials)
    except JWTError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise _unauthorized("Invalid token")

    user = get_user_by_username(db, claims["sub"])
    if user is None or not user.is_active:
        raise _unauthorized("User inactive")

    # a token minted for a deleted-and-recreated account must not carry over
    token_uid = claims.get("uid")
    if token_uid is not None and token_uid != user.id:
        raise _unauthorized("Invalid token")

    return user


def get_caller_identity(user: User = Depends(get_current_user)) -> CallerIdentity:
    """Role comes from the stored user, never from the token claims."""
    return CallerIdentity.from_user(user)


def require_admin(caller: CallerIdentity = Depends(get_caller_identity)) -> CallerIdentity:
    if not caller.is_admin:
        logger.warning("SECURITY: admin endpoint refused for %s (role=%s)", caller.username, caller.role)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return caller

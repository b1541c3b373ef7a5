import os
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext
from passlib.exc import UnknownHashError

PWD_CONTEXT = CryptContext(schemes=["bcrypt"], deprecated="auto")

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret")
JWT_ALGORITHM = "HS256"
JWT_ISSUER = os.getenv("JWT_ISSUER", "product-catalog")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "720"))


# --------------------------------------------------
# PASSWORDS
# --------------------------------------------------
def hash_password(password: str) -> str:
    return PWD_CONTEXT.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return PWD_CONTEXT.verify(password, password_hash)
    except (ValueError, UnknownHashError):
        return False


# --------------------------------------------------
# TOKENS
# --------------------------------------------------
def create_access_token(
    username: str,
    role: str,
    user_id: int | None = None,
    expires_in: timedelta | None = None,
) -> str:
    """Sign a bearer token for a catalog user.

    The username goes in ``sub``; role and user id ride along so the caller
    identity can be rebuilt without trusting anything else in the request.
    """
    issued = datetime.now(timezone.utc)
    lifetime = expires_in if expires_in is not None else timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {
        "sub": username,
        "role": role,
        "iss": JWT_ISSUER,
        "iat": issued,
        "exp": issued + lifetime,
    }
    if user_id is not None:
        claims["uid"] = user_id
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Verify signature, expiry and issuer; raises ``JWTError`` on any mismatch."""
    claims = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM], issuer=JWT_ISSUER)
    if not claims.get("sub"):
        raise JWTError("Token has no subject")
    return claims

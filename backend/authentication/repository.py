from sqlalchemy.orm import Session

from authentication.models import User
from authentication.security import verify_password


def get_user_by_username(db: Session, username: str) -> User | None:
    return db.query(User).filter(User.username == username.strip().lower()).first()


def authenticate(db: Session, username: str, password: str) -> User | None:
    """Return the active user matching the credentials, or None."""
    user = get_user_by_username(db, username)
    if user is None or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def create_user(db: Session, username: str, password_hash: str, role: str) -> User | None:
    """Add a user; returns None when the username is taken. Caller commits."""
    username = username.strip().lower()
    if get_user_by_username(db, username) is not None:
        return None

    user = User(username=username, password_hash=password_hash, role=role, is_active=True)
    db.add(user)
    db.flush()
    return user


def list_users(
    db: Session,
    search: str | None = None,
    role: str | None = None,
    limit: int = 100,
) -> list[User]:
    query = db.query(User)
    if search and search.strip():
        query = query.filter(User.username.ilike(f"%{search.strip()}%"))
    if role:
        query = query.filter(User.role == role)
    return query.order_by(User.username.asc()).limit(max(1, min(limit, 500))).all()

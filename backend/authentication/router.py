import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from authentication.deps import get_current_user, require_admin
from authentication.identity import CallerIdentity
from authentication.models import User
from authentication.repository import authenticate, create_user, list_users
from authentication.schemas import CreateUserRequest, LoginRequest, LoginResponse, UserResponse
from authentication.security import create_access_token, hash_password
from db.deps import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate(db, payload.email, payload.password)
    if user is None:
        logger.info("LOGIN failed: %s", payload.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    logger.info("LOGIN: %s (%s)", user.username, user.role)
    return LoginResponse(
        access_token=create_access_token(user.username, user.role, user_id=user.id),
        role=user.role,
        email=user.username,
    )


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return UserResponse.from_user(current_user)


# --------------------------------------------------
# ADMIN: USER MANAGEMENT
# --------------------------------------------------
@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def add_user(
    payload: CreateUserRequest,
    db: Session = Depends(get_db),
    admin: CallerIdentity = Depends(require_admin),
):
    user = create_user(
        db,
        username=payload.email,
        password_hash=hash_password(payload.password),
        role=payload.role,
    )
    if user is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists")
    db.commit()

    logger.info("AUDIT: user %s (%s) created by %s", user.username, user.role, admin.username)
    return UserResponse.from_user(user)


@router.get("/users", response_model=list[UserResponse])
def get_users(
    search: str | None = None,
    role: str | None = None,
    limit: int = 100,
    db: Session = Depends(get_db),
    _: CallerIdentity = Depends(require_admin),
):
    return [UserResponse.from_user(user) for user in list_users(db, search=search, role=role, limit=limit)]

from pydantic import BaseModel, EmailStr, Field

from authentication.identity import ROLE_USER, ROLES

ROLE_PATTERN = "^(" + "|".join(ROLES) + ")$"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str
    email: str


class UserResponse(BaseModel):
    id: int
    email: str
    role: str
    is_active: bool

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        return cls(id=user.id, email=user.username, role=user.role, is_active=user.is_active)


class CreateUserRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    role: str = Field(ROLE_USER, pattern=ROLE_PATTERN)

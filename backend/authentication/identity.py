from dataclasses import dataclass

ROLE_USER = "user"
ROLE_SUPPLIER = "supplier"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_SUPPLIER, ROLE_ADMIN)


@dataclass(frozen=True)
class CallerIdentity:
    """Authenticated caller, handed explicitly to every service that authorizes."""

    user_id: int | None
    username: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_supplier(self) -> bool:
        return self.role == ROLE_SUPPLIER

    @classmethod
    def from_user(cls, user) -> "CallerIdentity":
        return cls(user_id=user.id, username=user.username, role=user.role)

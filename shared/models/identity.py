"""Caller identity as forwarded by the authentication collaborator."""

from enum import Enum

from pydantic import BaseModel


class Role(str, Enum):
    ADMIN = "admin"
    USER = "user"


class Identity(BaseModel):
    """The verified caller of a request.

    Attributes:
        user_id: Stable id of the user in the identity provider.
        role:    Coarse role; only "admin" carries extra capabilities.
    """

    user_id: str
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

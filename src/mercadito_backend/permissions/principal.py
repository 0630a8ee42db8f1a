"""
Authenticated identity attached to HTTP requests and websocket connections.
"""

from typing import List

from pydantic import BaseModel, Field


class Principal(BaseModel):
    """Claims of a verified access token."""

    user_id: int
    email: str = ""
    roles: List[str] = Field(default_factory=list)

    def has_role(self, role: str) -> bool:
        return role in self.roles

    @classmethod
    def from_claims(cls, claims: dict) -> "Principal":
        """Build a principal from the token payload ``{id, email, roles}``."""
        roles = claims.get("roles") or []
        if isinstance(roles, str):
            roles = [roles]
        return cls(
            user_id=int(claims["id"]),
            email=claims.get("email") or "",
            roles=[str(role) for role in roles],
        )

    def to_claims(self) -> dict:
        return {"id": self.user_id, "email": self.email, "roles": list(self.roles)}

"""
Verified caller identity.

The external auth layer hands the core a ``Principal``; the core never
re-checks credentials, only ownership and role.
"""

from dataclasses import dataclass

ROLE_ADMIN = "admin"
ROLE_USER = "user"
ROLES = (ROLE_ADMIN, ROLE_USER)


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def owns(self, rcfa) -> bool:
        return rcfa is not None and rcfa.owner_user_id == self.user_id

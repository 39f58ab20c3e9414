"""
The caller of a service operation.

Identity is resolved by the authentication collaborator; every
service method receives the resulting Actor explicitly instead of
reading ambient session state.
"""

from pydantic import BaseModel

from marketplace_ledger.errors import Forbidden
from marketplace_ledger.models.enums import ActorRole


ADMIN_ROLES = frozenset({ActorRole.OWNER, ActorRole.CITY_ADMIN})
STAFF_ROLES = ADMIN_ROLES | {ActorRole.AGENT}


class Actor(BaseModel):
    """
    Who is acting.

    For riders and restaurants `id` is the rider or restaurant id;
    for staff it is the user id.
    """
    id: int | None = None
    role: ActorRole

    model_config = {"frozen": True}

    @classmethod
    def system(cls) -> "Actor":
        return cls(id=None, role=ActorRole.SYSTEM)

    def require(self, roles, action: str) -> None:
        """Raise Forbidden unless this actor holds one of `roles`."""
        if self.role not in roles:
            raise Forbidden(f"Role '{self.role.value}' may not {action}")

"""
Request dependencies shared by the routers.

Authentication happens upstream; the gateway forwards the caller's
identity in two headers, which are turned into an Actor here.
"""

from fastapi import Header

from marketplace_ledger.models.enums import ActorRole
from marketplace_ledger.schemas.actor import Actor


def get_actor(
    x_actor_role: ActorRole = Header(),
    x_actor_id: int | None = Header(default=None),
) -> Actor:
    return Actor(id=x_actor_id, role=x_actor_role)

# assessment_engine/services/membership.py
from typing import Protocol

from sqlalchemy.orm import Session

from assessment_engine.core.errors import Forbidden
from assessment_engine.core.security import Actor
from assessment_engine.models.membership import RoomMembership


class MembershipChecker(Protocol):
    def is_authorized(self, room_id: int, user_id: int, role: str) -> bool:
        ...


class RosterMembership:
    """Membership lookups against the local ``room_memberships`` roster."""

    def __init__(self, db: Session):
        self.db = db

    def is_authorized(self, room_id: int, user_id: int, role: str) -> bool:
        return (
            self.db.query(RoomMembership.id)
            .filter(
                RoomMembership.room_id == room_id,
                RoomMembership.user_id == user_id,
                RoomMembership.role == role,
                RoomMembership.active.is_(True),
            )
            .first()
            is not None
        )


def ensure_room_access(membership: MembershipChecker, actor: Actor, room_id: int) -> None:
    """
    Raise Forbidden unless the actor may act in the room under its acting role.
    Admins are not tied to rooms.
    """
    if actor.is_admin:
        return
    if not membership.is_authorized(room_id, actor.user_id, actor.role.value):
        raise Forbidden(f"No {actor.role.value} access to room {room_id}")

# assessment_engine/models/membership.py
from sqlalchemy import Boolean, Column, Integer, String, UniqueConstraint

from assessment_engine.db.base import Base


class RoomMembership(Base):
    """Read-only mirror of the classroom roster (teachers and students per room)."""

    __tablename__ = "room_memberships"
    __table_args__ = (
        UniqueConstraint("room_id", "user_id", "role", name="uq_room_member_role"),
    )

    id = Column(Integer, primary_key=True)
    room_id = Column(Integer, nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    role = Column(String(20), nullable=False)  # 'teacher' / 'student'
    active = Column(Boolean, nullable=False, default=True)

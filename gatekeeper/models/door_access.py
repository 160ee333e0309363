# gatekeeper/models/door_access.py
"""
Door grants keyed by (door_id, user_id). A missing row means "not allowed".
"""

from sqlalchemy import Boolean, Column, ForeignKey, Integer
from gatekeeper.database import Base


class DoorAccess(Base):
    __tablename__ = "door_access"

    door_id = Column(Integer, ForeignKey("doors.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    allowed = Column(Boolean, default=False, nullable=False)

    def __repr__(self):
        return f"<DoorAccess door={self.door_id} user={self.user_id} allowed={self.allowed}>"

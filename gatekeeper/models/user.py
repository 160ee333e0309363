# gatekeeper/models/user.py
"""
Users table: people who may present credentials at a door.
`current_pin_id` points at the one PIN that is currently designated for the
user; older PIN rows stay in the pins table for history.
"""

from datetime import datetime
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from gatekeeper.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(200), nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    current_pin_id = Column(
        Integer,
        ForeignKey("pins.id", use_alter=True, name="fk_users_current_pin", ondelete="SET NULL"),
    )
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<User {self.id} name={self.full_name} active={self.active}>"

# gatekeeper/models/pin.py
"""
PIN records. Only the bcrypt hash is stored. A PIN is eligible for matching
only while both the pin row and its owner are active.
"""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from gatekeeper.database import Base


class Pin(Base):
    __tablename__ = "pins"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    pin_hash = Column(String(100), nullable=False)
    active = Column(Boolean, default=True, nullable=False, index=True)

    def __repr__(self):
        return f"<Pin {self.id} user={self.user_id} active={self.active}>"

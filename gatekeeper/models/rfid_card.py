# gatekeeper/models/rfid_card.py
"""RFID cards. A user may hold several active cards at once."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from gatekeeper.database import Base


class RfidCard(Base):
    __tablename__ = "rfid_cards"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    uid = Column(String(64), nullable=False, index=True)   # value read off the card
    active = Column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<RfidCard {self.id} uid={self.uid} user={self.user_id} active={self.active}>"

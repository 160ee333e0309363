# gatekeeper/models/door.py
"""
Doors table. `door_key` is the identifier the door firmware puts in its
MQTT topics (`{base}/{door_key}/card_input`), `id` is what events reference.
"""

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from gatekeeper.database import Base

ACCESS_MODES = ("RFID_OR_PIN", "RFID_AND_PIN")


class Door(Base):
    __tablename__ = "doors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    door_key = Column(String(64), unique=True, nullable=False, index=True)
    name = Column(String(200))
    location = Column(String(200))
    access_mode = Column(String(20), default="RFID_OR_PIN", nullable=False)  # RFID_OR_PIN | RFID_AND_PIN
    open_time_s = Column(Integer, default=5, nullable=False)                  # 1..60 seconds
    active = Column(Boolean, default=True, nullable=False)
    last_seen_ts = Column(DateTime)

    def __repr__(self):
        return f"<Door {self.id} key={self.door_key} active={self.active}>"

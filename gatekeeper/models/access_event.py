# gatekeeper/models/access_event.py
"""
Append-only audit log of access decisions: one row per credential message.
pin_sha / pin_len are written once, right after the insert, and only for
PIN events. The PIN itself and its bcrypt hash are never stored here.
"""

from datetime import datetime
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from gatekeeper.database import Base

CREDENTIAL_RFID = "RFID"
CREDENTIAL_PIN = "PIN"
CREDENTIAL_RFID_PIN = "RFID+PIN"   # reserved for RFID_AND_PIN doors
CREDENTIAL_UNKNOWN = "UNKNOWN"
CREDENTIAL_TYPES = (CREDENTIAL_RFID, CREDENTIAL_PIN, CREDENTIAL_RFID_PIN, CREDENTIAL_UNKNOWN)

RESULT_GRANTED = "granted"
RESULT_DENIED = "denied"
RESULT_ALARM = "alarm"             # reserved, no decision path produces it yet
RESULTS = (RESULT_GRANTED, RESULT_DENIED, RESULT_ALARM)

REASON_RFID_NOT_FOUND = "rfid_not_found"
REASON_PIN_NO_MATCH = "pin_no_match"
REASON_NO_ACCESS = "no_access_to_door"
REASON_EGRESS = "egress"
REASON_HANDLER_ERROR = "handler_error"


class AccessEvent(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ts = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    door_id = Column(Integer, ForeignKey("doors.id", ondelete="SET NULL"), index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))   # set only on grant
    credential_type = Column(String(16), nullable=False)
    presented_uid = Column(String(64))
    result = Column(String(16), nullable=False, index=True)
    reason = Column(String(64))
    pin_sha = Column(String(64))
    pin_len = Column(Integer)

    def __repr__(self):
        return f"<AccessEvent {self.id} door={self.door_id} {self.credential_type} {self.result}>"

# gatekeeper/schemas/access_event.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class AccessEventOut(BaseModel):
    id: int
    ts: datetime
    door_id: Optional[int]
    user_id: Optional[int]
    credential_type: str
    presented_uid: Optional[str]
    result: str
    reason: Optional[str]

    class Config:
        from_attributes = True

# gatekeeper/schemas/door.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class DoorCreate(BaseModel):
    door_key: Optional[str] = None
    name: Optional[str] = None
    location: Optional[str] = None
    access_mode: str = "RFID_OR_PIN"
    open_time_s: int = 5
    active: bool = True


class DoorUpdate(BaseModel):
    door_key: Optional[str] = None
    name: Optional[str] = None
    location: Optional[str] = None
    access_mode: Optional[str] = None
    open_time_s: Optional[int] = None
    active: Optional[bool] = None


class DoorOut(BaseModel):
    id: int
    door_key: str
    name: Optional[str]
    location: Optional[str]
    access_mode: str
    open_time_s: int
    active: bool
    last_seen_ts: Optional[datetime]

    class Config:
        from_attributes = True

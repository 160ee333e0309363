# gatekeeper/schemas/user.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class UserCreate(BaseModel):
    full_name: Optional[str] = None
    active: bool = True


class UserUpdate(BaseModel):
    """Partial update. Only fields present in the request body are applied."""
    full_name: Optional[str] = None
    active: Optional[bool] = None
    current_pin_id: Optional[int] = None


class UserOut(BaseModel):
    id: int
    full_name: str
    active: bool
    current_pin_id: Optional[int]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True

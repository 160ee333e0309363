# gatekeeper/routers/doors.py
"""
Door administration. Every mutation drops the affected door keys from the
running AccessEngine's resolver cache, so renamed or deactivated doors take
effect on the next hardware message.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from gatekeeper.database import get_db
from gatekeeper.models.door import ACCESS_MODES, Door
from gatekeeper.schemas.door import DoorCreate, DoorOut, DoorUpdate
from gatekeeper.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def _invalidate_door_cache(request: Request, *door_keys):
    engine = getattr(request.app.state, "access_engine", None)
    if engine is None:
        return
    for key in {k for k in door_keys if k}:
        engine.door_resolver.invalidate(key)


def _check_open_time(value: int):
    if value < 1 or value > 60:
        raise HTTPException(status_code=400, detail="bad_open_time_s")


@router.get("/doors", response_model=list[DoorOut], summary="Latest 200 doors")
def list_doors(db: Session = Depends(get_db)):
    return db.query(Door).order_by(Door.id.desc()).limit(200).all()


@router.post("/doors", response_model=DoorOut, status_code=201, summary="Register a door")
def create_door(body: DoorCreate, request: Request, db: Session = Depends(get_db)):
    if not body.door_key or not body.door_key.strip():
        raise HTTPException(status_code=400, detail="door_key_required")
    if body.access_mode not in ACCESS_MODES:
        raise HTTPException(status_code=400, detail="bad_access_mode")
    _check_open_time(body.open_time_s)

    door = Door(
        door_key=body.door_key.strip(),
        name=body.name or None,
        location=body.location or None,
        access_mode=body.access_mode,
        open_time_s=body.open_time_s,
        active=body.active,
    )
    db.add(door)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="door_key_exists")
    db.refresh(door)
    _invalidate_door_cache(request, door.door_key)
    return door


@router.patch("/doors/{door_id}", response_model=DoorOut, summary="Partial door update")
def update_door(door_id: int, body: DoorUpdate, request: Request, db: Session = Depends(get_db)):
    changes = body.model_dump(exclude_unset=True)
    door = db.get(Door, door_id)

    updates = {}
    if isinstance(changes.get("door_key"), str) and changes["door_key"].strip():
        updates["door_key"] = changes["door_key"].strip()
    for field in ("name", "location"):
        if field in changes:
            updates[field] = changes[field] or None
    if changes.get("access_mode") is not None:
        if changes["access_mode"] not in ACCESS_MODES:
            raise HTTPException(status_code=400, detail="bad_access_mode")
        updates["access_mode"] = changes["access_mode"]
    if changes.get("open_time_s") is not None:
        _check_open_time(changes["open_time_s"])
        updates["open_time_s"] = changes["open_time_s"]
    if changes.get("active") is not None:
        updates["active"] = changes["active"]
    if not updates:
        raise HTTPException(status_code=400, detail="no_fields")
    if door is None:
        raise HTTPException(status_code=404, detail="not_found")

    old_key = door.door_key
    for field, value in updates.items():
        setattr(door, field, value)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="door_key_exists")
    db.refresh(door)
    _invalidate_door_cache(request, old_key, door.door_key)
    return door


@router.delete("/doors/{door_id}", summary="Delete a door")
def delete_door(door_id: int, request: Request, db: Session = Depends(get_db)):
    door = db.get(Door, door_id)
    if door is not None:
        door_key = door.door_key
        db.delete(door)
        db.commit()
        _invalidate_door_cache(request, door_key)
    return {"ok": True}

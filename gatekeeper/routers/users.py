# gatekeeper/routers/users.py
"""
User administration. PATCH goes through the cascade service so card and
PIN activation always follow the user's `active` flag.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from gatekeeper.database import get_db
from gatekeeper.models.user import User
from gatekeeper.schemas.user import UserCreate, UserOut, UserUpdate
from gatekeeper.services.cascade_service import UserUpdateError, apply_user_update
from gatekeeper.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.get("/users", response_model=list[UserOut], summary="Latest 100 users")
def list_users(db: Session = Depends(get_db)):
    return db.query(User).order_by(User.id.desc()).limit(100).all()


@router.post("/users", response_model=UserOut, status_code=201, summary="Create a user")
def create_user(body: UserCreate, db: Session = Depends(get_db)):
    if not body.full_name or not body.full_name.strip():
        raise HTTPException(status_code=400, detail="full_name_required")
    user = User(full_name=body.full_name.strip(), active=body.active)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@router.patch("/users/{user_id}", response_model=UserOut, summary="Partial update with cascades")
def update_user(user_id: int, body: UserUpdate, db: Session = Depends(get_db)):
    changes = body.model_dump(exclude_unset=True)
    if not isinstance(changes.get("full_name"), str):
        changes.pop("full_name", None)
    if changes.get("active") is None:
        changes.pop("active", None)
    if not changes:
        raise HTTPException(status_code=400, detail="no_fields")

    try:
        user = apply_user_update(db, user_id, changes)
    except UserUpdateError as e:
        raise HTTPException(status_code=400, detail=e.code)
    except SQLAlchemyError as e:
        logger.error(f"[users.patch] error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="db_error")

    if user is None:
        raise HTTPException(status_code=404, detail="not_found")
    return user


@router.delete("/users/{user_id}", summary="Delete a user")
def delete_user(user_id: int, db: Session = Depends(get_db)):
    db.query(User).filter(User.id == user_id).delete(synchronize_session=False)
    db.commit()
    return {"ok": True}

# gatekeeper/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB + MQTT broker connection.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from sqlalchemy import text
from gatekeeper.database import get_db
from datetime import datetime

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(request: Request, db: Session = Depends(get_db)):
    result = {
        "ok": True,
        "ts": datetime.utcnow().isoformat(),
        "database": "unknown",
        "mqtt": "disabled",
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["ok"] = False

    bus = getattr(request.app.state, "mqtt_bus", None)
    if bus is not None:
        result["mqtt"] = "connected" if bus.is_connected() else "disconnected"
        if not bus.is_connected():
            result["ok"] = False

    return result

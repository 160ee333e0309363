# gatekeeper/services/credential_verifier.py
"""
Credential checks.

RFID: exact uid lookup, card and owner must both be active.
PIN:  bcrypt hashes can't be indexed, so every enabled PIN is compared in
      turn until one matches. bcrypt is slow on purpose; the comparisons run
      on a small thread pool (PinVerifier) so a PIN scan never stalls the
      event loop that dispatches other door messages.
"""

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import bcrypt
from sqlalchemy.orm import Session

from gatekeeper.models.pin import Pin
from gatekeeper.models.rfid_card import RfidCard
from gatekeeper.models.user import User
from gatekeeper.utils.logger import get_logger

logger = get_logger(__name__)

BCRYPT_MAX_BYTES = 72


def hash_pin(pin: str, rounds: int = 12) -> str:
    """bcrypt hash suitable for Pin.pin_hash."""
    return bcrypt.hashpw(pin.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def find_rfid_owner(db: Session, uid: str) -> Optional[int]:
    row = (
        db.query(User.id)
        .join(RfidCard, RfidCard.user_id == User.id)
        .filter(RfidCard.uid == uid, RfidCard.active.is_(True), User.active.is_(True))
        .first()
    )
    return row.id if row else None


def load_pin_candidates(db: Session) -> list[tuple[int, str]]:
    """(user_id, pin_hash) for every active PIN whose owner is active."""
    rows = (
        db.query(Pin.user_id, Pin.pin_hash)
        .join(User, User.id == Pin.user_id)
        .filter(Pin.active.is_(True), User.active.is_(True))
        .order_by(Pin.id)
        .all()
    )
    return [(row.user_id, row.pin_hash) for row in rows]


def match_pin(pin: str, candidates: list[tuple[int, str]],
              cancelled: Optional[threading.Event] = None) -> Optional[int]:
    """
    Return the owner of the first hash that matches `pin`.
    Stops early (returning None) once `cancelled` is set.
    """
    secret = pin.encode("utf-8")
    if len(secret) > BCRYPT_MAX_BYTES:
        return None
    for user_id, pin_hash in candidates:
        if cancelled is not None and cancelled.is_set():
            return None
        try:
            if bcrypt.checkpw(secret, pin_hash.encode("utf-8")):
                return user_id
        except ValueError:
            logger.warning(f"Malformed PIN hash for user {user_id}: skipped")
    return None


class PinVerifier:
    """Bounded worker pool for PIN hash scans."""

    def __init__(self, max_workers: int = 2, timeout: Optional[float] = 10.0):
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="pin-verify")

    async def verify(self, pin: str, candidates: list[tuple[int, str]]) -> Optional[int]:
        if not candidates:
            return None
        loop = asyncio.get_running_loop()
        cancelled = threading.Event()
        future = loop.run_in_executor(self._executor, match_pin, pin, candidates, cancelled)
        try:
            return await asyncio.wait_for(future, timeout=self.timeout)
        except asyncio.TimeoutError:
            # stop the scan at the next hash
            cancelled.set()
            logger.warning(f"PIN scan over {len(candidates)} hashes timed out after {self.timeout}s")
            raise

    def close(self):
        self._executor.shutdown(wait=False)

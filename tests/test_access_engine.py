"""End-to-end tests for the access decision pipeline (MQTT message -> event + reply)."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio
import threading
import time
import pytest
from unittest.mock import MagicMock, patch
from factories import add_card, add_door, add_pin, add_user, grant
from gatekeeper.models import AccessEvent
from gatekeeper.services.access_engine import AccessEngine


@pytest.fixture
def publisher():
    return MagicMock()


@pytest.fixture
def engine(session_factory, publisher):
    eng = AccessEngine(session_factory, publisher, topic_base="doors", pin_workers=2)
    yield eng
    eng.close()


def only_event(db):
    events = db.query(AccessEvent).all()
    assert len(events) == 1
    return events[0]


class TestCardInput:
    @pytest.mark.asyncio
    async def test_granted(self, db, engine, publisher):
        door, user = add_door(db, "D1"), add_user(db)
        add_card(db, user, "04A1B2C3")
        grant(db, door, user)

        await engine.handle_message("doors/D1/card_input", b"04A1B2C3\n")

        event = only_event(db)
        assert event.result == "granted"
        assert event.credential_type == "RFID"
        assert event.presented_uid == "04A1B2C3"
        assert event.user_id == user.id
        assert event.door_id == door.id
        assert event.reason is None
        publisher.publish.assert_called_once_with("doors/D1/access_granted")

    @pytest.mark.asyncio
    async def test_unknown_card(self, db, engine, publisher):
        add_door(db, "D1")

        await engine.handle_message("doors/D1/card_input", b"DEADBEEF")

        event = only_event(db)
        assert event.result == "denied"
        assert event.reason == "rfid_not_found"
        assert event.user_id is None
        publisher.publish.assert_called_once_with("doors/D1/access_denied")

    @pytest.mark.asyncio
    async def test_known_card_wrong_door(self, db, engine, publisher):
        d1, d2, user = add_door(db, "D1"), add_door(db, "D2"), add_user(db)
        add_card(db, user, "04A1B2C3")
        grant(db, d1, user)

        await engine.handle_message("doors/D2/card_input", b"04A1B2C3")

        event = only_event(db)
        assert event.result == "denied"
        assert event.reason == "no_access_to_door"
        assert event.user_id is None
        assert event.presented_uid == "04A1B2C3"

    @pytest.mark.asyncio
    async def test_bare_topic_uses_default_door(self, session_factory, db, publisher):
        door, user = add_door(db, "D1"), add_user(db)
        add_card(db, user, "04A1B2C3")
        grant(db, door, user)
        engine = AccessEngine(session_factory, publisher, default_door_id=door.id)
        try:
            await engine.handle_message("card_input", "04A1B2C3")
        finally:
            engine.close()

        assert only_event(db).door_id == door.id
        publisher.publish.assert_called_once_with("access_granted")


class TestCodeInput:
    @pytest.mark.asyncio
    async def test_pin_matches_one_of_many(self, db, engine, publisher):
        door = add_door(db, "D1")
        users = [add_user(db, f"User {i}") for i in range(4)]
        for i, user in enumerate(users):
            add_pin(db, user, f"{i}{i}{i}{i}{i}")
        target = users[2]
        grant(db, door, target)

        await engine.handle_message("doors/D1/code_input", b"22222")

        event = only_event(db)
        assert event.result == "granted"
        assert event.credential_type == "PIN"
        assert event.user_id == target.id
        assert event.pin_len == 5
        assert event.pin_sha is not None
        assert event.presented_uid is None
        publisher.publish.assert_called_once_with("doors/D1/access_granted")

    @pytest.mark.asyncio
    async def test_pin_no_match(self, db, engine, publisher):
        door, user = add_door(db, "D1"), add_user(db)
        add_pin(db, user, "1234")
        grant(db, door, user)

        await engine.handle_message("doors/D1/code_input", b"9999")

        event = only_event(db)
        assert event.result == "denied"
        assert event.reason == "pin_no_match"
        assert event.pin_len == 4
        publisher.publish.assert_called_once_with("doors/D1/access_denied")

    @pytest.mark.asyncio
    async def test_pin_of_inactive_user_rejected(self, db, engine):
        door, user = add_door(db, "D1"), add_user(db, active=False)
        add_pin(db, user, "1234")
        grant(db, door, user)

        await engine.handle_message("doors/D1/code_input", b"1234")

        assert only_event(db).reason == "pin_no_match"

    @pytest.mark.asyncio
    async def test_pin_without_grant(self, db, engine):
        add_door(db, "D1")
        user = add_user(db)
        add_pin(db, user, "1234")

        await engine.handle_message("doors/D1/code_input", b"1234")

        event = only_event(db)
        assert event.reason == "no_access_to_door"
        assert event.user_id is None

    @pytest.mark.asyncio
    async def test_pin_timeout_is_handler_error(self, session_factory, db, publisher):
        door, user = add_door(db, "D1"), add_user(db)
        add_pin(db, user, "1234")
        grant(db, door, user)
        engine = AccessEngine(session_factory, publisher, pin_timeout=0.05)

        def slow_checkpw(secret, hashed):
            time.sleep(0.3)
            return True

        try:
            with patch("gatekeeper.services.credential_verifier.bcrypt.checkpw",
                       side_effect=slow_checkpw):
                event_id = await engine.handle_message("doors/D1/code_input", b"1234")
        finally:
            engine.close()

        event = db.get(AccessEvent, event_id)
        assert event.result == "denied"
        assert event.reason == "handler_error"
        assert event.credential_type == "UNKNOWN"
        assert event.user_id is None
        assert event.door_id == door.id
        publisher.publish.assert_called_once_with("doors/D1/access_denied")


class TestEgress:
    @pytest.mark.asyncio
    async def test_egress_always_granted(self, db, engine, publisher):
        door = add_door(db, "D1")

        await engine.handle_message("doors/D1/egress_request", b"")

        event = only_event(db)
        assert event.result == "granted"
        assert event.reason == "egress"
        assert event.credential_type == "UNKNOWN"
        assert event.user_id is None
        assert event.door_id == door.id
        publisher.publish.assert_called_once_with("doors/D1/access_granted")


class TestRouting:
    @pytest.mark.asyncio
    async def test_unknown_subtype_ignored(self, db, engine, publisher):
        add_door(db, "D1")
        assert await engine.handle_message("doors/D1/heartbeat", b"x") is None
        assert db.query(AccessEvent).count() == 0
        publisher.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_credential_ignored(self, db, engine, publisher):
        add_door(db, "D1")
        assert await engine.handle_message("doors/D1/card_input", b"   ") is None
        publisher.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_door_not_audited_but_answered(self, db, engine, publisher):
        await engine.handle_message("doors/GHOST/egress_request", b"")
        assert db.query(AccessEvent).count() == 0
        publisher.publish.assert_called_once_with("doors/GHOST/access_granted")

    @pytest.mark.asyncio
    async def test_handler_error_becomes_denied_event(self, db, engine, publisher):
        door = add_door(db, "D1")

        with patch("gatekeeper.services.access_engine.find_rfid_owner",
                   side_effect=RuntimeError("boom")):
            event_id = await engine.handle_message("doors/D1/card_input", b"04A1B2C3")

        event = db.get(AccessEvent, event_id)
        assert event.result == "denied"
        assert event.reason == "handler_error"
        assert event.credential_type == "UNKNOWN"
        assert event.door_id == door.id
        publisher.publish.assert_called_once_with("doors/D1/access_denied")

    @pytest.mark.asyncio
    async def test_cached_door_survives_rename_until_invalidated(self, db, engine):
        door = add_door(db, "D1")
        await engine.handle_message("doors/D1/egress_request", b"")

        door.door_key = "D1-NEW"
        db.commit()
        await engine.handle_message("doors/D1/egress_request", b"")
        assert db.query(AccessEvent).count() == 2

        engine.door_resolver.invalidate("D1")
        await engine.handle_message("doors/D1/egress_request", b"")
        assert db.query(AccessEvent).count() == 2

    @pytest.mark.asyncio
    async def test_inflight_cap(self, session_factory, db, publisher):
        add_door(db, "D1")
        engine = AccessEngine(session_factory, publisher, max_inflight=1)
        lock = threading.Lock()
        state = {"running": 0, "peak": 0}

        def slow_lookup(session, uid):
            with lock:
                state["running"] += 1
                state["peak"] = max(state["peak"], state["running"])
            time.sleep(0.05)
            with lock:
                state["running"] -= 1
            return None

        try:
            with patch("gatekeeper.services.access_engine.find_rfid_owner", side_effect=slow_lookup):
                await asyncio.gather(*(
                    engine.handle_message("doors/D1/card_input", f"CARD{i}") for i in range(5)
                ))
        finally:
            engine.close()

        assert state["peak"] == 1
        assert db.query(AccessEvent).count() == 5
        assert publisher.publish.call_count == 5

    @pytest.mark.asyncio
    async def test_slow_query_does_not_block_loop(self, db, engine):
        add_door(db, "D1")
        gaps = []

        async def ticker(stop):
            last = time.monotonic()
            while not stop.is_set():
                await asyncio.sleep(0.02)
                now = time.monotonic()
                gaps.append(now - last)
                last = now

        def slow_lookup(session, uid):
            time.sleep(0.4)
            return None

        stop = asyncio.Event()
        tick = asyncio.create_task(ticker(stop))
        with patch("gatekeeper.services.access_engine.find_rfid_owner", side_effect=slow_lookup):
            await engine.handle_message("doors/D1/card_input", b"04A1B2C3")
        stop.set()
        await tick

        assert only_event(db).reason == "rfid_not_found"
        assert len(gaps) > 5
        assert max(gaps) < 0.2

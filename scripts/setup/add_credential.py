"""
Issue an RFID card or PIN to an existing user, and optionally grant a door.
The admin API has no credential endpoints; this is the operator tool for them.

Usage:
  python scripts/setup/add_credential.py --user 3 --card 04A1B2C3
  python scripts/setup/add_credential.py --user 3 --pin 482915          # becomes the current PIN
  python scripts/setup/add_credential.py --user 3 --grant D1
"""

import argparse
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from gatekeeper.database import SessionLocal
from gatekeeper.models import Door, DoorAccess, Pin, RfidCard, User
from gatekeeper.services.cascade_service import apply_user_update
from gatekeeper.services.credential_verifier import hash_pin


def main():
    parser = argparse.ArgumentParser(description="Issue credentials / door grants")
    parser.add_argument("--user", type=int, required=True)
    parser.add_argument("--card", help="RFID uid to register")
    parser.add_argument("--pin", help="PIN digits; stored as a bcrypt hash only")
    parser.add_argument("--grant", help="door_key to allow for this user")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        user = db.get(User, args.user)
        if user is None:
            print(f"❌ User {args.user} not found")
            sys.exit(1)

        if args.card:
            db.add(RfidCard(user_id=user.id, uid=args.card.strip(), active=user.active))
            db.commit()
            print(f"✅ Card {args.card} issued to {user.full_name}")

        if args.pin:
            if not args.pin.isdigit():
                print("❌ PIN must be digits only")
                sys.exit(1)
            pin = Pin(user_id=user.id, pin_hash=hash_pin(args.pin), active=False)
            db.add(pin)
            db.commit()
            # Making it current also aligns its active flag with the user
            apply_user_update(db, user.id, {"current_pin_id": pin.id})
            print(f"✅ PIN #{pin.id} set as current PIN for {user.full_name}")

        if args.grant:
            door = db.query(Door).filter(Door.door_key == args.grant).first()
            if door is None:
                print(f"❌ Door '{args.grant}' not found")
                sys.exit(1)
            db.merge(DoorAccess(door_id=door.id, user_id=user.id, allowed=True))
            db.commit()
            print(f"✅ {user.full_name} allowed at {door.door_key}")
    finally:
        db.close()


if __name__ == "__main__":
    main()

# Gatekeeper: Database Models
# Import all models here for SQLAlchemy discovery

from gatekeeper.models.user import User                  # noqa
from gatekeeper.models.pin import Pin                    # noqa
from gatekeeper.models.rfid_card import RfidCard         # noqa
from gatekeeper.models.door import Door                  # noqa
from gatekeeper.models.door_access import DoorAccess     # noqa
from gatekeeper.models.access_event import AccessEvent   # noqa

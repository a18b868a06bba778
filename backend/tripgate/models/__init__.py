# Import models here so Alembic can discover metadata.
from tripgate.models.trip import Trip  # noqa: F401
from tripgate.models.trip_member import TripMember  # noqa: F401
from tripgate.models.notification import Notification  # noqa: F401

# Campus Gate - Database Models
# Import all models here for SQLAlchemy discovery

from campusgate.models.user import User                                  # noqa
from campusgate.models.vendor import Vendor                              # noqa
from campusgate.models.guest_request import GuestVisitRequest, Guest     # noqa
from campusgate.models.movement_log import MovementLog                   # noqa

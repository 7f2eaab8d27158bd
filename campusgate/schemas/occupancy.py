# campusgate/schemas/occupancy.py
from datetime import datetime
from typing import Optional
from campusgate.schemas.base import CamelModel


class OccupancyOut(CamelModel):
    entity_ref: str
    is_inside: bool
    last_movement_time: Optional[datetime]
    last_movement_type: Optional[str]


class OccupancyBatchOut(CamelModel):
    occupancy: dict[str, OccupancyOut]
    total: int
    inside: int

# campusgate/schemas/vendor.py
from typing import Optional
from campusgate.models.enums import MovementType
from campusgate.schemas.base import CamelModel
from campusgate.schemas.movement_log import MovementRecordOut


class VendorCreate(CamelModel):
    name: str
    company_name: Optional[str] = None
    category: Optional[str] = None
    is_active: bool = True


class VendorOut(CamelModel):
    id: str
    name: str
    company: str
    category: str
    is_active: bool


class VendorMovementCreate(CamelModel):
    movement_type: MovementType
    officer_ref: str
    vehicle_number: Optional[str] = None
    remarks: Optional[str] = None


class VendorMovementOut(CamelModel):
    vendor: VendorOut
    movement: MovementRecordOut

# campusgate/schemas/user.py
from datetime import datetime
from typing import Optional
from campusgate.schemas.base import CamelModel


class UserOut(CamelModel):
    id: str
    full_name: str
    role: str
    student_id: Optional[str]
    institute_mail: Optional[str]
    mobile_number: Optional[str]
    hostel_room: Optional[str]
    emergency_contact: Optional[str]
    department: Optional[str]
    created_at: datetime

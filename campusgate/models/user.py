# campusgate/models/user.py
"""
Directory of people: students, gate staff and council members.
Read-only from the ledger's point of view. Contact fields here are live;
visit requests copy them at submission time.
"""

import uuid

from sqlalchemy import Column, String, DateTime, CheckConstraint
from campusgate.database import Base
from campusgate.models.enums import UserRole, values
from campusgate.utils.clock import utcnow


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "role IN (" + ", ".join(f"'{v}'" for v in values(UserRole)) + ")",
            name="users_role_check",
        ),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    full_name = Column(String(200), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.STUDENT.value, index=True)
    student_id = Column(String(50), unique=True)            # college roll number (students only)
    institute_mail = Column(String(200), unique=True)
    mobile_number = Column(String(30))
    hostel_room = Column(String(50))
    emergency_contact = Column(String(30))
    department = Column(String(50))
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<User {self.id} name={self.full_name} role={self.role}>"

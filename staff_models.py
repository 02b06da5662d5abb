"""
Staff Models
Teachers, servants and trustees working at the madrasa
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, Date, Enum, Index, DECIMAL
from datetime import datetime, date
from models import Base
import enum


class StaffTypeEnum(enum.Enum):
    TEACHER = "teacher"
    SERVANT = "servant"
    TRUSTEE = "trustee"


STAFF_TYPE_LABELS = {
    StaffTypeEnum.TEACHER: "Teacher",
    StaffTypeEnum.SERVANT: "Servant",
    StaffTypeEnum.TRUSTEE: "Trustee",
}


class Staff(Base):
    __tablename__ = 'staff'
    __table_args__ = (
        Index('idx_staff_type', 'staff_type'),
        Index('idx_staff_active', 'is_active'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Basic Info
    name = Column(String(150), nullable=False)
    staff_type = Column(Enum(StaffTypeEnum, values_callable=lambda obj: [e.value for e in obj]), nullable=False, default=StaffTypeEnum.TEACHER)
    position = Column(String(100), nullable=True)
    department = Column(String(100), nullable=True)

    # Contact
    phone = Column(String(20), nullable=False)
    email = Column(String(150), nullable=True)
    address = Column(Text, nullable=True)

    # Professional
    salary = Column(DECIMAL(10, 2), nullable=True)
    joining_date = Column(Date, nullable=False, default=date.today)
    qualification = Column(String(200), nullable=True)
    experience_years = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def type_label(self):
        return STAFF_TYPE_LABELS.get(self.staff_type, '')

    def __repr__(self):
        return f"<Staff id={self.id} name={self.name} type={self.staff_type.value if self.staff_type else None}>"

"""
Core Models
This file contains the admin user, student, class level and academic year models
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, Date, Enum, Index, UniqueConstraint, DECIMAL
from sqlalchemy.orm import declarative_base, relationship
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime, date
from decimal import Decimal
import enum

Base = declarative_base()


# ===== USER MODEL =====
class User(Base, UserMixin):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    username = Column(String(80), nullable=False, unique=True)
    email = Column(String(120), nullable=False)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(100))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f'<User {self.username}>'


# ===== ENUMS =====
class StudentStatusEnum(enum.Enum):
    ACTIVE = "active"
    LEFT = "left"
    COMPLETED = "completed"


STUDENT_STATUS_LABELS = {
    StudentStatusEnum.ACTIVE: "Active",
    StudentStatusEnum.LEFT: "Left",
    StudentStatusEnum.COMPLETED: "Completed",
}


# ===== STUDENT MODEL =====
class Student(Base):
    __tablename__ = 'students'
    __table_args__ = (
        UniqueConstraint('academic_year', 'roll_number', name='unique_year_roll_number'),
        Index('idx_student_status', 'status'),
        Index('idx_student_class', 'class_level'),
    )

    id = Column(Integer, primary_key=True)

    # Basic Information
    full_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=True)
    phone = Column(String(20), nullable=False)
    email = Column(String(120))
    address = Column(Text)

    # Guardian Information
    father_name = Column(String(100), nullable=False)
    mother_name = Column(String(100))

    # Academic Information
    class_level = Column(String(50), nullable=False)
    academic_year = Column(String(20), nullable=False)  # e.g., "2025-2026"
    roll_number = Column(Integer, nullable=False)
    admission_date = Column(Date, default=date.today)
    status = Column(Enum(StudentStatusEnum, values_callable=lambda obj: [e.value for e in obj]), default=StudentStatusEnum.ACTIVE, nullable=False)
    monthly_fee_amount = Column(DECIMAL(10, 2), nullable=False, default=Decimal('0.00'))

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    fee_payments = relationship("FeePayment", back_populates="student")
    reminders = relationship("FeeReminder", back_populates="student", cascade="all, delete-orphan")

    @property
    def status_label(self):
        return STUDENT_STATUS_LABELS.get(self.status, self.status.value if self.status else '')

    def to_dict(self):
        return {
            'id': self.id,
            'full_name': self.full_name,
            'father_name': self.father_name,
            'phone': self.phone,
            'class_level': self.class_level,
            'academic_year': self.academic_year,
            'roll_number': self.roll_number,
            'monthly_fee_amount': float(self.monthly_fee_amount or 0),
            'status': self.status.value if self.status else None
        }

    def __repr__(self):
        return f'<Student {self.full_name} (roll {self.roll_number})>'


# ===== CLASS LEVEL MODEL =====
class ClassLevel(Base):
    __tablename__ = 'class_levels'

    id = Column(Integer, primary_key=True)
    name = Column(String(50), nullable=False, unique=True)  # e.g., "Hifz", "Nazira", "Class 5"
    description = Column(Text)
    monthly_fee = Column(DECIMAL(10, 2), nullable=False, default=Decimal('0.00'))
    order_index = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<ClassLevel {self.name}>'


# ===== ACADEMIC YEAR MODEL =====
class AcademicYear(Base):
    __tablename__ = 'academic_years'

    id = Column(Integer, primary_key=True)
    year_name = Column(String(20), nullable=False, unique=True)  # e.g., "2025-2026"
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_current = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<AcademicYear {self.year_name}>'

"""
Fee Management Models
This file contains fee payment, reminder and reminder settings models
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, Date, Enum, BigInteger, Index, UniqueConstraint, DECIMAL
from sqlalchemy.orm import relationship
from datetime import datetime
from decimal import Decimal
from models import Base
from fee_ledger import MONTHS  # noqa: F401  re-exported for routes and templates
import enum


# ===== ENUMS =====

class FeeTypeEnum(enum.Enum):
    MONTHLY = "monthly"
    ADMISSION = "admission"
    OTHER = "other"


class PaymentStatusEnum(enum.Enum):
    PAID = "paid"
    PENDING = "pending"
    PARTIAL = "partial"


class PaymentModeEnum(enum.Enum):
    CASH = "cash"
    UPI = "upi"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    ONLINE = "online"


class ReminderTypeEnum(enum.Enum):
    SMS = "sms"
    WHATSAPP = "whatsapp"
    MANUAL = "manual"


class ReminderStatusEnum(enum.Enum):
    SENT = "sent"
    FAILED = "failed"


class ReminderFrequencyEnum(enum.Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    MANUAL = "manual"


PAYMENT_STATUS_LABELS = {
    'paid': 'Paid',
    'pending': 'Pending',
    'partial': 'Partial',
    'not_recorded': 'Not Recorded',
}

PAYMENT_MODE_LABELS = {
    PaymentModeEnum.CASH: 'Cash',
    PaymentModeEnum.UPI: 'UPI',
    PaymentModeEnum.BANK_TRANSFER: 'Bank Transfer',
    PaymentModeEnum.CHEQUE: 'Cheque',
    PaymentModeEnum.ONLINE: 'Online',
}


# ===== FEE PAYMENT MODEL =====

class FeePayment(Base):
    """One ledger row per student, fee type and billing period"""
    __tablename__ = 'fee_payments'
    __table_args__ = (
        UniqueConstraint('student_id', 'fee_type', 'month_name', 'year', name='unique_student_fee_period'),
        Index('idx_payment_student', 'student_id'),
        Index('idx_payment_period', 'month_name', 'year'),
        Index('idx_payment_status', 'payment_status'),
    )

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey('students.id', ondelete='RESTRICT'), nullable=False)
    fee_type = Column(Enum(FeeTypeEnum, values_callable=lambda obj: [e.value for e in obj]), nullable=False, default=FeeTypeEnum.MONTHLY)
    month_name = Column(String(20), nullable=False)
    year = Column(Integer, nullable=False)

    # Amounts
    amount = Column(DECIMAL(10, 2), nullable=False)  # billed amount, fixed at creation
    payment_status = Column(Enum(PaymentStatusEnum, values_callable=lambda obj: [e.value for e in obj]), nullable=False, default=PaymentStatusEnum.PENDING)
    partial_amount = Column(DECIMAL(10, 2), nullable=True, default=Decimal('0.00'))

    # Payment details
    payment_date = Column(Date, nullable=True)
    payment_mode = Column(Enum(PaymentModeEnum, values_callable=lambda obj: [e.value for e in obj]), nullable=True)
    remarks = Column(Text, nullable=True)

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    student = relationship("Student", back_populates="fee_payments")

    @property
    def status_label(self):
        return PAYMENT_STATUS_LABELS.get(self.payment_status.value, self.payment_status.value)

    @property
    def mode_label(self):
        return PAYMENT_MODE_LABELS.get(self.payment_mode, '-') if self.payment_mode else '-'

    def __repr__(self):
        return f"<FeePayment student_id={self.student_id} {self.month_name} {self.year} status={self.payment_status.value}>"


# ===== FEE REMINDER MODEL =====

class FeeReminder(Base):
    """Log of reminders sent to guardians about pending dues"""
    __tablename__ = 'fee_reminders'
    __table_args__ = (
        Index('idx_reminder_student', 'student_id'),
        Index('idx_reminder_sent', 'sent_at'),
    )

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey('students.id', ondelete='CASCADE'), nullable=False)
    reminder_type = Column(Enum(ReminderTypeEnum, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    sent_to = Column(String(20), nullable=False, default='')
    message = Column(Text, nullable=False)
    amount_due = Column(DECIMAL(10, 2), nullable=True)
    status = Column(Enum(ReminderStatusEnum, values_callable=lambda obj: [e.value for e in obj]), default=ReminderStatusEnum.SENT)
    sent_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    student = relationship("Student", back_populates="reminders")

    def __repr__(self):
        return f"<FeeReminder student_id={self.student_id} type={self.reminder_type.value}>"


# ===== REMINDER SETTINGS MODEL =====

DEFAULT_REMINDER_TEMPLATE = (
    "Dear Parent,\n\n"
    "This is a reminder that {amount} is pending for {student_name} (Roll: {roll_number}).\n\n"
    "Please pay at your earliest convenience.\n\n"
    "Regards,\n{institute_name} Administration"
)


class ReminderSettings(Base):
    """Single-row settings for automatic reminder runs"""
    __tablename__ = 'reminder_settings'

    id = Column(Integer, primary_key=True)
    reminder_frequency = Column(Enum(ReminderFrequencyEnum, values_callable=lambda obj: [e.value for e in obj]), default=ReminderFrequencyEnum.WEEKLY)
    reminder_day = Column(Integer, default=1)  # 1-28
    sms_enabled = Column(Boolean, default=False)
    whatsapp_enabled = Column(Boolean, default=True)
    reminder_message_template = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<ReminderSettings frequency={self.reminder_frequency.value if self.reminder_frequency else None}>"

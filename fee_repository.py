"""
Fee Repository
Reads students and fee payments from the database as ledger records and
writes payments through a keyed upsert
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from fee_ledger import LedgerIntegrityError
from fee_models import FeePayment, FeeTypeEnum, PaymentStatusEnum, PaymentModeEnum
from models import Student, StudentStatusEnum
from validators import to_student_record, to_payment_record

logger = logging.getLogger(__name__)


class FeeRepository:
    """
    Database access for the fee ledger.

    With strict=False, rows that fail validation are skipped and described in
    `warnings` instead of raising.
    """

    def __init__(self, session: Session, strict: bool = True):
        self.session = session
        self.strict = strict
        self.warnings = []

    # ===== READS =====

    def fetch_active_students(self, class_level=None):
        """Active students ordered by roll number"""
        query = self.session.query(Student).filter(Student.status == StudentStatusEnum.ACTIVE)
        if class_level:
            query = query.filter(Student.class_level == class_level)
        rows = query.order_by(Student.roll_number, Student.id).all()
        return [to_student_record(s) for s in rows]

    def fetch_student(self, student_id):
        student = self.session.query(Student).filter_by(id=student_id).first()
        return to_student_record(student) if student else None

    def fetch_known_student_ids(self):
        return {row[0] for row in self.session.query(Student.id).all()}

    def fetch_monthly_payments(self, month_name, year):
        rows = self.session.query(FeePayment).filter(
            FeePayment.fee_type == FeeTypeEnum.MONTHLY,
            FeePayment.month_name == month_name,
            FeePayment.year == year
        ).order_by(FeePayment.id).all()
        return self._to_records(rows)

    def fetch_yearly_payments(self, student_id, year):
        rows = self.session.query(FeePayment).filter(
            FeePayment.student_id == student_id,
            FeePayment.year == year
        ).order_by(FeePayment.id).all()
        return self._to_records(rows)

    def fetch_open_payments(self, year=None):
        """Pending and partial rows, optionally for one year"""
        query = self.session.query(FeePayment).filter(
            FeePayment.payment_status.in_([PaymentStatusEnum.PENDING, PaymentStatusEnum.PARTIAL])
        )
        if year is not None:
            query = query.filter(FeePayment.year == year)
        return self._to_records(query.order_by(FeePayment.id).all())

    def fetch_all_payments(self):
        return self._to_records(self.session.query(FeePayment).order_by(FeePayment.id).all())

    def _to_records(self, rows):
        records = []
        for row in rows:
            try:
                records.append(to_payment_record(row))
            except LedgerIntegrityError as e:
                if self.strict:
                    raise
                logger.warning(f"Skipping payment row {row.id}: {e.message}")
                self.warnings.append(e.message)
        return records

    # ===== WRITES =====

    def _find_payment(self, student_id, fee_type_enum, month_name, year):
        return self.session.query(FeePayment).filter_by(
            student_id=student_id,
            fee_type=fee_type_enum,
            month_name=month_name,
            year=year
        ).first()

    def upsert_payment(self, student_id, month_name, year, amount, payment_status,
                       fee_type='monthly', partial_amount=None, payment_date=None,
                       payment_mode=None, remarks=None):
        """
        Insert or update the single row for (student, fee type, month, year).

        The billed amount of an existing row is replaced with the submitted
        amount; the caller is expected to have validated the values.
        """
        fee_type_enum = FeeTypeEnum(fee_type)
        payment = self._find_payment(student_id, fee_type_enum, month_name, year)

        created = payment is None
        if created:
            payment = FeePayment(
                student_id=student_id,
                fee_type=fee_type_enum,
                month_name=month_name,
                year=year,
            )

        payment.amount = amount
        payment.payment_status = PaymentStatusEnum(payment_status)
        payment.partial_amount = partial_amount if payment_status == 'partial' else Decimal('0.00')
        payment.payment_date = payment_date
        payment.payment_mode = PaymentModeEnum(payment_mode) if payment_mode else None
        payment.remarks = remarks
        payment.updated_at = datetime.utcnow()

        # Pending work of the caller is flushed outside the savepoint so a
        # conflicting insert only undoes itself
        self.session.flush()
        try:
            with self.session.begin_nested():
                if created:
                    self.session.add(payment)
                self.session.flush()
        except IntegrityError:
            if not created:
                raise
            if payment in self.session:
                self.session.expunge(payment)
            # Another writer inserted the same key first; update theirs instead
            if self._find_payment(student_id, fee_type_enum, month_name, year) is None:
                raise
            logger.info(f"Concurrent insert for student {student_id} {month_name} {year}, retrying as update")
            return self.upsert_payment(
                student_id, month_name, year, amount, payment_status,
                fee_type=fee_type, partial_amount=partial_amount, payment_date=payment_date,
                payment_mode=payment_mode, remarks=remarks
            )

        # Validate the row exactly as the ledger will read it back
        to_payment_record(payment)
        return payment, created

"""
Fee Management Helper Functions
Contains business logic for recording payments, the monthly register,
pending dues and dashboard figures
"""

from datetime import date
from decimal import Decimal
from sqlalchemy.orm import Session
import logging

from fee_ledger import (
    LedgerStatus, reconcile_month, pending_dues, student_year_summary,
    summarize_payments, summarize_entries, register_to_csv, current_month_name
)
from fee_models import FeePayment, PaymentStatusEnum
from fee_repository import FeeRepository
from models import Student, StudentStatusEnum
from validators import PaymentValidator, ValidationError

logger = logging.getLogger(__name__)


def format_currency(amount, symbol='₹') -> str:
    """Indian digit grouping: 1250000 -> ₹12,50,000; paise shown only when non-zero"""
    amount = Decimal(amount or 0).quantize(Decimal('0.01'))
    sign = '-' if amount < 0 else ''
    whole, fraction = f"{abs(amount):.2f}".split('.')
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ','.join(groups + [tail])
    text = whole if fraction == '00' else f"{whole}.{fraction}"
    return f"{sign}{symbol}{text}"


# ===== RECORDING =====

def record_payment(session: Session, form_data) -> tuple:
    """
    Validate the payment form and upsert the row for its billing period.
    Returns:
        (FeePayment, created)
    Raises:
        ValidationError if the form is invalid or the student does not exist
    """
    data = PaymentValidator.validate_payment_data(form_data)

    student = session.query(Student).filter_by(id=data['student_id']).first()
    if not student:
        raise ValidationError("Student", "was not found")

    repo = FeeRepository(session)
    payment, created = repo.upsert_payment(**data)
    session.commit()

    logger.info(
        f"{'Recorded' if created else 'Updated'} {data['fee_type']} fee for {student.full_name} "
        f"({data['month_name']} {data['year']}): {data['payment_status']} {data['amount']}"
    )
    return payment, created


# ===== MONTHLY REGISTER =====

def reconcile_register(session: Session, month_name: str, year: int, class_level=None, strict=False):
    """Reconcile one month for the active roster, folding row-level warnings in"""
    repo = FeeRepository(session, strict=strict)
    students = repo.fetch_active_students(class_level)
    payments = repo.fetch_monthly_payments(month_name, year)
    result = reconcile_month(
        students, payments, month_name, year,
        known_student_ids=repo.fetch_known_student_ids(),
        strict=strict
    )
    result.warnings = repo.warnings + result.warnings
    return result


def filter_entries(entries, search='', status=''):
    """Search by name, father's name, phone or roll number; 'pending' also matches unrecorded months"""
    search = (search or '').strip().lower()
    status = (status or '').strip()

    filtered = []
    for entry in entries:
        student = entry.student
        if search and not (
            search in student.full_name.lower()
            or search in student.father_name.lower()
            or search in student.phone
            or search in str(student.roll_number)
        ):
            continue
        if status and status != 'all':
            if status == LedgerStatus.PENDING:
                if entry.status not in (LedgerStatus.PENDING, LedgerStatus.NOT_RECORDED):
                    continue
            elif entry.status != status:
                continue
        filtered.append(entry)
    return filtered


def get_monthly_register(session: Session, month_name: str, year: int, search='', class_level='', status=''):
    result = reconcile_register(session, month_name, year, class_level or None)
    entries = filter_entries(result.entries, search, status)
    return {
        'month_name': month_name,
        'year': year,
        'result': result,
        'entries': entries,
        'totals': summarize_entries(entries),
        'warnings': result.warnings,
    }


def export_register_csv(session: Session, month_name: str, year: int, search='', class_level='', status='') -> str:
    register = get_monthly_register(session, month_name, year, search, class_level, status)
    return register_to_csv(register['entries'], month_name, year)


# ===== PENDING DUES =====

def get_pending_dues(session: Session, class_level=None, year=None, strict=False):
    """Open dues of active students, highest total first"""
    repo = FeeRepository(session, strict=strict)
    students = repo.fetch_active_students(class_level)
    payments = repo.fetch_open_payments(year)
    report = pending_dues(
        students, payments,
        known_student_ids=repo.fetch_known_student_ids(),
        strict=strict
    )
    report.warnings = repo.warnings + report.warnings
    return report


def get_class_levels_in_use(session: Session):
    rows = session.query(Student.class_level).filter(
        Student.status == StudentStatusEnum.ACTIVE
    ).distinct().order_by(Student.class_level).all()
    return [row[0] for row in rows]


# ===== STUDENT SUMMARY =====

def get_student_fee_summary(session: Session, student_id: int, year: int = None):
    """Twelve-month grid and totals for one student, or None if the student does not exist"""
    year = year or date.today().year
    repo = FeeRepository(session)
    student = repo.fetch_student(student_id)
    if student is None:
        return None
    return student_year_summary(student, repo.fetch_yearly_payments(student_id, year), year)


def get_recent_payments(session: Session, limit: int = 5, student_id: int = None):
    """Most recent paid rows, newest payment date first"""
    query = session.query(FeePayment)
    if student_id is not None:
        query = query.filter(FeePayment.student_id == student_id)
    else:
        query = query.filter(FeePayment.payment_status == PaymentStatusEnum.PAID)
    return query.order_by(
        FeePayment.payment_date.desc(), FeePayment.year.desc(), FeePayment.id.desc()
    ).limit(limit).all()


# ===== DASHBOARD =====

def get_dashboard_stats(session: Session, today: date = None) -> dict:
    """
    Headline figures for the admin dashboard.

    total_pending is what active students owe on recorded rows plus this
    month's fee for every active student with no row yet, the same policy the
    monthly register and pending dues use. Open rows of left or completed
    students are not counted. Rows of students that no longer exist are left
    out of both totals and reported as unmatched.
    """
    today = today or date.today()
    month_name = current_month_name(today)

    repo = FeeRepository(session, strict=False)
    known_ids = repo.fetch_known_student_ids()
    payments = repo.fetch_all_payments()
    matched = [p for p in payments if p.student_id in known_ids]
    orphaned = [p for p in payments if p.student_id not in known_ids]
    for payment in orphaned:
        logger.warning(f"Payment {payment.id} references unknown student {payment.student_id}")

    recorded = summarize_payments(matched)
    this_month = summarize_payments(
        p for p in matched if p.month_name == month_name and p.year == today.year
    )
    register = reconcile_register(session, month_name, today.year)
    dues = get_pending_dues(session)

    return {
        'month_name': month_name,
        'year': today.year,
        'total_students': session.query(Student).count(),
        'active_students': session.query(Student).filter(Student.status == StudentStatusEnum.ACTIVE).count(),
        'total_collected': recorded.collected,
        'pending_recorded': dues.total_pending,
        'not_recorded_this_month': register.totals.not_recorded,
        'not_recorded_count': register.totals.not_recorded_count,
        'total_pending': dues.total_pending + register.totals.not_recorded,
        'this_month_collection': this_month.collected,
        'students_with_dues': len(dues.students),
        'unmatched_totals': summarize_payments(orphaned),
        'top_dues': dues.students[:5],
        'warnings': repo.warnings + register.warnings + dues.warnings,
    }

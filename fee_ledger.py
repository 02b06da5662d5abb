"""
Fee Ledger Reconciliation
Pure computations over a student roster and a set of fee payment rows:
per-student monthly status, aggregate collected/outstanding totals, the yearly
pending-dues rollup and the monthly register CSV.

Nothing in this module touches the database. Callers fetch the inputs (see
fee_repository.py) and pass plain records in.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple
import csv
import io
import logging

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')

MONTHS = [
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December'
]

FEE_TYPES = ('monthly', 'admission', 'other')
PAYMENT_STATUSES = ('paid', 'pending', 'partial')

REGISTER_CSV_HEADERS = [
    'Roll #', 'Student Name', 'Father Name', 'Phone', 'Class',
    'Fee Amount', 'Status', 'Amount Paid', 'Payment Date'
]


class LedgerStatus:
    PAID = 'paid'
    PARTIAL = 'partial'
    PENDING = 'pending'
    NOT_RECORDED = 'not_recorded'

    ALL = (PAID, PARTIAL, PENDING, NOT_RECORDED)


# ===== ERRORS =====

class LedgerIntegrityError(Exception):
    """Stored fee data violates a ledger invariant"""
    def __init__(self, message, student_id=None):
        self.message = message
        self.student_id = student_id
        super().__init__(message)


class InvalidPartialAmountError(LedgerIntegrityError):
    """A partial payment whose paid part is negative or covers the whole bill"""


class DuplicatePaymentError(LedgerIntegrityError):
    """More than one row for the same (student, fee type, month, year)"""
    def __init__(self, key, payment_ids):
        self.key = key
        self.payment_ids = tuple(payment_ids)
        student_id, fee_type, month_name, year = key
        super().__init__(
            f"{len(self.payment_ids)} {fee_type} payment rows for student {student_id} "
            f"in {month_name} {year} (ids {', '.join(str(i) for i in self.payment_ids)})",
            student_id=student_id,
        )


class OrphanedPaymentError(LedgerIntegrityError):
    """A payment row that references a student who does not exist"""
    def __init__(self, payment):
        self.payment = payment
        super().__init__(
            f"Payment {payment.id} references unknown student {payment.student_id}",
            student_id=payment.student_id,
        )


def to_money(value) -> Decimal:
    """Coerce a stored amount to a two-place Decimal"""
    if value is None:
        return ZERO
    if isinstance(value, float):
        value = repr(value)
    return Decimal(value).quantize(Decimal('0.01'))


# ===== DOMAIN RECORDS =====

@dataclass(frozen=True)
class StudentRecord:
    id: int
    full_name: str
    roll_number: int
    monthly_fee_amount: Decimal
    father_name: str = ''
    phone: str = ''
    class_level: str = ''
    academic_year: str = ''
    status: str = 'active'

    def __post_init__(self):
        object.__setattr__(self, 'monthly_fee_amount', to_money(self.monthly_fee_amount))
        if self.monthly_fee_amount < ZERO:
            raise LedgerIntegrityError(
                f"Student {self.id} has a negative monthly fee ({self.monthly_fee_amount})",
                student_id=self.id,
            )


@dataclass(frozen=True)
class PaymentRecord:
    id: Optional[int]
    student_id: int
    month_name: str
    year: int
    amount: Decimal
    payment_status: str
    fee_type: str = 'monthly'
    partial_amount: Decimal = ZERO
    payment_date: Optional[date] = None
    payment_mode: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'amount', to_money(self.amount))
        object.__setattr__(self, 'partial_amount', to_money(self.partial_amount))

        if self.fee_type not in FEE_TYPES:
            raise LedgerIntegrityError(f"Payment {self.id}: unknown fee type {self.fee_type!r}", self.student_id)
        if self.payment_status not in PAYMENT_STATUSES:
            raise LedgerIntegrityError(f"Payment {self.id}: unknown status {self.payment_status!r}", self.student_id)
        if self.month_name not in MONTHS:
            raise LedgerIntegrityError(f"Payment {self.id}: unknown month {self.month_name!r}", self.student_id)
        if self.amount < ZERO:
            raise LedgerIntegrityError(f"Payment {self.id}: negative amount {self.amount}", self.student_id)
        if self.payment_status == LedgerStatus.PARTIAL:
            if self.partial_amount < ZERO or self.partial_amount >= self.amount:
                raise InvalidPartialAmountError(
                    f"Payment {self.id}: partial amount {self.partial_amount} must be at least 0 "
                    f"and less than the billed amount {self.amount}",
                    student_id=self.student_id,
                )

    @property
    def key(self) -> Tuple[int, str, str, int]:
        return (self.student_id, self.fee_type, self.month_name, self.year)

    @property
    def collected(self) -> Decimal:
        if self.payment_status == LedgerStatus.PAID:
            return self.amount
        if self.payment_status == LedgerStatus.PARTIAL:
            return self.partial_amount
        return ZERO

    @property
    def outstanding(self) -> Decimal:
        if self.payment_status == LedgerStatus.PENDING:
            return self.amount
        if self.payment_status == LedgerStatus.PARTIAL:
            return self.amount - self.partial_amount
        return ZERO


@dataclass(frozen=True)
class LedgerEntry:
    """One student's fee status for a single month"""
    student: StudentRecord
    status: str
    owed: Decimal
    payment: Optional[PaymentRecord] = None

    @property
    def billed_amount(self) -> Decimal:
        if self.payment is not None:
            return self.payment.amount
        return self.student.monthly_fee_amount

    @property
    def collected(self) -> Decimal:
        return self.payment.collected if self.payment is not None else ZERO

    @property
    def amount_paid(self) -> Decimal:
        """Figure shown in the register's Amount Paid column"""
        if self.payment is None:
            return ZERO
        if self.payment.payment_status == LedgerStatus.PAID:
            return self.payment.amount
        return self.payment.partial_amount

    def to_dict(self):
        return {
            'student_id': self.student.id,
            'roll_number': self.student.roll_number,
            'full_name': self.student.full_name,
            'father_name': self.student.father_name,
            'phone': self.student.phone,
            'class_level': self.student.class_level,
            'monthly_fee_amount': float(self.student.monthly_fee_amount),
            'status': self.status,
            'owed': float(self.owed),
            'amount_paid': float(self.amount_paid),
            'payment_date': self.payment.payment_date.isoformat() if self.payment and self.payment.payment_date else None,
        }


@dataclass(frozen=True)
class LedgerTotals:
    collected: Decimal = ZERO
    pending_recorded: Decimal = ZERO
    not_recorded: Decimal = ZERO
    paid_count: int = 0
    partial_count: int = 0
    pending_count: int = 0
    not_recorded_count: int = 0

    @property
    def pending(self) -> Decimal:
        """Outstanding on recorded rows plus fees of unrecorded months"""
        return self.pending_recorded + self.not_recorded

    @property
    def total_count(self) -> int:
        return self.paid_count + self.partial_count + self.pending_count + self.not_recorded_count

    def to_dict(self):
        return {
            'collected': float(self.collected),
            'pending': float(self.pending),
            'pending_recorded': float(self.pending_recorded),
            'not_recorded': float(self.not_recorded),
            'paid_count': self.paid_count,
            'partial_count': self.partial_count,
            'pending_count': self.pending_count,
            'not_recorded_count': self.not_recorded_count,
            'total_count': self.total_count,
        }


@dataclass
class ReconciliationResult:
    month_name: str
    year: int
    entries: List[LedgerEntry]
    totals: LedgerTotals
    unmatched: List[PaymentRecord] = field(default_factory=list)
    unmatched_totals: LedgerTotals = field(default_factory=LedgerTotals)
    conflicts: List[DuplicatePaymentError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def has_integrity_issues(self) -> bool:
        return bool(self.unmatched or self.conflicts or self.warnings)


@dataclass(frozen=True)
class StudentDues:
    student: StudentRecord
    pending_payments: Tuple[PaymentRecord, ...]
    total_pending: Decimal

    def to_dict(self):
        return {
            'student_id': self.student.id,
            'roll_number': self.student.roll_number,
            'full_name': self.student.full_name,
            'father_name': self.student.father_name,
            'phone': self.student.phone,
            'class_level': self.student.class_level,
            'pending_count': len(self.pending_payments),
            'total_pending': float(self.total_pending),
            'periods': [f"{p.month_name} {p.year}" for p in self.pending_payments],
        }


@dataclass
class DuesReport:
    students: List[StudentDues]
    warnings: List[str] = field(default_factory=list)

    @property
    def total_pending(self) -> Decimal:
        return sum((d.total_pending for d in self.students), ZERO)


@dataclass
class StudentYearSummary:
    student: StudentRecord
    year: int
    months: List[LedgerEntry]
    payments: List[PaymentRecord]
    total_paid: Decimal
    total_pending: Decimal
    total_due: Decimal


# ===== CLASSIFICATION =====

def classify(student: StudentRecord, payment: Optional[PaymentRecord]) -> LedgerEntry:
    """Label a student's month and compute what is still owed"""
    if payment is None:
        return LedgerEntry(student, LedgerStatus.NOT_RECORDED, student.monthly_fee_amount)
    if payment.student_id != student.id:
        raise LedgerIntegrityError(
            f"Payment {payment.id} belongs to student {payment.student_id}, not {student.id}",
            student_id=student.id,
        )
    # pending rows carry their own billed amount, which may differ from the current fee
    return LedgerEntry(student, payment.payment_status, payment.outstanding, payment)


def find_duplicates(payments: Iterable[PaymentRecord]) -> List[DuplicatePaymentError]:
    """Every uniqueness-key collision in the given rows"""
    by_key = {}
    for payment in payments:
        by_key.setdefault(payment.key, []).append(payment)
    return [
        DuplicatePaymentError(key, [p.id for p in rows])
        for key, rows in by_key.items() if len(rows) > 1
    ]


def summarize_payments(payments: Iterable[PaymentRecord]) -> LedgerTotals:
    """Totals over existing rows only; unrecorded months are not counted"""
    collected = pending = ZERO
    counts = {LedgerStatus.PAID: 0, LedgerStatus.PARTIAL: 0, LedgerStatus.PENDING: 0}
    for payment in payments:
        collected += payment.collected
        pending += payment.outstanding
        counts[payment.payment_status] += 1
    return LedgerTotals(
        collected=collected,
        pending_recorded=pending,
        paid_count=counts[LedgerStatus.PAID],
        partial_count=counts[LedgerStatus.PARTIAL],
        pending_count=counts[LedgerStatus.PENDING],
    )


def summarize_entries(entries: Iterable[LedgerEntry]) -> LedgerTotals:
    collected = pending_recorded = not_recorded = ZERO
    counts = dict.fromkeys(LedgerStatus.ALL, 0)
    for entry in entries:
        counts[entry.status] += 1
        collected += entry.collected
        if entry.status == LedgerStatus.NOT_RECORDED:
            not_recorded += entry.owed
        else:
            pending_recorded += entry.owed
    return LedgerTotals(
        collected=collected,
        pending_recorded=pending_recorded,
        not_recorded=not_recorded,
        paid_count=counts[LedgerStatus.PAID],
        partial_count=counts[LedgerStatus.PARTIAL],
        pending_count=counts[LedgerStatus.PENDING],
        not_recorded_count=counts[LedgerStatus.NOT_RECORDED],
    )


def _split_by_roster(payments, roster_ids, known_student_ids, strict, warnings):
    """Group rows by student; report rows of students that do not exist"""
    grouped = {}
    unmatched = []
    for payment in payments:
        if payment.student_id in roster_ids:
            grouped.setdefault(payment.student_id, []).append(payment)
            continue
        if known_student_ids is not None and payment.student_id not in known_student_ids:
            error = OrphanedPaymentError(payment)
            if strict:
                raise error
            logger.warning(error.message)
            warnings.append(error.message)
            unmatched.append(payment)
        # otherwise the student exists but is outside the roster (left or completed)
    return grouped, unmatched


# ===== RECONCILIATION =====

def reconcile_month(students: Iterable[StudentRecord], payments: Iterable[PaymentRecord],
                    month_name: str, year: int, known_student_ids=None,
                    strict: bool = True) -> ReconciliationResult:
    """
    Build the monthly register: one entry per roster student, in roster order.

    Args:
        students: roster (normally active students ordered by roll number)
        payments: monthly-fee rows; rows for other months or fee types are ignored
        month_name, year: the billing period
        known_student_ids: ids of every stored student, used to tell orphaned
            rows apart from rows of students outside the roster
        strict: raise on integrity problems instead of collecting warnings

    Raises:
        DuplicatePaymentError, OrphanedPaymentError (strict mode only)
    """
    if month_name not in MONTHS:
        raise ValueError(f"Unknown month: {month_name}")

    students = list(students)
    scoped = [
        p for p in payments
        if p.fee_type == 'monthly' and p.month_name == month_name and p.year == year
    ]

    warnings = []
    grouped, unmatched = _split_by_roster(
        scoped, {s.id for s in students}, known_student_ids, strict, warnings
    )

    entries = []
    conflicts = []
    for student in students:
        rows = grouped.get(student.id, [])
        if len(rows) > 1:
            error = DuplicatePaymentError(rows[0].key, [p.id for p in rows])
            if strict:
                raise error
            logger.warning(error.message)
            conflicts.append(error)
            warnings.append(error.message)
            continue
        entries.append(classify(student, rows[0] if rows else None))

    return ReconciliationResult(
        month_name=month_name,
        year=year,
        entries=entries,
        totals=summarize_entries(entries),
        unmatched=unmatched,
        unmatched_totals=summarize_payments(unmatched),
        conflicts=conflicts,
        warnings=warnings,
    )


def pending_dues(students: Iterable[StudentRecord], payments: Iterable[PaymentRecord],
                 known_student_ids=None, strict: bool = True) -> DuesReport:
    """
    Per-student rollup of open (pending or partial) rows, highest total first.

    Ties keep a deterministic order: roll number, then student id.
    """
    students = list(students)
    payments = list(payments)
    warnings = []

    conflicting_keys = set()
    for error in find_duplicates(payments):
        if strict:
            raise error
        logger.warning(error.message)
        warnings.append(error.message)
        conflicting_keys.add(error.key)

    open_rows = [
        p for p in payments
        if p.payment_status in (LedgerStatus.PENDING, LedgerStatus.PARTIAL)
        and p.key not in conflicting_keys
    ]
    grouped, _ = _split_by_roster(
        open_rows, {s.id for s in students}, known_student_ids, strict, warnings
    )

    dues = []
    for student in students:
        rows = grouped.get(student.id, [])
        total = sum((p.outstanding for p in rows), ZERO)
        if total > ZERO:
            dues.append(StudentDues(student, tuple(rows), total))

    dues.sort(key=lambda d: (-d.total_pending, d.student.roll_number, d.student.id))
    return DuesReport(students=dues, warnings=warnings)


def student_year_summary(student: StudentRecord, payments: Iterable[PaymentRecord],
                         year: int) -> StudentYearSummary:
    """
    Twelve-month grid plus paid/pending/due totals for one student.

    total_pending covers recorded open rows only; months with no row show as
    not recorded in the grid but are not added to it.
    """
    payments = [p for p in payments if p.student_id == student.id and p.year == year]
    duplicates = find_duplicates(payments)
    if duplicates:
        raise duplicates[0]

    monthly = {p.month_name: p for p in payments if p.fee_type == 'monthly'}
    months = [classify(student, monthly.get(month)) for month in MONTHS]
    totals = summarize_payments(payments)

    return StudentYearSummary(
        student=student,
        year=year,
        months=months,
        payments=payments,
        total_paid=totals.collected,
        total_pending=totals.pending_recorded,
        total_due=student.monthly_fee_amount * len(MONTHS),
    )


# ===== EXPORT =====

def register_to_csv(entries: Iterable[LedgerEntry], month_name: str, year: int) -> str:
    """Monthly register as CSV text, one row per entry in the order given"""
    output = io.StringIO()
    output.write(f"Monthly Fee Register - {month_name} {year}\n\n")
    writer = csv.writer(output, lineterminator='\n')
    writer.writerow(REGISTER_CSV_HEADERS)
    for entry in entries:
        payment = entry.payment
        writer.writerow([
            entry.student.roll_number,
            entry.student.full_name,
            entry.student.father_name,
            entry.student.phone,
            entry.student.class_level,
            entry.student.monthly_fee_amount,
            payment.payment_status if payment else 'Not Recorded',
            entry.amount_paid,
            payment.payment_date.isoformat() if payment and payment.payment_date else '',
        ])
    return output.getvalue()


def month_index(month_name: str) -> int:
    return MONTHS.index(month_name)


def current_month_name(today: date = None) -> str:
    today = today or date.today()
    return MONTHS[today.month - 1]

from datetime import date
from decimal import Decimal

import pytest

from fee_ledger import (
    LedgerStatus, StudentRecord, PaymentRecord, LedgerIntegrityError,
    InvalidPartialAmountError, DuplicatePaymentError, OrphanedPaymentError,
    reconcile_month, pending_dues, student_year_summary, summarize_payments,
    register_to_csv, classify, find_duplicates, current_month_name, to_money, MONTHS
)


def student(id, roll, fee='1000', name=None):
    return StudentRecord(
        id=id, full_name=name or f'Student {id}', roll_number=roll,
        monthly_fee_amount=Decimal(fee), father_name=f'Father {id}',
        phone=f'98765{id:05d}', class_level='Hifz', academic_year='2025-2026'
    )


def payment(id, student_id, status, amount='1000', partial='0', month='March', year=2025,
            fee_type='monthly', paid_on=None):
    return PaymentRecord(
        id=id, student_id=student_id, month_name=month, year=year,
        amount=Decimal(amount), payment_status=status, fee_type=fee_type,
        partial_amount=Decimal(partial), payment_date=paid_on
    )


# ===== RECORD VALIDATION =====

def test_partial_row_with_paid_part_above_bill_is_rejected():
    with pytest.raises(InvalidPartialAmountError):
        payment(1, 1, 'partial', amount='1000', partial='1500')


def test_partial_row_covering_whole_bill_is_rejected():
    with pytest.raises(InvalidPartialAmountError):
        payment(1, 1, 'partial', amount='1000', partial='1000')


def test_negative_partial_is_rejected():
    with pytest.raises(InvalidPartialAmountError):
        payment(1, 1, 'partial', amount='1000', partial='-1')


def test_unknown_status_and_month_are_rejected():
    with pytest.raises(LedgerIntegrityError):
        payment(1, 1, 'waived')
    with pytest.raises(LedgerIntegrityError):
        payment(1, 1, 'paid', month='Smarch')


def test_negative_monthly_fee_is_rejected():
    with pytest.raises(LedgerIntegrityError):
        student(1, 1, fee='-10')


def test_money_is_quantized_to_two_places():
    assert to_money(None) == Decimal('0.00')
    assert to_money(12.5) == Decimal('12.50')
    assert payment(1, 1, 'paid', amount='999.999').amount == Decimal('1000.00')


# ===== CLASSIFICATION =====

def test_partial_example_owes_remainder():
    s = student(1, 1, fee='1000')
    entry = classify(s, payment(10, 1, 'partial', amount='1000', partial='400'))
    assert entry.status == LedgerStatus.PARTIAL
    assert entry.owed == Decimal('600.00')
    assert entry.collected == Decimal('400.00')


def test_missing_row_is_not_recorded_at_current_fee():
    entry = classify(student(2, 2, fee='1200'), None)
    assert entry.status == LedgerStatus.NOT_RECORDED
    assert entry.owed == Decimal('1200.00')
    assert entry.payment is None


def test_pending_row_owes_its_own_billed_amount():
    s = student(1, 1, fee='1500')
    entry = classify(s, payment(10, 1, 'pending', amount='1000'))
    assert entry.owed == Decimal('1000.00')
    assert entry.billed_amount == Decimal('1000.00')


def test_classify_refuses_payment_of_another_student():
    with pytest.raises(LedgerIntegrityError):
        classify(student(1, 1), payment(10, 2, 'paid'))


def test_owed_plus_collected_equals_billed_for_every_entry():
    students = [student(i, i, fee='1000') for i in range(1, 6)]
    payments = [
        payment(1, 1, 'paid'),
        payment(2, 2, 'partial', partial='250'),
        payment(3, 3, 'pending', amount='900'),
        payment(4, 4, 'paid', amount='800'),
    ]
    result = reconcile_month(students, payments, 'March', 2025)
    assert len(result.entries) == 5
    for entry in result.entries:
        assert entry.owed + entry.collected == entry.billed_amount


# ===== MONTHLY RECONCILIATION =====

def test_every_roster_student_gets_exactly_one_label_in_roster_order():
    students = [student(3, 1), student(1, 2), student(2, 3)]
    payments = [payment(1, 1, 'paid'), payment(2, 2, 'pending')]
    result = reconcile_month(students, payments, 'March', 2025)
    assert [e.student.id for e in result.entries] == [3, 1, 2]
    assert [e.status for e in result.entries] == [
        LedgerStatus.NOT_RECORDED, LedgerStatus.PAID, LedgerStatus.PENDING
    ]


def test_empty_payments_yield_all_not_recorded():
    students = [student(1, 1, fee='1000'), student(2, 2, fee='1200'), student(3, 3, fee='0')]
    result = reconcile_month(students, [], 'March', 2025)
    assert [e.status for e in result.entries] == [LedgerStatus.NOT_RECORDED] * 3
    assert [e.owed for e in result.entries] == [Decimal('1000.00'), Decimal('1200.00'), Decimal('0.00')]
    assert result.totals.not_recorded == Decimal('2200.00')
    assert result.totals.collected == Decimal('0.00')
    assert result.totals.not_recorded_count == 3


def test_rows_of_other_periods_and_fee_types_are_ignored():
    students = [student(1, 1)]
    payments = [
        payment(1, 1, 'paid', month='February'),
        payment(2, 1, 'paid', year=2024),
        payment(3, 1, 'paid', fee_type='admission', amount='5000'),
    ]
    result = reconcile_month(students, payments, 'March', 2025)
    assert result.entries[0].status == LedgerStatus.NOT_RECORDED


def test_totals_split_collected_and_pending():
    students = [student(1, 1), student(2, 2), student(3, 3), student(4, 4, fee='1200')]
    payments = [
        payment(1, 1, 'paid'),
        payment(2, 2, 'partial', partial='400'),
        payment(3, 3, 'pending'),
    ]
    totals = reconcile_month(students, payments, 'March', 2025).totals
    assert totals.collected == Decimal('1400.00')
    assert totals.pending_recorded == Decimal('1600.00')
    assert totals.not_recorded == Decimal('1200.00')
    assert totals.pending == Decimal('2800.00')
    assert (totals.paid_count, totals.partial_count, totals.pending_count, totals.not_recorded_count) == (1, 1, 1, 1)
    assert totals.total_count == 4


def test_collected_plus_recorded_pending_round_trips_to_billed():
    payments = [
        payment(1, 1, 'paid', amount='1000'),
        payment(2, 2, 'partial', amount='1200', partial='700'),
        payment(3, 3, 'pending', amount='900'),
    ]
    totals = summarize_payments(payments)
    assert totals.collected + totals.pending_recorded == sum(p.amount for p in payments)


def test_reconcile_is_idempotent():
    students = [student(1, 1), student(2, 2)]
    payments = [payment(1, 1, 'partial', partial='100')]
    first = reconcile_month(students, payments, 'March', 2025)
    second = reconcile_month(students, payments, 'March', 2025)
    assert first.entries == second.entries
    assert first.totals == second.totals


def test_unknown_month_raises():
    with pytest.raises(ValueError):
        reconcile_month([student(1, 1)], [], 'Marchember', 2025)


def test_duplicate_rows_raise_in_strict_mode():
    students = [student(1, 1)]
    payments = [payment(1, 1, 'paid'), payment(2, 1, 'pending')]
    with pytest.raises(DuplicatePaymentError) as exc_info:
        reconcile_month(students, payments, 'March', 2025)
    assert exc_info.value.payment_ids == (1, 2)
    assert exc_info.value.key == (1, 'monthly', 'March', 2025)


def test_duplicate_rows_are_reported_not_picked_in_lenient_mode():
    students = [student(1, 1), student(2, 2)]
    payments = [payment(1, 1, 'paid'), payment(2, 1, 'pending'), payment(3, 2, 'paid')]
    result = reconcile_month(students, payments, 'March', 2025, strict=False)
    assert [e.student.id for e in result.entries] == [2]
    assert len(result.conflicts) == 1
    assert result.conflicts[0].student_id == 1
    assert result.has_integrity_issues
    assert result.totals.collected == Decimal('1000.00')


def test_orphaned_row_raises_in_strict_mode():
    with pytest.raises(OrphanedPaymentError):
        reconcile_month([student(1, 1)], [payment(9, 42, 'paid')], 'March', 2025,
                        known_student_ids={1})


def test_orphaned_row_is_flagged_with_its_own_totals():
    result = reconcile_month(
        [student(1, 1)], [payment(9, 42, 'paid', amount='700')], 'March', 2025,
        known_student_ids={1}, strict=False
    )
    assert len(result.entries) == 1
    assert [p.id for p in result.unmatched] == [9]
    assert result.unmatched_totals.collected == Decimal('700.00')
    assert result.totals.collected == Decimal('0.00')
    assert result.warnings


def test_row_of_known_student_outside_roster_is_not_an_orphan():
    result = reconcile_month(
        [student(1, 1)], [payment(9, 2, 'paid')], 'March', 2025,
        known_student_ids={1, 2}
    )
    assert result.unmatched == []
    assert not result.has_integrity_issues


# ===== PENDING DUES =====

def test_pending_dues_sorted_by_total_descending():
    students = [student(1, 1), student(2, 2), student(3, 3)]
    payments = [
        payment(1, 1, 'pending', month='January'),
        payment(2, 2, 'pending', month='January'),
        payment(3, 2, 'partial', month='February', partial='500'),
        payment(4, 3, 'paid', month='January'),
    ]
    report = pending_dues(students, payments)
    assert [d.student.id for d in report.students] == [2, 1]
    assert report.students[0].total_pending == Decimal('1500.00')
    assert report.total_pending == Decimal('2500.00')


def test_pending_dues_ties_break_by_roll_number_then_id():
    students = [student(5, 2), student(7, 1), student(6, 2)]
    payments = [payment(i, sid, 'pending') for i, sid in enumerate((5, 7, 6), start=1)]
    report = pending_dues(students, payments)
    assert [d.student.id for d in report.students] == [7, 5, 6]


def test_pending_dues_skip_students_without_open_rows():
    report = pending_dues([student(1, 1)], [payment(1, 1, 'paid')])
    assert report.students == []
    assert report.total_pending == Decimal('0')


def test_pending_dues_exclude_conflicting_keys_in_lenient_mode():
    students = [student(1, 1)]
    payments = [
        payment(1, 1, 'pending', month='January'),
        payment(2, 1, 'pending', month='January'),
        payment(3, 1, 'pending', month='February', amount='800'),
    ]
    with pytest.raises(DuplicatePaymentError):
        pending_dues(students, payments)
    report = pending_dues(students, payments, strict=False)
    assert report.students[0].total_pending == Decimal('800.00')
    assert len(report.warnings) == 1


# ===== YEAR SUMMARY =====

def test_student_year_summary_builds_twelve_months():
    s = student(1, 1, fee='1000')
    payments = [
        payment(1, 1, 'paid', month='January'),
        payment(2, 1, 'partial', month='February', partial='300'),
        payment(3, 1, 'pending', month='March'),
        payment(4, 1, 'paid', month='April', fee_type='admission', amount='2000'),
        payment(5, 1, 'paid', month='May', year=2024),
    ]
    summary = student_year_summary(s, payments, 2025)
    assert len(summary.months) == 12
    assert [e.status for e in summary.months[:4]] == [
        LedgerStatus.PAID, LedgerStatus.PARTIAL, LedgerStatus.PENDING, LedgerStatus.NOT_RECORDED
    ]
    assert summary.total_paid == Decimal('3300.00')
    assert summary.total_pending == Decimal('1700.00')
    assert summary.total_due == Decimal('12000.00')
    assert len(summary.payments) == 4


def test_student_year_summary_surfaces_duplicates():
    s = student(1, 1)
    with pytest.raises(DuplicatePaymentError):
        student_year_summary(s, [payment(1, 1, 'paid'), payment(2, 1, 'paid')], 2025)


def test_find_duplicates_reports_each_key_once():
    rows = [payment(1, 1, 'paid'), payment(2, 1, 'paid'), payment(3, 1, 'paid'), payment(4, 2, 'paid')]
    duplicates = find_duplicates(rows)
    assert len(duplicates) == 1
    assert duplicates[0].payment_ids == (1, 2, 3)


# ===== CSV =====

def test_register_csv_layout():
    students = [student(1, 1, name='Ahmed Khan'), student(2, 2, fee='1200', name='Bilal Shaikh')]
    payments = [payment(1, 1, 'partial', partial='400', paid_on=date(2025, 3, 5))]
    result = reconcile_month(students, payments, 'March', 2025)
    lines = register_to_csv(result.entries, 'March', 2025).split('\n')

    assert lines[0] == 'Monthly Fee Register - March 2025'
    assert lines[1] == ''
    assert lines[2] == 'Roll #,Student Name,Father Name,Phone,Class,Fee Amount,Status,Amount Paid,Payment Date'
    assert lines[3] == '1,Ahmed Khan,Father 1,9876500001,Hifz,1000.00,partial,400.00,2025-03-05'
    assert lines[4] == '2,Bilal Shaikh,Father 2,9876500002,Hifz,1200.00,Not Recorded,0.00,'
    assert lines[5] == ''


def test_current_month_name():
    assert current_month_name(date(2025, 3, 14)) == 'March'
    assert MONTHS[-1] == 'December'

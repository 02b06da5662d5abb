from datetime import date, timedelta
from decimal import Decimal

import pytest
from werkzeug.datastructures import MultiDict

from fee_ledger import InvalidPartialAmountError
from validators import (
    FieldValidator, StudentValidator, PaymentValidator, NoticeValidator, StaffValidator,
    ValidationError, format_validation_error, to_payment_record
)


def test_phone_strips_formatting_and_country_code():
    assert FieldValidator.validate_phone('+91 98765-43210') == '9876543210'
    assert FieldValidator.validate_phone('(987) 654 3210') == '9876543210'
    assert FieldValidator.validate_phone('') is None


def test_phone_rejects_wrong_length():
    with pytest.raises(ValidationError) as exc_info:
        FieldValidator.validate_phone('12345', required=True)
    assert exc_info.value.field == 'Phone'


def test_name_accepts_other_scripts_and_rejects_digits():
    assert FieldValidator.validate_name('  Mohammed   Yusuf ') == 'Mohammed Yusuf'
    assert FieldValidator.validate_name('محمد علی') == 'محمد علی'
    with pytest.raises(ValidationError):
        FieldValidator.validate_name('Agent 47')


def test_amount_parsing():
    assert FieldValidator.validate_amount('1200') == Decimal('1200.00')
    assert FieldValidator.validate_amount('', required=False) == Decimal('0.00')
    for bad in ('-5', 'abc', 'NaN'):
        with pytest.raises(ValidationError):
            FieldValidator.validate_amount(bad)


def test_academic_year_format():
    assert StudentValidator.validate_academic_year('2025-2026') == '2025-2026'
    with pytest.raises(ValidationError):
        StudentValidator.validate_academic_year('2025-2027')


def test_date_of_birth_age_bounds():
    with pytest.raises(ValidationError):
        StudentValidator.validate_date_of_birth((date.today() - timedelta(days=365)).isoformat())
    assert StudentValidator.validate_date_of_birth('2012-06-01') == date(2012, 6, 1)


def test_student_form_uses_default_fee_when_blank():
    form = MultiDict({
        'full_name': 'Ahmed Khan', 'father_name': 'Imran Khan', 'phone': '9876543210',
        'class_level': 'Hifz', 'academic_year': '2025-2026', 'roll_number': '4',
    })
    data = StudentValidator.validate_all_student_data(form, default_fee=Decimal('1500'))
    assert data['monthly_fee_amount'] == Decimal('1500.00')
    assert data['status'] == 'active'
    assert data['roll_number'] == 4
    assert data['admission_date'] == date.today()


def payment_form(**overrides):
    values = {
        'student_id': '1', 'month_name': 'March', 'year': '2025',
        'amount': '1000', 'payment_status': 'paid', 'payment_mode': 'cash',
    }
    values.update(overrides)
    return MultiDict(values)


def test_paid_payment_defaults_date_to_today():
    data = PaymentValidator.validate_payment_data(payment_form())
    assert data['payment_date'] == date.today()
    assert data['fee_type'] == 'monthly'
    assert data['partial_amount'] == Decimal('0.00')


def test_pending_payment_keeps_no_date():
    data = PaymentValidator.validate_payment_data(payment_form(payment_status='pending', payment_mode=''))
    assert data['payment_date'] is None
    assert data['payment_mode'] is None


def test_partial_payment_must_be_below_amount():
    data = PaymentValidator.validate_payment_data(payment_form(payment_status='partial', partial_amount='400'))
    assert data['partial_amount'] == Decimal('400.00')
    with pytest.raises(ValidationError) as exc_info:
        PaymentValidator.validate_payment_data(payment_form(payment_status='partial', partial_amount='1500'))
    assert format_validation_error(exc_info.value) == 'Partial Amount must be less than the fee amount'


def test_payment_month_and_year_are_checked():
    with pytest.raises(ValidationError):
        PaymentValidator.validate_payment_data(payment_form(month_name='Marchh'))
    with pytest.raises(ValidationError):
        PaymentValidator.validate_payment_data(payment_form(year='1999'))


def test_notice_expiry_cannot_precede_publish_date():
    form = MultiDict({'title': 'Eid holidays', 'content': 'Closed for Eid', 'publish_date': '2025-03-10',
                      'expiry_date': '2025-03-01'})
    with pytest.raises(ValidationError):
        NoticeValidator.validate_notice_data(form)


def test_staff_is_active_follows_checkbox():
    form = MultiDict({'name': 'Qari Saleem', 'staff_type': 'teacher', 'phone': '9876543210'})
    assert StaffValidator.validate_all_staff_data(form)['is_active'] is False
    form['is_active'] = 'on'
    assert StaffValidator.validate_all_staff_data(form)['is_active'] is True


class StoredPayment:
    """Stand-in for a FeePayment row as read from the database"""
    def __init__(self, **kwargs):
        self.__dict__.update(kwargs)


def test_stored_row_with_bad_partial_is_rejected_at_the_boundary():
    row = StoredPayment(
        id=7, student_id=1, fee_type='monthly', month_name='March', year=2025,
        amount=Decimal('1000'), payment_status='partial', partial_amount=Decimal('1500'),
        payment_date=None, payment_mode=None
    )
    with pytest.raises(InvalidPartialAmountError):
        to_payment_record(row)

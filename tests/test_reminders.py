from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from werkzeug.datastructures import MultiDict

from conftest import make_student, make_payment
from fee_models import FeeReminder, ReminderTypeEnum, ReminderStatusEnum, ReminderFrequencyEnum
from reminder_helpers import (
    render_reminder_message, normalize_phone, whatsapp_link, send_reminders,
    get_reminder_settings, save_reminder_settings, days_since_last_reminder, get_last_reminders
)
from validators import ValidationError


def test_render_fills_known_placeholders_and_keeps_unknown(db_session):
    student = make_student(db_session, 3, full_name='Ahmed Khan')
    message = render_reminder_message(
        'Dear {father_name}, {student_name} (roll {roll_number}) owes {amount} to {institute_name}. {note}',
        student, Decimal('1500'), 'Darul Uloom'
    )
    assert message == 'Dear Father 3, Ahmed Khan (roll 3) owes ₹1,500 to Darul Uloom. {note}'


def test_render_leaves_indexed_placeholders_unchanged(db_session):
    student = make_student(db_session, 3)
    template = 'Dear {father_name}, pay {foo.bar} {foo[x]}'
    assert render_reminder_message(template, student, Decimal('500'), 'Darul Uloom') == template


def test_normalize_phone():
    assert normalize_phone('98765 43210') == '+919876543210'
    assert normalize_phone('+91-9876543210') == '+919876543210'
    assert normalize_phone('12345') == ''
    assert normalize_phone(None) == ''


def test_whatsapp_link_encodes_message():
    link = whatsapp_link('9876543210', 'Fee due: ₹1,000')
    assert link.startswith('https://wa.me/919876543210?text=Fee%20due')
    assert whatsapp_link('', 'hello') is None


def test_send_reminders_logs_only_students_with_dues(db_session):
    owing = make_student(db_session, 1)
    clear = make_student(db_session, 2)
    make_payment(db_session, owing, payment_status='pending')
    make_payment(db_session, clear, payment_status='paid')

    sent = send_reminders(db_session, [owing.id, clear.id], 'whatsapp', institute_name='Darul Uloom')
    assert len(sent) == 1
    reminder = sent[0]
    assert reminder.student_id == owing.id
    assert reminder.reminder_type == ReminderTypeEnum.WHATSAPP
    assert reminder.status == ReminderStatusEnum.SENT
    assert reminder.sent_to == '+919876500001'
    assert reminder.amount_due == Decimal('1000.00')
    assert 'Darul Uloom' in reminder.message


def test_send_reminders_both_creates_two_rows(db_session):
    student = make_student(db_session, 1)
    make_payment(db_session, student, payment_status='pending')
    sent = send_reminders(db_session, [student.id], 'both', custom_message='Please pay {amount}')
    assert sorted(r.reminder_type.value for r in sent) == ['sms', 'whatsapp']
    assert all(r.message == 'Please pay ₹1,000' for r in sent)
    assert db_session.query(FeeReminder).count() == 2


def test_send_reminders_marks_unusable_phone_failed(db_session):
    student = make_student(db_session, 1, phone='12345')
    make_payment(db_session, student, payment_status='pending')
    sent = send_reminders(db_session, [student.id], 'sms')
    assert sent[0].status == ReminderStatusEnum.FAILED


def test_send_reminders_rejects_unknown_channel(db_session):
    with pytest.raises(ValidationError):
        send_reminders(db_session, [1], 'pigeon')


def test_days_since_last_reminder(db_session):
    student = make_student(db_session, 1)
    assert days_since_last_reminder(db_session, student.id) is None
    db_session.add(FeeReminder(
        student_id=student.id, reminder_type=ReminderTypeEnum.MANUAL, sent_to='+919876500001',
        message='Reminder', amount_due=Decimal('1000'), status=ReminderStatusEnum.SENT,
        sent_at=datetime(2025, 3, 1, 10, 0)
    ))
    db_session.commit()
    assert days_since_last_reminder(db_session, student.id, today=date(2025, 3, 8)) == 7
    assert student.id in get_last_reminders(db_session)


def test_reminder_settings_round_trip(db_session):
    settings = get_reminder_settings(db_session)
    assert settings.reminder_frequency == ReminderFrequencyEnum.WEEKLY

    save_reminder_settings(db_session, MultiDict({
        'reminder_frequency': 'monthly', 'reminder_day': '5', 'sms_enabled': 'on',
        'reminder_message_template': 'Pay {amount}',
    }))
    settings = get_reminder_settings(db_session)
    assert settings.reminder_frequency == ReminderFrequencyEnum.MONTHLY
    assert settings.reminder_day == 5
    assert settings.sms_enabled is True
    assert settings.whatsapp_enabled is False


def test_reminder_settings_reject_bad_day_and_template(db_session):
    with pytest.raises(ValidationError):
        save_reminder_settings(db_session, MultiDict({'reminder_frequency': 'weekly', 'reminder_day': '31'}))
    with pytest.raises(ValidationError):
        save_reminder_settings(db_session, MultiDict({
            'reminder_frequency': 'weekly', 'reminder_day': '1', 'reminder_message_template': 'Pay {amount'
        }))


@pytest.mark.parametrize('template', [
    'Dear {father_name.upper}, pay {foo.bar}',
    'Pay {foo[x]} now',
    'Pay {0}',
    'Pay {amount:d}',
])
def test_templates_with_unusable_placeholders_are_rejected(db_session, template):
    with pytest.raises(ValidationError):
        save_reminder_settings(db_session, MultiDict({
            'reminder_frequency': 'weekly', 'reminder_day': '1', 'reminder_message_template': template
        }))


def test_send_reminders_rejects_custom_message_with_attribute_access(db_session):
    student = make_student(db_session, 1)
    make_payment(db_session, student, payment_status='pending')
    with pytest.raises(ValidationError):
        send_reminders(db_session, [student.id], 'sms', custom_message='Pay {amount.real}')
    assert db_session.query(FeeReminder).count() == 0

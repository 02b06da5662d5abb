"""
Fee Reminder Helpers
Renders reminder messages for guardians of students with pending dues and
keeps the reminder log.

Messages are not delivered to any provider: each "sent" reminder is stored in
fee_reminders and written to the log. A wa.me link is built for admins who
forward the message by hand.
"""

import logging
import string
from datetime import datetime, date
from decimal import Decimal
from typing import List, Optional
from urllib.parse import quote

from sqlalchemy.orm import Session

from fee_helpers import get_pending_dues, format_currency
from fee_models import (
    FeeReminder, ReminderSettings, DEFAULT_REMINDER_TEMPLATE,
    ReminderTypeEnum, ReminderStatusEnum, ReminderFrequencyEnum
)
from validators import FieldValidator, ValidationError

logger = logging.getLogger(__name__)

REMINDER_PLACEHOLDERS = ('amount', 'student_name', 'roll_number', 'father_name', 'institute_name')
_FORMAT_ERRORS = (ValueError, IndexError, KeyError, AttributeError, TypeError)


class _KeepUnknown(dict):
    """format_map mapping that leaves unknown placeholders in place"""
    def __missing__(self, key):
        return '{' + key + '}'


# ===== SETTINGS =====

def get_reminder_settings(session: Session) -> ReminderSettings:
    """The single settings row, created with defaults on first use"""
    settings = session.query(ReminderSettings).order_by(ReminderSettings.id).first()
    if settings is None:
        settings = ReminderSettings(
            reminder_frequency=ReminderFrequencyEnum.WEEKLY,
            reminder_day=1,
            sms_enabled=False,
            whatsapp_enabled=True,
            reminder_message_template=DEFAULT_REMINDER_TEMPLATE,
        )
        session.add(settings)
        session.commit()
    return settings


def save_reminder_settings(session: Session, form_data) -> ReminderSettings:
    frequency = FieldValidator.validate_choice(
        form_data.get('reminder_frequency'),
        [f.value for f in ReminderFrequencyEnum],
        'Reminder Frequency'
    )
    day = FieldValidator.validate_int(form_data.get('reminder_day'), 'Reminder Day', min_value=1, max_value=28)
    template = (form_data.get('reminder_message_template') or '').strip() or DEFAULT_REMINDER_TEMPLATE
    validate_template(template)

    settings = get_reminder_settings(session)
    settings.reminder_frequency = ReminderFrequencyEnum(frequency)
    settings.reminder_day = day
    settings.sms_enabled = form_data.get('sms_enabled') in ('on', 'true', '1', True)
    settings.whatsapp_enabled = form_data.get('whatsapp_enabled') in ('on', 'true', '1', True)
    settings.reminder_message_template = template
    session.commit()

    logger.info(f"Reminder settings updated: {frequency}, day {day}")
    return settings


def validate_template(template: str):
    """Reject templates that cannot be formatted or that index into a placeholder"""
    try:
        fields = [name for _, name, _, _ in string.Formatter().parse(template) if name is not None]
    except ValueError as e:
        raise ValidationError("Message Template", f"is not a valid template ({e})")

    for name in fields:
        if not name.isidentifier():
            raise ValidationError("Message Template", f"has an unsupported placeholder {{{name}}}")

    try:
        template.format_map(_KeepUnknown())
    except _FORMAT_ERRORS as e:
        raise ValidationError("Message Template", f"is not a valid template ({e})")


# ===== MESSAGES =====

def render_reminder_message(template: str, student, amount: Decimal, institute_name: str,
                            currency_symbol: str = '₹') -> str:
    """Fill {amount}, {student_name}, {roll_number}, {father_name} and {institute_name}"""
    values = _KeepUnknown(
        amount=format_currency(amount, currency_symbol),
        student_name=student.full_name,
        roll_number=student.roll_number,
        father_name=student.father_name or '',
        institute_name=institute_name,
    )
    try:
        return template.format_map(values)
    except _FORMAT_ERRORS:
        logger.warning("Reminder template could not be formatted, sending it unchanged")
        return template


def normalize_phone(phone: str) -> str:
    """Indian mobile numbers in +91XXXXXXXXXX form; '' if unusable"""
    if not phone:
        return ''
    digits = ''.join(c for c in phone if c.isdigit())
    if len(digits) == 10:
        return '+91' + digits
    if len(digits) == 12 and digits.startswith('91'):
        return '+' + digits
    return ''


def whatsapp_link(phone: str, message: str) -> Optional[str]:
    normalized = normalize_phone(phone)
    if not normalized:
        return None
    return f"https://wa.me/{normalized.lstrip('+')}?text={quote(message)}"


# ===== SENDING =====

def send_reminders(session: Session, student_ids: List[int], reminder_type: str,
                   custom_message: str = None, institute_name: str = 'Madrasa',
                   currency_symbol: str = '₹') -> List[FeeReminder]:
    """
    Log a reminder for each selected student who currently has pending dues.

    reminder_type is 'sms', 'whatsapp', 'manual' or 'both' (one sms and one
    whatsapp row per student). Students without dues are skipped. A reminder
    to a number that cannot be normalized is stored with status 'failed'.
    """
    if reminder_type == 'both':
        types = [ReminderTypeEnum.SMS, ReminderTypeEnum.WHATSAPP]
    else:
        types = [ReminderTypeEnum(
            FieldValidator.validate_choice(reminder_type, [t.value for t in ReminderTypeEnum], 'Reminder Type')
        )]

    if custom_message:
        validate_template(custom_message)
    template = custom_message or get_reminder_settings(session).reminder_message_template or DEFAULT_REMINDER_TEMPLATE

    wanted = set(student_ids)
    dues_by_student = {d.student.id: d for d in get_pending_dues(session).students if d.student.id in wanted}
    for student_id in wanted - set(dues_by_student):
        logger.info(f"Skipping reminder for student {student_id}: no pending dues")

    now = datetime.utcnow()
    reminders = []
    for dues in dues_by_student.values():
        message = render_reminder_message(template, dues.student, dues.total_pending, institute_name, currency_symbol)
        sent_to = normalize_phone(dues.student.phone)
        for reminder_type_enum in types:
            status = ReminderStatusEnum.SENT if sent_to else ReminderStatusEnum.FAILED
            reminder = FeeReminder(
                student_id=dues.student.id,
                reminder_type=reminder_type_enum,
                sent_to=sent_to or (dues.student.phone or ''),
                message=message,
                amount_due=dues.total_pending,
                status=status,
                sent_at=now,
            )
            session.add(reminder)
            reminders.append(reminder)
            if status == ReminderStatusEnum.SENT:
                logger.info(
                    f"{reminder_type_enum.value} reminder for {dues.student.full_name} "
                    f"to {sent_to}: {format_currency(dues.total_pending, currency_symbol)} due"
                )
            else:
                logger.warning(f"No usable phone number for {dues.student.full_name}, reminder marked failed")

    session.commit()
    return reminders


# ===== HISTORY =====

def get_reminder_history(session: Session, limit: int = 100) -> List[FeeReminder]:
    return session.query(FeeReminder).order_by(
        FeeReminder.sent_at.desc(), FeeReminder.id.desc()
    ).limit(limit).all()


def get_last_reminders(session: Session) -> dict:
    """Most recent reminder per student id"""
    last = {}
    for reminder in get_reminder_history(session, limit=None):
        last.setdefault(reminder.student_id, reminder)
    return last


def days_since_last_reminder(session: Session, student_id: int, today: date = None) -> Optional[int]:
    reminder = session.query(FeeReminder).filter_by(student_id=student_id).order_by(
        FeeReminder.sent_at.desc()
    ).first()
    if reminder is None:
        return None
    today = today or date.today()
    return (today - reminder.sent_at.date()).days

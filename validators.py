"""
Form and Row Validation Utilities
Validates admin form input and maps stored rows to ledger records
"""

import re
from datetime import datetime, date
from decimal import Decimal, InvalidOperation
from dateutil.relativedelta import relativedelta

from fee_ledger import MONTHS, FEE_TYPES, PAYMENT_STATUSES, StudentRecord, PaymentRecord

PAYMENT_MODES = ('cash', 'upi', 'bank_transfer', 'cheque', 'online')
STUDENT_STATUSES = ('active', 'left', 'completed')
STAFF_TYPES = ('teacher', 'servant', 'trustee')


class ValidationError(Exception):
    """Custom exception for validation errors"""
    def __init__(self, field, message):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


def _value(column):
    """Enum columns come back as enum members, plain columns as-is"""
    return getattr(column, 'value', column)


def _clean(form_data, key):
    return (form_data.get(key) or '').strip()


class FieldValidator:
    """Validators shared by every admin form"""

    @staticmethod
    def validate_phone(phone, field_name="Phone", required=False):
        """
        Validate phone number - must be exactly 10 digits
        Returns:
            Cleaned phone number (digits only), or None when optional and blank
        """
        if not phone or not phone.strip():
            if required:
                raise ValidationError(field_name, "is required")
            return None

        # Remove common formatting characters
        cleaned = re.sub(r'[\s\-\(\)\+]', '', phone.strip())
        if cleaned.startswith('91') and len(cleaned) == 12:
            cleaned = cleaned[2:]

        if not cleaned.isdigit():
            raise ValidationError(field_name, "must contain only digits")
        if len(cleaned) != 10:
            raise ValidationError(field_name, "must be exactly 10 digits")
        return cleaned

    @staticmethod
    def validate_email(email, field_name="Email"):
        """Optional email; lowercased when present"""
        if not email or not email.strip():
            return None
        email = email.strip().lower()
        pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(pattern, email):
            raise ValidationError(field_name, "is not a valid email address")
        return email

    @staticmethod
    def validate_name(name, field_name="Name", min_length=2, max_length=100):
        if not name or not name.strip():
            raise ValidationError(field_name, "is required")

        cleaned = ' '.join(name.split())
        if len(cleaned) < min_length:
            raise ValidationError(field_name, f"must be at least {min_length} characters")
        if len(cleaned) > max_length:
            raise ValidationError(field_name, f"must not exceed {max_length} characters")

        # Letters from any script, spaces, hyphens, apostrophes and dots
        if not re.match(r"^[^\W\d_][\w\s\-'\.]*$", cleaned) or re.search(r'[\d_]', cleaned):
            raise ValidationError(field_name, "must contain only letters, spaces, hyphens, and apostrophes")
        return cleaned

    @staticmethod
    def validate_amount(value, field_name="Amount", required=True):
        """
        Parse a money amount
        Returns:
            Decimal with two places, never negative
        Raises:
            ValidationError if missing (when required), malformed or negative
        """
        if value is None or str(value).strip() == '':
            if required:
                raise ValidationError(field_name, "is required")
            return Decimal('0.00')
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(field_name, "must be a number")
        if not amount.is_finite():
            raise ValidationError(field_name, "must be a number")
        if amount < 0:
            raise ValidationError(field_name, "cannot be negative")
        return amount.quantize(Decimal('0.01'))

    @staticmethod
    def validate_int(value, field_name, min_value=None, max_value=None, required=True):
        if value is None or str(value).strip() == '':
            if required:
                raise ValidationError(field_name, "is required")
            return None
        try:
            number = int(str(value).strip())
        except ValueError:
            raise ValidationError(field_name, "must be a whole number")
        if min_value is not None and number < min_value:
            raise ValidationError(field_name, f"must be at least {min_value}")
        if max_value is not None and number > max_value:
            raise ValidationError(field_name, f"must not exceed {max_value}")
        return number

    @staticmethod
    def validate_date(date_str, field_name, required=False):
        """Parse YYYY-MM-DD; None when optional and blank"""
        if not date_str or not date_str.strip():
            if required:
                raise ValidationError(field_name, "is required")
            return None
        try:
            return datetime.strptime(date_str.strip(), '%Y-%m-%d').date()
        except ValueError:
            raise ValidationError(field_name, "must be in YYYY-MM-DD format")

    @staticmethod
    def validate_choice(value, choices, field_name, default=None):
        value = (value or '').strip() or default
        if value not in choices:
            raise ValidationError(field_name, f"must be one of: {', '.join(choices)}")
        return value


class StudentValidator(FieldValidator):
    """Validates student form data"""

    @staticmethod
    def validate_date_of_birth(dob_str, min_age=3, max_age=40):
        dob = FieldValidator.validate_date(dob_str, "Date of Birth")
        if dob is None:
            return None

        today = date.today()
        if dob >= today:
            raise ValidationError("Date of Birth", "cannot be in the future")
        if dob > today - relativedelta(years=min_age):
            raise ValidationError("Date of Birth", f"student must be at least {min_age} years old")
        if dob < today - relativedelta(years=max_age):
            raise ValidationError("Date of Birth", f"student cannot be more than {max_age} years old")
        return dob

    @staticmethod
    def validate_admission_date(date_str):
        admission_date = FieldValidator.validate_date(date_str, "Admission Date")
        if admission_date is None:
            return date.today()
        if admission_date > date.today() + relativedelta(months=1):
            raise ValidationError("Admission Date", "cannot be more than 1 month in the future")
        return admission_date

    @staticmethod
    def validate_academic_year(value):
        value = (value or '').strip()
        match = re.match(r'^(\d{4})-(\d{4})$', value)
        if not match or int(match.group(2)) != int(match.group(1)) + 1:
            raise ValidationError("Academic Year", "must look like 2025-2026")
        return value

    @staticmethod
    def validate_all_student_data(form_data, default_fee=None):
        """
        Validate all student form data at once
        Returns:
            Dictionary of validated and cleaned data
        Raises:
            ValidationError on first validation failure
        """
        validated = {}
        validated['full_name'] = StudentValidator.validate_name(form_data.get('full_name'), 'Full Name')
        validated['father_name'] = StudentValidator.validate_name(form_data.get('father_name'), "Father's Name")

        mother_name = _clean(form_data, 'mother_name')
        validated['mother_name'] = StudentValidator.validate_name(mother_name, "Mother's Name") if mother_name else None

        validated['phone'] = StudentValidator.validate_phone(form_data.get('phone'), 'Phone', required=True)
        validated['email'] = StudentValidator.validate_email(form_data.get('email'))
        validated['address'] = _clean(form_data, 'address') or None
        validated['date_of_birth'] = StudentValidator.validate_date_of_birth(form_data.get('date_of_birth'))
        validated['admission_date'] = StudentValidator.validate_admission_date(form_data.get('admission_date'))

        class_level = _clean(form_data, 'class_level')
        if not class_level:
            raise ValidationError("Class", "is required")
        validated['class_level'] = class_level

        validated['academic_year'] = StudentValidator.validate_academic_year(form_data.get('academic_year'))
        validated['roll_number'] = StudentValidator.validate_int(form_data.get('roll_number'), 'Roll Number', min_value=1)
        validated['status'] = StudentValidator.validate_choice(form_data.get('status'), STUDENT_STATUSES, 'Status', default='active')

        fee = form_data.get('monthly_fee_amount')
        if (fee is None or str(fee).strip() == '') and default_fee is not None:
            validated['monthly_fee_amount'] = Decimal(default_fee).quantize(Decimal('0.01'))
        else:
            validated['monthly_fee_amount'] = StudentValidator.validate_amount(fee, 'Monthly Fee')
        return validated


class PaymentValidator(FieldValidator):
    """Validates the record-payment form"""

    @staticmethod
    def validate_payment_data(form_data):
        validated = {}
        validated['student_id'] = PaymentValidator.validate_int(form_data.get('student_id'), 'Student', min_value=1)
        validated['fee_type'] = PaymentValidator.validate_choice(form_data.get('fee_type'), FEE_TYPES, 'Fee Type', default='monthly')
        validated['month_name'] = PaymentValidator.validate_choice(form_data.get('month_name'), MONTHS, 'Month')
        validated['year'] = PaymentValidator.validate_int(form_data.get('year'), 'Year', min_value=2000, max_value=2100)
        validated['amount'] = PaymentValidator.validate_amount(form_data.get('amount'), 'Amount')
        validated['payment_status'] = PaymentValidator.validate_choice(
            form_data.get('payment_status'), PAYMENT_STATUSES, 'Payment Status', default='paid'
        )

        if validated['payment_status'] == 'partial':
            partial = PaymentValidator.validate_amount(form_data.get('partial_amount'), 'Partial Amount')
            if partial >= validated['amount']:
                raise ValidationError("Partial Amount", "must be less than the fee amount")
            validated['partial_amount'] = partial
        else:
            validated['partial_amount'] = Decimal('0.00')

        validated['payment_date'] = PaymentValidator.validate_date(form_data.get('payment_date'), 'Payment Date')
        if validated['payment_status'] != 'pending' and validated['payment_date'] is None:
            validated['payment_date'] = date.today()

        mode = _clean(form_data, 'payment_mode')
        validated['payment_mode'] = PaymentValidator.validate_choice(mode, PAYMENT_MODES, 'Payment Mode') if mode else None
        validated['remarks'] = _clean(form_data, 'remarks') or None
        return validated


class StaffValidator(FieldValidator):
    """Validates staff form data"""

    @staticmethod
    def validate_all_staff_data(form_data):
        validated = {}
        validated['name'] = StaffValidator.validate_name(form_data.get('name'), 'Name')
        validated['staff_type'] = StaffValidator.validate_choice(form_data.get('staff_type'), STAFF_TYPES, 'Staff Type')
        validated['position'] = _clean(form_data, 'position') or None
        validated['department'] = _clean(form_data, 'department') or None
        validated['phone'] = StaffValidator.validate_phone(form_data.get('phone'), 'Phone', required=True)
        validated['email'] = StaffValidator.validate_email(form_data.get('email'))
        validated['address'] = _clean(form_data, 'address') or None
        salary = _clean(form_data, 'salary')
        validated['salary'] = StaffValidator.validate_amount(salary, 'Salary') if salary else None
        validated['joining_date'] = StaffValidator.validate_date(form_data.get('joining_date'), 'Joining Date')
        validated['qualification'] = _clean(form_data, 'qualification') or None
        validated['experience_years'] = StaffValidator.validate_int(
            form_data.get('experience_years'), 'Experience', min_value=0, max_value=60, required=False
        )
        validated['is_active'] = form_data.get('is_active') in ('on', 'true', '1', True)
        return validated


class NoticeValidator(FieldValidator):

    @staticmethod
    def validate_notice_data(form_data):
        validated = {}
        title = _clean(form_data, 'title')
        if len(title) < 3:
            raise ValidationError("Title", "must be at least 3 characters")
        if len(title) > 200:
            raise ValidationError("Title", "must not exceed 200 characters")
        validated['title'] = title

        content = _clean(form_data, 'content')
        if not content:
            raise ValidationError("Content", "is required")
        validated['content'] = content

        validated['is_published'] = form_data.get('is_published') in ('on', 'true', '1', True)
        validated['publish_date'] = NoticeValidator.validate_date(form_data.get('publish_date'), 'Publish Date') or date.today()
        validated['expiry_date'] = NoticeValidator.validate_date(form_data.get('expiry_date'), 'Expiry Date')
        if validated['expiry_date'] and validated['expiry_date'] < validated['publish_date']:
            raise ValidationError("Expiry Date", "cannot be before the publish date")
        return validated


# ===== STORED ROW -> LEDGER RECORD =====

def to_student_record(student) -> StudentRecord:
    """Map a Student row to the ledger's record type"""
    return StudentRecord(
        id=student.id,
        full_name=student.full_name,
        roll_number=student.roll_number,
        monthly_fee_amount=student.monthly_fee_amount,
        father_name=student.father_name or '',
        phone=student.phone or '',
        class_level=student.class_level or '',
        academic_year=student.academic_year or '',
        status=_value(student.status) or 'active',
    )


def to_payment_record(payment) -> PaymentRecord:
    """
    Map a FeePayment row to the ledger's record type.

    Raises LedgerIntegrityError (or InvalidPartialAmountError) for rows that
    break the ledger invariants, so malformed data never reaches the
    reconciliation.
    """
    return PaymentRecord(
        id=payment.id,
        student_id=payment.student_id,
        fee_type=_value(payment.fee_type) or 'monthly',
        month_name=payment.month_name,
        year=payment.year,
        amount=payment.amount,
        payment_status=_value(payment.payment_status),
        partial_amount=payment.partial_amount,
        payment_date=payment.payment_date,
        payment_mode=_value(payment.payment_mode),
    )


def format_validation_error(error):
    """Format ValidationError for user-friendly display"""
    return f"{error.field} {error.message}"

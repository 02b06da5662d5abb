import os
import sys
from datetime import date
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# main builds an app at import time; keep it off the developer's database
os.environ['SQLITE_PATH'] = ':memory:'
os.environ.pop('DATABASE_URL', None)
os.environ.pop('DB_HOST', None)


@pytest.fixture
def app():
    from main import create_app
    app = create_app('testing')
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    from database import get_session
    session = get_session()
    yield session
    session.close()


@pytest.fixture
def admin_user(db_session):
    from models import User
    user = User(username='office', email='office@madrasa.local', full_name='Office Admin', is_active=True)
    user.set_password('secret-pass')
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def logged_in_client(client, admin_user):
    response = client.post('/admin/login', data={'username': 'office', 'password': 'secret-pass'})
    assert response.status_code == 302
    return client


def make_student(session, roll_number, full_name=None, monthly_fee_amount='1000', **kwargs):
    from models import Student, StudentStatusEnum
    values = {
        'full_name': full_name or f'Student {roll_number}',
        'father_name': f'Father {roll_number}',
        'phone': f'98765{roll_number:05d}',
        'class_level': 'Hifz',
        'academic_year': '2025-2026',
        'roll_number': roll_number,
        'monthly_fee_amount': Decimal(monthly_fee_amount),
        'status': StudentStatusEnum.ACTIVE,
        'admission_date': date(2025, 4, 1),
    }
    values.update(kwargs)
    student = Student(**values)
    session.add(student)
    session.commit()
    return student


def make_payment(session, student, month_name='March', year=2025, amount='1000',
                 payment_status='paid', partial_amount='0', fee_type='monthly', payment_date=None):
    from fee_models import FeePayment, FeeTypeEnum, PaymentStatusEnum
    payment = FeePayment(
        student_id=student.id,
        fee_type=FeeTypeEnum(fee_type),
        month_name=month_name,
        year=year,
        amount=Decimal(amount),
        payment_status=PaymentStatusEnum(payment_status),
        partial_amount=Decimal(partial_amount),
        payment_date=payment_date or (date(year, 3, 5) if payment_status != 'pending' else None),
    )
    session.add(payment)
    session.commit()
    return payment

import csv
import io
from decimal import Decimal

from conftest import make_student, make_payment
from fee_models import FeePayment, PaymentStatusEnum


def test_admin_pages_redirect_to_login(client):
    response = client.get('/admin/fees/register')
    assert response.status_code == 302
    assert '/admin/login' in response.headers['Location']


def test_api_requires_authentication(client):
    response = client.get('/admin/api/fees/register')
    assert response.status_code == 401
    assert response.get_json()['success'] is False


def test_login_page_renders(client):
    assert client.get('/admin/login').status_code == 200


def test_login_rejects_wrong_password(client, admin_user):
    response = client.post('/admin/login', data={'username': 'office', 'password': 'nope'})
    assert response.status_code == 200
    assert b'Invalid username or password' in response.data


def test_dashboard_renders(logged_in_client, db_session):
    make_payment(db_session, make_student(db_session, 1))
    response = logged_in_client.get('/admin/')
    assert response.status_code == 200
    assert b'Total Pending' in response.data


def test_register_api_returns_entries_and_totals(logged_in_client, db_session):
    first = make_student(db_session, 1, full_name='Ahmed Khan')
    make_student(db_session, 2, full_name='Bilal Shaikh', monthly_fee_amount='1200')
    make_payment(db_session, first, payment_status='partial', partial_amount='400')

    response = logged_in_client.get('/admin/api/fees/register?month=March&year=2025')
    assert response.status_code == 200
    data = response.get_json()
    assert data['success'] is True
    assert [e['status'] for e in data['entries']] == ['partial', 'not_recorded']
    assert [e['owed'] for e in data['entries']] == [600.0, 1200.0]
    assert data['totals']['collected'] == 400.0
    assert data['totals']['pending'] == 1800.0


def test_register_page_renders(logged_in_client, db_session):
    make_student(db_session, 1, full_name='Ahmed Khan')
    response = logged_in_client.get('/admin/fees/register?month=March&year=2025')
    assert response.status_code == 200
    assert b'Ahmed Khan' in response.data


def test_register_csv_download(logged_in_client, db_session):
    make_payment(db_session, make_student(db_session, 1, full_name='Ahmed Khan'))
    make_student(db_session, 2, full_name='Bilal Shaikh')

    response = logged_in_client.get('/admin/fees/register.csv?month=March&year=2025')
    assert response.status_code == 200
    assert response.mimetype == 'text/csv'
    assert 'fee_register_March_2025.csv' in response.headers['Content-Disposition']

    rows = list(csv.reader(io.StringIO(response.get_data(as_text=True))))
    assert rows[0] == ['Monthly Fee Register - March 2025']
    assert rows[2][0] == 'Roll #'
    assert [r[6] for r in rows[3:]] == ['paid', 'Not Recorded']


def test_record_payment_creates_then_updates(logged_in_client, db_session):
    student = make_student(db_session, 1)
    form = {
        'student_id': str(student.id), 'month_name': 'March', 'year': '2025',
        'amount': '1000', 'payment_status': 'pending',
    }
    response = logged_in_client.post('/admin/fees/record', data=form)
    assert response.status_code == 302
    assert 'month=March' in response.headers['Location']

    form.update(payment_status='paid', payment_mode='upi')
    logged_in_client.post('/admin/fees/record', data=form)

    db_session.expire_all()
    rows = db_session.query(FeePayment).filter_by(student_id=student.id).all()
    assert len(rows) == 1
    assert rows[0].payment_status == PaymentStatusEnum.PAID


def test_record_payment_rejects_partial_above_amount(logged_in_client, db_session):
    student = make_student(db_session, 1)
    response = logged_in_client.post('/admin/fees/record', data={
        'student_id': str(student.id), 'month_name': 'March', 'year': '2025',
        'amount': '1000', 'payment_status': 'partial', 'partial_amount': '1500',
    })
    assert response.status_code == 200
    assert b'Partial Amount must be less than the fee amount' in response.data
    assert db_session.query(FeePayment).count() == 0


def test_pending_dues_api_orders_by_total(logged_in_client, db_session):
    first = make_student(db_session, 1)
    second = make_student(db_session, 2)
    make_payment(db_session, first, month_name='January', payment_status='pending')
    make_payment(db_session, second, month_name='January', payment_status='pending')
    make_payment(db_session, second, month_name='February', payment_status='pending')

    data = logged_in_client.get('/admin/api/fees/pending-dues').get_json()
    assert [s['student_id'] for s in data['students']] == [second.id, first.id]
    assert data['total_pending'] == 3000.0


def test_student_fees_page_and_receipt(logged_in_client, db_session):
    student = make_student(db_session, 1, full_name='Ahmed Khan')
    payment = make_payment(db_session, student, month_name='January')

    page = logged_in_client.get(f'/admin/students/{student.id}/fees?year=2025')
    assert page.status_code == 200
    assert b'Ahmed Khan' in page.data

    receipt = logged_in_client.get(f'/admin/fees/payments/{payment.id}/receipt.pdf')
    assert receipt.status_code == 200
    assert receipt.mimetype == 'application/pdf'
    assert receipt.data.startswith(b'%PDF')


def test_student_with_payments_cannot_be_deleted(logged_in_client, db_session):
    student = make_student(db_session, 1)
    make_payment(db_session, student)
    response = logged_in_client.post(f'/admin/students/{student.id}/delete')
    assert response.status_code == 302
    assert f'/admin/students/{student.id}' in response.headers['Location']

    db_session.expire_all()
    from models import Student
    assert db_session.query(Student).filter_by(id=student.id).count() == 1


def test_change_student_status(logged_in_client, db_session):
    student = make_student(db_session, 1)
    response = logged_in_client.post(f'/admin/students/{student.id}/change-status', json={'new_status': 'left'})
    assert response.get_json()['success'] is True

    data = logged_in_client.get('/admin/api/fees/register?month=March&year=2025').get_json()
    assert data['entries'] == []


def test_send_reminders_json(logged_in_client, db_session):
    student = make_student(db_session, 1)
    make_payment(db_session, student, payment_status='pending', amount=Decimal('1000'))
    response = logged_in_client.post('/admin/reminders/send', json={
        'student_ids': [student.id], 'reminder_type': 'whatsapp'
    })
    data = response.get_json()
    assert data['success'] is True
    assert data['count'] == 1
    assert data['message'] == 'Successfully sent 1 reminder(s)!'


def test_send_reminders_requires_selection(logged_in_client):
    response = logged_in_client.post('/admin/reminders/send', json={'student_ids': []})
    assert response.status_code == 400

from datetime import date, timedelta

from notice_models import Notice
from notice_routes import get_public_notices


def add_notice(session, title, published=True, publish_date=None, expiry_date=None):
    notice = Notice(title=title, content=f'{title} details', is_published=published,
                    publish_date=publish_date or date.today(), expiry_date=expiry_date)
    session.add(notice)
    session.commit()
    return notice


def test_public_notices_hide_drafts_future_and_expired(db_session):
    today = date.today()
    add_notice(db_session, 'Eid holidays')
    add_notice(db_session, 'Draft timetable', published=False)
    add_notice(db_session, 'Next term', publish_date=today + timedelta(days=3))
    add_notice(db_session, 'Old exam', publish_date=today - timedelta(days=10), expiry_date=today - timedelta(days=1))

    assert [n.title for n in get_public_notices(db_session, today)] == ['Eid holidays']


def test_public_board_renders(client, db_session):
    add_notice(db_session, 'Eid holidays')
    response = client.get('/notices')
    assert response.status_code == 200
    assert b'Eid holidays' in response.data


def test_root_redirects_to_notice_board(client):
    response = client.get('/')
    assert response.status_code == 302
    assert response.headers['Location'].endswith('/notices')


def test_toggle_notice_publish(logged_in_client, db_session):
    notice = add_notice(db_session, 'Parents meeting', published=False)
    data = logged_in_client.post(f'/admin/notices/{notice.id}/toggle-publish').get_json()
    assert data['success'] is True
    assert data['is_published'] is True


def test_add_notice_validates_title(logged_in_client, db_session):
    response = logged_in_client.post('/admin/notices/add', data={'title': 'Hi', 'content': 'Short'})
    assert response.status_code == 200
    assert db_session.query(Notice).count() == 0

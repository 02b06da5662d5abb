"""
Notice Routes
Admin management of notices and the public notice board
"""

from flask import Blueprint, render_template, request, redirect, url_for, flash, jsonify
from sqlalchemy import or_
from datetime import date
import logging

from database import get_session
from notice_models import Notice
from validators import NoticeValidator, ValidationError, format_validation_error

logger = logging.getLogger(__name__)


def get_public_notices(session_db, on_date=None):
    """Published, unexpired notices, newest first"""
    on_date = on_date or date.today()
    return session_db.query(Notice).filter(
        Notice.is_published.is_(True),
        Notice.publish_date <= on_date,
        or_(Notice.expiry_date.is_(None), Notice.expiry_date >= on_date)
    ).order_by(Notice.publish_date.desc(), Notice.id.desc()).all()


def register_notice_routes(admin_bp, require_admin_auth):
    """Register notice management routes to the admin blueprint"""

    @admin_bp.route('/notices')
    @require_admin_auth
    def notices():
        session_db = get_session()
        try:
            all_notices = session_db.query(Notice).order_by(Notice.publish_date.desc(), Notice.id.desc()).all()
            return render_template('notices/list.html', notices=all_notices, today=date.today())
        finally:
            session_db.close()

    @admin_bp.route('/notices/add', methods=['GET', 'POST'])
    @require_admin_auth
    def add_notice():
        if request.method == 'POST':
            session_db = get_session()
            try:
                notice = Notice(**NoticeValidator.validate_notice_data(request.form))
                session_db.add(notice)
                session_db.commit()
                logger.info(f"Notice created: {notice.title}")
                flash('Notice created successfully', 'success')
                return redirect(url_for('admin.notices'))
            except ValidationError as e:
                session_db.rollback()
                flash(format_validation_error(e), 'error')
            finally:
                session_db.close()

        return render_template('notices/form.html', notice=None, form=request.form)

    @admin_bp.route('/notices/<int:notice_id>/edit', methods=['GET', 'POST'])
    @require_admin_auth
    def edit_notice(notice_id):
        session_db = get_session()
        try:
            notice = session_db.query(Notice).filter_by(id=notice_id).first()
            if not notice:
                flash('Notice not found', 'error')
                return redirect(url_for('admin.notices'))

            if request.method == 'POST':
                try:
                    for key, value in NoticeValidator.validate_notice_data(request.form).items():
                        setattr(notice, key, value)
                    session_db.commit()
                    flash('Notice updated successfully', 'success')
                    return redirect(url_for('admin.notices'))
                except ValidationError as e:
                    session_db.rollback()
                    flash(format_validation_error(e), 'error')

            return render_template('notices/form.html', notice=notice, form=request.form)
        finally:
            session_db.close()

    @admin_bp.route('/notices/<int:notice_id>/toggle-publish', methods=['POST'])
    @require_admin_auth
    def toggle_notice(notice_id):
        """Publish or unpublish a notice"""
        session_db = get_session()
        try:
            notice = session_db.query(Notice).filter_by(id=notice_id).first()
            if not notice:
                return jsonify({'success': False, 'message': 'Notice not found'}), 404

            notice.is_published = not notice.is_published
            session_db.commit()
            state = 'published' if notice.is_published else 'unpublished'
            logger.info(f"Notice {notice.id} {state}")
            return jsonify({'success': True, 'is_published': notice.is_published, 'message': f'Notice {state}'})
        except Exception as e:
            session_db.rollback()
            logger.error(f"Toggle notice error: {e}")
            return jsonify({'success': False, 'message': str(e)}), 500
        finally:
            session_db.close()

    @admin_bp.route('/notices/<int:notice_id>/delete', methods=['POST'])
    @require_admin_auth
    def delete_notice(notice_id):
        session_db = get_session()
        try:
            notice = session_db.query(Notice).filter_by(id=notice_id).first()
            if notice:
                session_db.delete(notice)
                session_db.commit()
                flash('Notice deleted', 'success')
            else:
                flash('Notice not found', 'error')
        except Exception as e:
            session_db.rollback()
            logger.error(f"Delete notice error: {e}")
            flash('Error deleting notice', 'error')
        finally:
            session_db.close()
        return redirect(url_for('admin.notices'))


def create_public_blueprint():
    """Public pages: the notice board"""
    public_bp = Blueprint('public', __name__)

    @public_bp.route('/')
    def index():
        return redirect(url_for('public.notices'))

    @public_bp.route('/notices')
    def notices():
        session_db = get_session()
        try:
            return render_template('public/notices.html', notices=get_public_notices(session_db))
        except Exception as e:
            logger.error(f"Public notices error: {e}")
            flash('Notices could not be loaded right now', 'error')
            return render_template('public/notices.html', notices=[])
        finally:
            session_db.close()

    return public_bp

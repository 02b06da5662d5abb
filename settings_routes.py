"""
Settings Routes
Class levels, academic years and institute details
"""

from flask import render_template, request, redirect, url_for, flash, current_app
from sqlalchemy.exc import IntegrityError
import logging

from database import get_session
from models import ClassLevel, AcademicYear, Student
from validators import FieldValidator, StudentValidator, ValidationError, format_validation_error

logger = logging.getLogger(__name__)


def _class_level_data(form_data):
    name = (form_data.get('name') or '').strip()
    if not name:
        raise ValidationError("Class Name", "is required")
    return {
        'name': name,
        'description': (form_data.get('description') or '').strip() or None,
        'monthly_fee': FieldValidator.validate_amount(form_data.get('monthly_fee'), 'Monthly Fee'),
        'order_index': FieldValidator.validate_int(form_data.get('order_index'), 'Order', min_value=0, required=False) or 0,
    }


def set_current_academic_year(session_db, academic_year):
    """Make one year current and clear the flag everywhere else"""
    session_db.query(AcademicYear).filter(AcademicYear.id != academic_year.id).update(
        {'is_current': False}, synchronize_session=False
    )
    academic_year.is_current = True


def register_settings_routes(admin_bp, require_admin_auth):
    """Register settings routes to the admin blueprint"""

    @admin_bp.route('/settings')
    @require_admin_auth
    def settings():
        session_db = get_session()
        try:
            institute = {
                'name': current_app.config.get('INSTITUTE_NAME'),
                'address': current_app.config.get('INSTITUTE_ADDRESS'),
                'phone': current_app.config.get('INSTITUTE_PHONE'),
                'email': current_app.config.get('INSTITUTE_EMAIL'),
                'default_monthly_fee': current_app.config.get('DEFAULT_MONTHLY_FEE'),
            }
            return render_template(
                'settings/index.html',
                institute=institute,
                class_levels=session_db.query(ClassLevel).order_by(ClassLevel.order_index, ClassLevel.name).all(),
                academic_years=session_db.query(AcademicYear).order_by(AcademicYear.start_date.desc()).all(),
            )
        finally:
            session_db.close()

    # ===== CLASS LEVELS =====

    @admin_bp.route('/settings/classes/add', methods=['POST'])
    @require_admin_auth
    def add_class_level():
        session_db = get_session()
        try:
            level = ClassLevel(**_class_level_data(request.form))
            session_db.add(level)
            session_db.commit()
            logger.info(f"Class level added: {level.name}")
            flash(f'Class {level.name} added', 'success')
        except ValidationError as e:
            session_db.rollback()
            flash(format_validation_error(e), 'error')
        except IntegrityError:
            session_db.rollback()
            flash('A class with this name already exists', 'error')
        finally:
            session_db.close()
        return redirect(url_for('admin.settings'))

    @admin_bp.route('/settings/classes/<int:class_id>/edit', methods=['POST'])
    @require_admin_auth
    def edit_class_level(class_id):
        session_db = get_session()
        try:
            level = session_db.query(ClassLevel).filter_by(id=class_id).first()
            if not level:
                flash('Class not found', 'error')
                return redirect(url_for('admin.settings'))
            old_name = level.name
            for key, value in _class_level_data(request.form).items():
                setattr(level, key, value)
            if level.name != old_name:
                # Students store the class name, keep them attached
                session_db.query(Student).filter(Student.class_level == old_name).update(
                    {'class_level': level.name}, synchronize_session=False
                )
            session_db.commit()
            flash(f'Class {level.name} updated', 'success')
        except ValidationError as e:
            session_db.rollback()
            flash(format_validation_error(e), 'error')
        except IntegrityError:
            session_db.rollback()
            flash('A class with this name already exists', 'error')
        finally:
            session_db.close()
        return redirect(url_for('admin.settings'))

    @admin_bp.route('/settings/classes/<int:class_id>/delete', methods=['POST'])
    @require_admin_auth
    def delete_class_level(class_id):
        session_db = get_session()
        try:
            level = session_db.query(ClassLevel).filter_by(id=class_id).first()
            if not level:
                flash('Class not found', 'error')
            elif session_db.query(Student).filter(Student.class_level == level.name).count():
                flash(f'Class {level.name} still has students and cannot be deleted', 'error')
            else:
                session_db.delete(level)
                session_db.commit()
                flash(f'Class {level.name} deleted', 'success')
        except Exception as e:
            session_db.rollback()
            logger.error(f"Delete class level error: {e}")
            flash('Error deleting class', 'error')
        finally:
            session_db.close()
        return redirect(url_for('admin.settings'))

    # ===== ACADEMIC YEARS =====

    @admin_bp.route('/settings/years/add', methods=['POST'])
    @require_admin_auth
    def add_academic_year():
        session_db = get_session()
        try:
            year_name = StudentValidator.validate_academic_year(request.form.get('year_name'))
            start_date = FieldValidator.validate_date(request.form.get('start_date'), 'Start Date', required=True)
            end_date = FieldValidator.validate_date(request.form.get('end_date'), 'End Date', required=True)
            if end_date <= start_date:
                raise ValidationError('End Date', 'must be after the start date')

            academic_year = AcademicYear(year_name=year_name, start_date=start_date, end_date=end_date, is_current=False)
            session_db.add(academic_year)
            session_db.flush()
            if request.form.get('is_current') in ('on', 'true', '1'):
                set_current_academic_year(session_db, academic_year)
            session_db.commit()
            logger.info(f"Academic year added: {year_name}")
            flash(f'Academic year {year_name} added', 'success')
        except ValidationError as e:
            session_db.rollback()
            flash(format_validation_error(e), 'error')
        except IntegrityError:
            session_db.rollback()
            flash('This academic year already exists', 'error')
        finally:
            session_db.close()
        return redirect(url_for('admin.settings'))

    @admin_bp.route('/settings/years/<int:year_id>/set-current', methods=['POST'])
    @require_admin_auth
    def set_current_year(year_id):
        session_db = get_session()
        try:
            academic_year = session_db.query(AcademicYear).filter_by(id=year_id).first()
            if not academic_year:
                flash('Academic year not found', 'error')
            else:
                set_current_academic_year(session_db, academic_year)
                session_db.commit()
                flash(f'{academic_year.year_name} is now the current academic year', 'success')
        finally:
            session_db.close()
        return redirect(url_for('admin.settings'))

    @admin_bp.route('/settings/years/<int:year_id>/delete', methods=['POST'])
    @require_admin_auth
    def delete_academic_year(year_id):
        session_db = get_session()
        try:
            academic_year = session_db.query(AcademicYear).filter_by(id=year_id).first()
            if not academic_year:
                flash('Academic year not found', 'error')
            elif academic_year.is_current:
                flash('The current academic year cannot be deleted', 'error')
            else:
                session_db.delete(academic_year)
                session_db.commit()
                flash(f'Academic year {academic_year.year_name} deleted', 'success')
        finally:
            session_db.close()
        return redirect(url_for('admin.settings'))

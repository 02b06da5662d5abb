"""
Staff Routes for the Admin Console
"""

from flask import render_template, request, redirect, url_for, flash, abort
from sqlalchemy import or_
import logging

from database import get_session
from staff_models import Staff, StaffTypeEnum, STAFF_TYPE_LABELS
from validators import StaffValidator, ValidationError, format_validation_error

logger = logging.getLogger(__name__)


def _apply_staff_data(staff, data):
    for key, value in data.items():
        if key == 'staff_type':
            value = StaffTypeEnum(value)
        setattr(staff, key, value)


def register_staff_routes(admin_bp, require_admin_auth):
    """Register staff management routes to the admin blueprint"""

    @admin_bp.route('/staff')
    @require_admin_auth
    def staff_list():
        session_db = get_session()
        try:
            search_query = request.args.get('search', '').strip()
            staff_type = request.args.get('type', '').strip()

            query = session_db.query(Staff)
            if search_query:
                search_pattern = f"%{search_query}%"
                query = query.filter(
                    or_(
                        Staff.name.ilike(search_pattern),
                        Staff.position.ilike(search_pattern),
                        Staff.department.ilike(search_pattern)
                    )
                )
            if staff_type:
                try:
                    query = query.filter(Staff.staff_type == StaffTypeEnum(staff_type))
                except ValueError:
                    flash(f'Unknown staff type: {staff_type}', 'warning')

            members = query.order_by(Staff.is_active.desc(), Staff.name).all()
            return render_template('staff/list.html',
                                   staff=members,
                                   staff_types=STAFF_TYPE_LABELS,
                                   current_filters={'search': search_query, 'type': staff_type})
        except Exception as e:
            logger.error(f"Staff list error: {e}")
            flash('Error loading staff', 'error')
            return render_template('staff/list.html', staff=[], staff_types=STAFF_TYPE_LABELS, current_filters={})
        finally:
            session_db.close()

    @admin_bp.route('/staff/<int:staff_id>')
    @require_admin_auth
    def view_staff(staff_id):
        session_db = get_session()
        try:
            member = session_db.query(Staff).filter_by(id=staff_id).first()
            if not member:
                flash('Staff member not found', 'error')
                return redirect(url_for('admin.staff_list'))
            return render_template('staff/detail.html', member=member)
        finally:
            session_db.close()

    @admin_bp.route('/staff/add', methods=['GET', 'POST'])
    @require_admin_auth
    def add_staff():
        if request.method == 'POST':
            session_db = get_session()
            try:
                data = StaffValidator.validate_all_staff_data(request.form)
                member = Staff()
                _apply_staff_data(member, data)
                session_db.add(member)
                session_db.commit()
                logger.info(f"Staff added: {member.name} ({member.staff_type.value})")
                flash(f'{member.name} added successfully', 'success')
                return redirect(url_for('admin.view_staff', staff_id=member.id))
            except ValidationError as e:
                session_db.rollback()
                flash(format_validation_error(e), 'error')
            except Exception as e:
                session_db.rollback()
                logger.error(f"Add staff error: {e}")
                flash(f'Error adding staff member: {str(e)}', 'error')
            finally:
                session_db.close()

        return render_template('staff/form.html', member=None, form=request.form, staff_types=STAFF_TYPE_LABELS)

    @admin_bp.route('/staff/<int:staff_id>/edit', methods=['GET', 'POST'])
    @require_admin_auth
    def edit_staff(staff_id):
        session_db = get_session()
        try:
            member = session_db.query(Staff).filter_by(id=staff_id).first()
            if not member:
                abort(404)

            if request.method == 'POST':
                try:
                    _apply_staff_data(member, StaffValidator.validate_all_staff_data(request.form))
                    session_db.commit()
                    logger.info(f"Staff updated: {member.name} (id {member.id})")
                    flash('Staff member updated successfully', 'success')
                    return redirect(url_for('admin.view_staff', staff_id=member.id))
                except ValidationError as e:
                    session_db.rollback()
                    flash(format_validation_error(e), 'error')

            return render_template('staff/form.html', member=member, form=request.form, staff_types=STAFF_TYPE_LABELS)
        finally:
            session_db.close()

    @admin_bp.route('/staff/<int:staff_id>/delete', methods=['POST'])
    @require_admin_auth
    def delete_staff(staff_id):
        session_db = get_session()
        try:
            member = session_db.query(Staff).filter_by(id=staff_id).first()
            if not member:
                flash('Staff member not found', 'error')
                return redirect(url_for('admin.staff_list'))
            name = member.name
            session_db.delete(member)
            session_db.commit()
            logger.info(f"Staff deleted: {name} (id {staff_id})")
            flash(f'{name} deleted', 'success')
        except Exception as e:
            session_db.rollback()
            logger.error(f"Delete staff error: {e}")
            flash('Error deleting staff member', 'error')
        finally:
            session_db.close()
        return redirect(url_for('admin.staff_list'))

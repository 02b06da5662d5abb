"""
Student Routes for the Admin Console
List, add, edit, status change and delete for students
"""

from flask import render_template, request, redirect, url_for, flash, jsonify, current_app, abort
from sqlalchemy import or_, case, func, String, cast
from sqlalchemy.exc import IntegrityError
import logging

from database import get_session
from fee_helpers import get_recent_payments
from fee_models import FeePayment
from models import Student, StudentStatusEnum, ClassLevel, AcademicYear
from validators import StudentValidator, ValidationError, format_validation_error

logger = logging.getLogger(__name__)


def _default_fee_for_class(session_db, class_level):
    """Class fee if the class defines one, else the configured default"""
    level = session_db.query(ClassLevel).filter_by(name=class_level).first() if class_level else None
    if level and level.monthly_fee:
        return level.monthly_fee
    return current_app.config.get('DEFAULT_MONTHLY_FEE')


def _next_roll_number(session_db, academic_year):
    highest = session_db.query(func.max(Student.roll_number)).filter(
        Student.academic_year == academic_year
    ).scalar()
    return (highest or 0) + 1


def _current_academic_year(session_db):
    year = session_db.query(AcademicYear).filter_by(is_current=True).first()
    return year.year_name if year else ''


def _roll_number_taken(session_db, academic_year, roll_number, exclude_id=None):
    query = session_db.query(Student).filter(
        Student.academic_year == academic_year,
        Student.roll_number == roll_number
    )
    if exclude_id:
        query = query.filter(Student.id != exclude_id)
    return query.first() is not None


def register_student_routes(admin_bp, require_admin_auth):
    """Register all student routes to the admin blueprint"""

    @admin_bp.route('/students')
    @require_admin_auth
    def students():
        """List students with search, filters and pagination"""
        session_db = get_session()
        try:
            search_query = request.args.get('search', '').strip()
            class_level = request.args.get('class', '').strip()
            status = request.args.get('status', '').strip()
            page = max(request.args.get('page', 1, type=int), 1)
            per_page = min(max(request.args.get('per_page', 25, type=int), 1), 100)

            query = session_db.query(Student)

            if search_query:
                search_pattern = f"%{search_query}%"
                query = query.filter(
                    or_(
                        Student.full_name.ilike(search_pattern),
                        Student.father_name.ilike(search_pattern),
                        Student.phone.ilike(search_pattern),
                        cast(Student.roll_number, String).ilike(search_pattern)
                    )
                )
            if class_level:
                query = query.filter(Student.class_level == class_level)
            if status:
                try:
                    query = query.filter(Student.status == StudentStatusEnum(status))
                except ValueError:
                    flash(f'Unknown status filter: {status}', 'warning')

            # Active students first when no status filter is applied
            status_priority = case((Student.status == StudentStatusEnum.ACTIVE, 0), else_=1)
            if not status:
                query = query.order_by(status_priority, Student.roll_number, Student.id)
            else:
                query = query.order_by(Student.roll_number, Student.id)

            total = query.count()
            offset = (page - 1) * per_page
            student_list = query.limit(per_page).offset(offset).all()

            total_pages = (total + per_page - 1) // per_page
            pagination = {
                'page': page,
                'per_page': per_page,
                'total': total,
                'total_pages': total_pages,
                'has_prev': page > 1,
                'has_next': page < total_pages,
                'start': offset + 1 if student_list else 0,
                'end': min(offset + per_page, total)
            }

            classes = [row[0] for row in session_db.query(Student.class_level).distinct().order_by(Student.class_level).all()]

            return render_template('students/list.html',
                                   students=student_list,
                                   classes=classes,
                                   statuses=[s.value for s in StudentStatusEnum],
                                   current_filters={'search': search_query, 'class': class_level, 'status': status},
                                   pagination=pagination)
        except Exception as e:
            logger.error(f"Students list error: {e}")
            flash('Error loading students', 'error')
            return render_template('students/list.html', students=[], classes=[],
                                   statuses=[s.value for s in StudentStatusEnum],
                                   current_filters={}, pagination={'total': 0})
        finally:
            session_db.close()

    @admin_bp.route('/students/<int:student_id>')
    @require_admin_auth
    def view_student(student_id):
        """Student details with the last 12 payments"""
        session_db = get_session()
        try:
            student = session_db.query(Student).filter_by(id=student_id).first()
            if not student:
                flash('Student not found', 'error')
                return redirect(url_for('admin.students'))

            return render_template('students/detail.html',
                                   student=student,
                                   payments=get_recent_payments(session_db, limit=12, student_id=student_id))
        except Exception as e:
            logger.error(f"Student details error for {student_id}: {e}")
            flash('Error loading student details', 'error')
            return redirect(url_for('admin.students'))
        finally:
            session_db.close()

    @admin_bp.route('/students/add', methods=['GET', 'POST'])
    @require_admin_auth
    def add_student():
        """Add a new student"""
        session_db = get_session()
        try:
            class_levels = session_db.query(ClassLevel).order_by(ClassLevel.order_index, ClassLevel.name).all()

            if request.method == 'POST':
                try:
                    data = StudentValidator.validate_all_student_data(
                        request.form,
                        default_fee=_default_fee_for_class(session_db, request.form.get('class_level', '').strip())
                    )
                    if _roll_number_taken(session_db, data['academic_year'], data['roll_number']):
                        raise ValidationError('Roll Number', f"is already used in {data['academic_year']}")

                    student = Student(
                        full_name=data['full_name'],
                        father_name=data['father_name'],
                        mother_name=data['mother_name'],
                        phone=data['phone'],
                        email=data['email'],
                        address=data['address'],
                        date_of_birth=data['date_of_birth'],
                        admission_date=data['admission_date'],
                        class_level=data['class_level'],
                        academic_year=data['academic_year'],
                        roll_number=data['roll_number'],
                        status=StudentStatusEnum(data['status']),
                        monthly_fee_amount=data['monthly_fee_amount'],
                    )
                    session_db.add(student)
                    session_db.commit()

                    logger.info(f"Student added: {student.full_name} (roll {student.roll_number})")
                    flash(f'Student {student.full_name} added successfully', 'success')
                    return redirect(url_for('admin.view_student', student_id=student.id))

                except ValidationError as e:
                    session_db.rollback()
                    flash(format_validation_error(e), 'error')
                except IntegrityError:
                    session_db.rollback()
                    flash('Roll number is already used for this academic year', 'error')

            academic_year = request.form.get('academic_year') or _current_academic_year(session_db)
            return render_template('students/form.html',
                                   student=None,
                                   form=request.form,
                                   class_levels=class_levels,
                                   academic_year=academic_year,
                                   next_roll_number=_next_roll_number(session_db, academic_year),
                                   statuses=[s.value for s in StudentStatusEnum])
        except Exception as e:
            session_db.rollback()
            logger.error(f"Add student error: {e}")
            flash(f'Error adding student: {str(e)}', 'error')
            return redirect(url_for('admin.students'))
        finally:
            session_db.close()

    @admin_bp.route('/students/<int:student_id>/edit', methods=['GET', 'POST'])
    @require_admin_auth
    def edit_student(student_id):
        """Edit an existing student"""
        session_db = get_session()
        try:
            student = session_db.query(Student).filter_by(id=student_id).first()
            if not student:
                flash('Student not found', 'error')
                return redirect(url_for('admin.students'))

            if request.method == 'POST':
                try:
                    data = StudentValidator.validate_all_student_data(request.form)
                    if _roll_number_taken(session_db, data['academic_year'], data['roll_number'], exclude_id=student.id):
                        raise ValidationError('Roll Number', f"is already used in {data['academic_year']}")

                    for key, value in data.items():
                        if key == 'status':
                            value = StudentStatusEnum(value)
                        setattr(student, key, value)
                    session_db.commit()

                    logger.info(f"Student updated: {student.full_name} (id {student.id})")
                    flash('Student updated successfully', 'success')
                    return redirect(url_for('admin.view_student', student_id=student.id))

                except ValidationError as e:
                    session_db.rollback()
                    flash(format_validation_error(e), 'error')

            class_levels = session_db.query(ClassLevel).order_by(ClassLevel.order_index, ClassLevel.name).all()
            return render_template('students/form.html',
                                   student=student,
                                   form=request.form,
                                   class_levels=class_levels,
                                   academic_year=student.academic_year,
                                   next_roll_number=student.roll_number,
                                   statuses=[s.value for s in StudentStatusEnum])
        except Exception as e:
            session_db.rollback()
            logger.error(f"Edit student error for {student_id}: {e}")
            flash(f'Error updating student: {str(e)}', 'error')
            return redirect(url_for('admin.students'))
        finally:
            session_db.close()

    @admin_bp.route('/students/<int:student_id>/change-status', methods=['POST'])
    @require_admin_auth
    def change_student_status(student_id):
        """Mark a student active, left or completed"""
        session_db = get_session()
        try:
            student = session_db.query(Student).filter_by(id=student_id).first()
            if not student:
                return jsonify({'success': False, 'message': 'Student not found'}), 404

            payload = request.get_json(silent=True) or {}
            new_status = (request.form.get('new_status') or payload.get('new_status') or '').lower()
            try:
                student.status = StudentStatusEnum(new_status)
            except ValueError:
                valid = ', '.join(s.value for s in StudentStatusEnum)
                return jsonify({'success': False, 'message': f'Invalid status. Must be one of: {valid}'}), 400

            session_db.commit()
            logger.info(f"Student {student.id} status changed to {new_status}")
            return jsonify({
                'success': True,
                'message': f'Student "{student.full_name}" is now {student.status_label}.'
            })
        except Exception as e:
            session_db.rollback()
            logger.error(f"Change student status error: {e}")
            return jsonify({'success': False, 'message': str(e)}), 500
        finally:
            session_db.close()

    @admin_bp.route('/students/<int:student_id>/delete', methods=['POST'])
    @require_admin_auth
    def delete_student(student_id):
        """Delete a student with no payment history"""
        session_db = get_session()
        try:
            student = session_db.query(Student).filter_by(id=student_id).first()
            if not student:
                abort(404)

            payment_count = session_db.query(FeePayment).filter_by(student_id=student_id).count()
            if payment_count:
                flash(
                    f'{student.full_name} has {payment_count} fee record(s) and cannot be deleted. '
                    'Mark the student as left instead.',
                    'error'
                )
                return redirect(url_for('admin.view_student', student_id=student_id))

            name = student.full_name
            session_db.delete(student)
            session_db.commit()
            logger.info(f"Student deleted: {name} (id {student_id})")
            flash(f'Student {name} deleted', 'success')
            return redirect(url_for('admin.students'))
        finally:
            session_db.close()

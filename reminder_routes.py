"""
Fee Reminder Routes
"""

from flask import render_template, request, redirect, url_for, flash, current_app, jsonify
from datetime import date
import logging

from database import get_session
from fee_helpers import get_pending_dues
from fee_models import ReminderFrequencyEnum
from reminder_helpers import (
    get_reminder_settings, save_reminder_settings, send_reminders, get_reminder_history,
    get_last_reminders, render_reminder_message, whatsapp_link
)
from validators import ValidationError, format_validation_error

logger = logging.getLogger(__name__)


def register_reminder_routes(admin_bp, require_admin_auth):
    """Register reminder routes to the admin blueprint"""

    @admin_bp.route('/reminders')
    @require_admin_auth
    def reminders():
        """Students with dues, reminder history and reminder settings"""
        session_db = get_session()
        try:
            report = get_pending_dues(session_db)
            settings = get_reminder_settings(session_db)
            last_reminders = get_last_reminders(session_db)
            institute = current_app.config.get('INSTITUTE_NAME', 'Madrasa')
            currency = current_app.config.get('CURRENCY_SYMBOL', '₹')

            rows = []
            for dues in report.students:
                last = last_reminders.get(dues.student.id)
                message = render_reminder_message(settings.reminder_message_template, dues.student,
                                                  dues.total_pending, institute, currency)
                rows.append({
                    'dues': dues,
                    'last_reminder': last,
                    'days_since': (date.today() - last.sent_at.date()).days if last else None,
                    'whatsapp_link': whatsapp_link(dues.student.phone, message),
                })

            return render_template('reminders/index.html',
                                   rows=rows,
                                   history=get_reminder_history(session_db),
                                   settings=settings,
                                   frequencies=[f.value for f in ReminderFrequencyEnum])
        except Exception as e:
            logger.error(f"Error loading reminders: {e}")
            flash('Error loading reminders', 'error')
            return redirect(url_for('admin.dashboard'))
        finally:
            session_db.close()

    @admin_bp.route('/reminders/send', methods=['POST'])
    @require_admin_auth
    def send_fee_reminders():
        """Log reminders for the selected students"""
        payload = request.get_json(silent=True)
        if payload is not None:
            student_ids = payload.get('student_ids', [])
            reminder_type = payload.get('reminder_type', 'whatsapp')
            custom_message = payload.get('custom_message')
        else:
            student_ids = request.form.getlist('student_ids')
            reminder_type = request.form.get('reminder_type', 'whatsapp')
            custom_message = request.form.get('custom_message')

        try:
            student_ids = [int(i) for i in student_ids]
        except (TypeError, ValueError):
            student_ids = []

        if not student_ids:
            if payload is not None:
                return jsonify({'success': False, 'message': 'Select at least one student'}), 400
            flash('Select at least one student', 'error')
            return redirect(url_for('admin.reminders'))

        session_db = get_session()
        try:
            sent = send_reminders(
                session_db, student_ids, reminder_type,
                custom_message=(custom_message or '').strip() or None,
                institute_name=current_app.config.get('INSTITUTE_NAME', 'Madrasa'),
                currency_symbol=current_app.config.get('CURRENCY_SYMBOL', '₹'),
            )
            message = f'Successfully sent {len(sent)} reminder(s)!'
            if payload is not None:
                return jsonify({'success': True, 'count': len(sent), 'message': message})
            flash(message, 'success')
        except ValidationError as e:
            session_db.rollback()
            if payload is not None:
                return jsonify({'success': False, 'message': format_validation_error(e)}), 400
            flash(format_validation_error(e), 'error')
        except Exception as e:
            session_db.rollback()
            logger.error(f"Error sending reminders: {e}")
            if payload is not None:
                return jsonify({'success': False, 'message': 'Failed to send reminders'}), 500
            flash('Failed to send reminders. Please try again.', 'error')
        finally:
            session_db.close()
        return redirect(url_for('admin.reminders'))

    @admin_bp.route('/reminders/settings', methods=['POST'])
    @require_admin_auth
    def update_reminder_settings():
        session_db = get_session()
        try:
            save_reminder_settings(session_db, request.form)
            flash('Settings saved successfully!', 'success')
        except ValidationError as e:
            session_db.rollback()
            flash(format_validation_error(e), 'error')
        except Exception as e:
            session_db.rollback()
            logger.error(f"Error saving reminder settings: {e}")
            flash('Failed to save settings.', 'error')
        finally:
            session_db.close()
        return redirect(url_for('admin.reminders'))

"""
Fee Management Routes for the Admin Console
Monthly register, payment recording, pending dues, receipts and fee APIs
"""

from flask import request, jsonify, render_template, redirect, url_for, flash, send_file, abort, Response, current_app
from datetime import date
import io
import logging

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from database import get_session
from fee_helpers import (
    record_payment, get_monthly_register, export_register_csv, get_pending_dues,
    get_student_fee_summary, get_class_levels_in_use, get_recent_payments
)
from fee_ledger import MONTHS, LedgerIntegrityError, current_month_name
from fee_models import FeePayment, PAYMENT_STATUS_LABELS, PAYMENT_MODE_LABELS
from models import Student, StudentStatusEnum
from reminder_helpers import get_last_reminders
from validators import ValidationError, format_validation_error

logger = logging.getLogger(__name__)


def _period_from_args(args):
    """Month and year from the query string, defaulting to the current month"""
    today = date.today()
    month_name = args.get('month') or current_month_name(today)
    if month_name not in MONTHS:
        month_name = current_month_name(today)
    year = args.get('year', type=int) or today.year
    return month_name, year


def create_fee_routes(admin_blueprint, require_admin_auth):
    """Add fee management routes to admin blueprint"""

    # ===== MONTHLY REGISTER =====

    @admin_blueprint.route('/fees/register')
    @require_admin_auth
    def fee_register():
        """Monthly fee register for the active roster"""
        month_name, year = _period_from_args(request.args)
        search = request.args.get('search', '').strip()
        class_level = request.args.get('class', '').strip()
        status = request.args.get('status', 'all').strip()

        session = get_session()
        try:
            register = get_monthly_register(session, month_name, year, search, class_level, status)
            for warning in register['warnings']:
                flash(warning, 'warning')
            return render_template(
                'fees/register.html',
                register=register,
                months=MONTHS,
                classes=get_class_levels_in_use(session),
                filters={'search': search, 'class': class_level, 'status': status},
                status_labels=PAYMENT_STATUS_LABELS,
            )
        except Exception as e:
            logger.error(f"Error loading fee register for {month_name} {year}: {e}")
            flash('Error loading fee register', 'error')
            return redirect(url_for('admin.dashboard'))
        finally:
            session.close()

    @admin_blueprint.route('/fees/register.csv')
    @require_admin_auth
    def export_fee_register():
        """Download the (filtered) monthly register as CSV"""
        month_name, year = _period_from_args(request.args)
        session = get_session()
        try:
            csv_text = export_register_csv(
                session, month_name, year,
                search=request.args.get('search', ''),
                class_level=request.args.get('class', ''),
                status=request.args.get('status', 'all'),
            )
            logger.info(f"Exported fee register for {month_name} {year}")
            return Response(
                csv_text,
                mimetype='text/csv',
                headers={'Content-Disposition': f'attachment; filename=fee_register_{month_name}_{year}.csv'}
            )
        except Exception as e:
            logger.error(f"Error exporting fee register: {e}")
            flash('Error exporting fee register', 'error')
            return redirect(url_for('admin.fee_register', month=month_name, year=year))
        finally:
            session.close()

    # ===== RECORD PAYMENT =====

    @admin_blueprint.route('/fees/record', methods=['GET', 'POST'])
    @require_admin_auth
    def record_fee_payment():
        """Record or update the payment for one student and month"""
        session = get_session()
        try:
            if request.method == 'POST':
                try:
                    payment, created = record_payment(session, request.form)
                    flash('Payment recorded successfully' if created else 'Payment updated successfully', 'success')
                    return redirect(url_for('admin.fee_register', month=payment.month_name, year=payment.year))
                except ValidationError as e:
                    session.rollback()
                    flash(format_validation_error(e), 'error')
                except LedgerIntegrityError as e:
                    session.rollback()
                    logger.warning(f"Rejected payment: {e.message}")
                    flash(e.message, 'error')

            month_name, year = _period_from_args(request.args)
            students = session.query(Student).filter(
                Student.status == StudentStatusEnum.ACTIVE
            ).order_by(Student.roll_number).all()
            selected = None
            student_id = request.values.get('student_id', type=int)
            if student_id:
                selected = session.query(Student).filter_by(id=student_id).first()

            return render_template(
                'fees/record_payment.html',
                students=students,
                selected=selected,
                form=request.form,
                month_name=request.form.get('month_name', month_name),
                year=request.form.get('year', year),
                months=MONTHS,
                payment_modes=PAYMENT_MODE_LABELS,
            )
        except Exception as e:
            session.rollback()
            logger.error(f"Error recording payment: {e}")
            flash(f'Error recording payment: {str(e)}', 'error')
            return redirect(url_for('admin.fee_register'))
        finally:
            session.close()

    # ===== PENDING DUES =====

    @admin_blueprint.route('/fees/pending-dues')
    @require_admin_auth
    def pending_dues():
        """Students with open dues, highest total first"""
        class_level = request.args.get('class', '').strip() or None
        session = get_session()
        try:
            report = get_pending_dues(session, class_level=class_level)
            for warning in report.warnings:
                flash(warning, 'warning')
            return render_template(
                'fees/pending_dues.html',
                report=report,
                classes=get_class_levels_in_use(session),
                class_filter=class_level or 'all',
                last_reminders=get_last_reminders(session),
            )
        except Exception as e:
            logger.error(f"Error loading pending dues: {e}")
            flash('Error loading pending dues', 'error')
            return redirect(url_for('admin.dashboard'))
        finally:
            session.close()

    # ===== STUDENT FEES =====

    @admin_blueprint.route('/students/<int:student_id>/fees')
    @require_admin_auth
    def student_fees(student_id):
        """Twelve-month fee grid for one student"""
        year = request.args.get('year', type=int) or date.today().year
        session = get_session()
        try:
            try:
                summary = get_student_fee_summary(session, student_id, year)
            except LedgerIntegrityError as e:
                logger.warning(e.message)
                flash(e.message, 'error')
                return redirect(url_for('admin.view_student', student_id=student_id))
            if summary is None:
                abort(404)
            return render_template(
                'fees/student_fees.html',
                summary=summary,
                student=session.query(Student).filter_by(id=student_id).first(),
                payments=get_recent_payments(session, limit=24, student_id=student_id),
                status_labels=PAYMENT_STATUS_LABELS,
                months=MONTHS,
            )
        finally:
            session.close()

    # ===== RECEIPT =====

    @admin_blueprint.route('/fees/payments/<int:payment_id>/receipt.pdf')
    @require_admin_auth
    def payment_receipt(payment_id):
        """Printable receipt PDF for a recorded payment"""
        session = get_session()
        try:
            payment = session.query(FeePayment).filter_by(id=payment_id).first()
            if not payment:
                abort(404)

            institute = current_app.config.get('INSTITUTE_NAME', 'Madrasa')
            buffer = io.BytesIO()
            p = canvas.Canvas(buffer, pagesize=A4)
            width, height = A4

            # Header
            p.setFont("Helvetica-Bold", 20)
            p.drawCentredString(width/2, height - 50, institute)
            p.setFont("Helvetica", 12)
            address = current_app.config.get('INSTITUTE_ADDRESS')
            if address:
                p.drawCentredString(width/2, height - 68, address)
            p.drawCentredString(width/2, height - 86, "Fee Receipt")

            y = height - 130
            p.setFont("Helvetica-Bold", 12)
            p.drawString(50, y, f"Receipt No: FP-{payment.year}-{payment.id:05d}")
            if payment.payment_date:
                p.drawRightString(width - 50, y, f"Date: {payment.payment_date.strftime('%d-%b-%Y')}")

            y -= 30
            p.setFont("Helvetica", 11)
            student = payment.student
            p.drawString(50, y, f"Student Name: {student.full_name}")
            p.drawString(330, y, f"Roll No: {student.roll_number}")
            y -= 20
            p.drawString(50, y, f"Father's Name: {student.father_name}")
            p.drawString(330, y, f"Class: {student.class_level}")

            y -= 40
            p.setFont("Helvetica-Bold", 11)
            p.drawString(50, y, "Payment Details:")
            y -= 25
            p.setFont("Helvetica", 11)

            paid = payment.amount if payment.payment_status.value == 'paid' else (payment.partial_amount or 0)
            details = [
                ("Fee Period:", f"{payment.month_name} {payment.year} ({payment.fee_type.value})"),
                ("Fee Amount:", f"Rs. {payment.amount:,.2f}"),
                ("Amount Paid:", f"Rs. {paid:,.2f}"),
                ("Balance:", f"Rs. {payment.amount - paid:,.2f}"),
                ("Status:", payment.status_label),
                ("Payment Mode:", payment.mode_label),
            ]
            if payment.remarks:
                details.append(("Remarks:", payment.remarks))

            for label, value in details:
                p.drawString(70, y, label)
                p.drawString(250, y, str(value))
                y -= 20

            p.drawCentredString(width/2, 50, "This is a computer-generated receipt")
            p.showPage()
            p.save()

            buffer.seek(0)
            return send_file(buffer, as_attachment=True, download_name=f"receipt_{payment.id}.pdf", mimetype='application/pdf')
        finally:
            session.close()

    # ===== API ENDPOINTS =====

    @admin_blueprint.route('/api/fees/register')
    @require_admin_auth
    def api_fee_register():
        """Monthly register as JSON"""
        month_name, year = _period_from_args(request.args)
        session = get_session()
        try:
            register = get_monthly_register(
                session, month_name, year,
                search=request.args.get('search', ''),
                class_level=request.args.get('class', ''),
                status=request.args.get('status', 'all'),
            )
            result = register['result']
            return jsonify({
                'success': True,
                'month_name': month_name,
                'year': year,
                'entries': [e.to_dict() for e in register['entries']],
                'totals': register['totals'].to_dict(),
                'roster_totals': result.totals.to_dict(),
                'unmatched_totals': result.unmatched_totals.to_dict(),
                'warnings': register['warnings'],
            })
        except Exception as e:
            logger.error(f"Error loading fee register API: {e}")
            return jsonify({'success': False, 'message': 'Could not load fee register'}), 500
        finally:
            session.close()

    @admin_blueprint.route('/api/fees/pending-dues')
    @require_admin_auth
    def api_pending_dues():
        """Pending dues rollup as JSON"""
        session = get_session()
        try:
            report = get_pending_dues(session, class_level=request.args.get('class') or None)
            return jsonify({
                'success': True,
                'students': [d.to_dict() for d in report.students],
                'total_pending': float(report.total_pending),
                'warnings': report.warnings,
            })
        except Exception as e:
            logger.error(f"Error loading pending dues API: {e}")
            return jsonify({'success': False, 'message': 'Could not load pending dues'}), 500
        finally:
            session.close()


# Export function to be called from admin blueprint
def register_fee_routes(admin_blueprint, require_admin_auth):
    """Register all fee management routes with admin blueprint"""
    create_fee_routes(admin_blueprint, require_admin_auth)

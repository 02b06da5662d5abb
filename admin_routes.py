"""
Admin Routes
Admin authentication, the dashboard, and registration of the feature routes
"""

from flask import Blueprint, render_template, request, redirect, url_for, flash, jsonify
from flask_login import login_user, logout_user, login_required, current_user
from functools import wraps
import logging

from database import get_session
from fee_helpers import get_dashboard_stats, get_recent_payments
from models import User

logger = logging.getLogger(__name__)


def create_admin_blueprint():
    """Create admin blueprint for the madrasa administration console"""

    admin_bp = Blueprint('admin', __name__)

    def require_admin_auth(f):
        """Decorator to require an authenticated admin"""
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                if '/api/' in request.path:
                    return jsonify({'success': False, 'message': 'Authentication required'}), 401
                return redirect(url_for('admin.login', next=request.path))
            return f(*args, **kwargs)
        return decorated_function

    @admin_bp.route('/login', methods=['GET', 'POST'])
    def login():
        """Admin login"""
        if current_user.is_authenticated:
            return redirect(url_for('admin.dashboard'))

        if request.method == 'POST':
            username = request.form.get('username', '').strip()
            password = request.form.get('password', '')

            if not username or not password:
                flash('Please enter both username and password', 'error')
                return render_template('admin/login.html')

            session_db = get_session()
            try:
                user = session_db.query(User).filter_by(username=username).first()

                if user and user.is_active and user.check_password(password):
                    login_user(user, remember=True)
                    logger.info(f"Admin {username} logged in")
                    flash(f'Welcome back, {user.full_name or user.username}!', 'success')
                    next_url = request.args.get('next')
                    if next_url and next_url.startswith('/admin'):
                        return redirect(next_url)
                    return redirect(url_for('admin.dashboard'))

                logger.warning(f"Failed login attempt for {username}")
                flash('Invalid username or password', 'error')
            except Exception as e:
                logger.error(f"Login error: {e}")
                flash('Login error occurred', 'error')
            finally:
                session_db.close()

        return render_template('admin/login.html')

    @admin_bp.route('/logout')
    @login_required
    def logout():
        """Logout admin"""
        logout_user()
        flash('You have been logged out successfully', 'info')
        return redirect(url_for('admin.login'))

    @admin_bp.route('/')
    @require_admin_auth
    def dashboard():
        """Dashboard with fee collection figures"""
        session_db = get_session()
        try:
            stats = get_dashboard_stats(session_db)
            for warning in stats['warnings']:
                flash(warning, 'warning')
            return render_template(
                'admin/dashboard.html',
                stats=stats,
                recent_payments=get_recent_payments(session_db, limit=5)
            )
        except Exception as e:
            logger.error(f"Error loading dashboard: {e}")
            flash('Error loading dashboard data', 'error')
            return render_template('admin/dashboard.html', stats=None, recent_payments=[])
        finally:
            session_db.close()

    @admin_bp.route('/api/dashboard')
    @require_admin_auth
    def api_dashboard():
        session_db = get_session()
        try:
            stats = get_dashboard_stats(session_db)
            return jsonify({
                'success': True,
                'month_name': stats['month_name'],
                'year': stats['year'],
                'total_students': stats['total_students'],
                'active_students': stats['active_students'],
                'total_collected': float(stats['total_collected']),
                'total_pending': float(stats['total_pending']),
                'pending_recorded': float(stats['pending_recorded']),
                'not_recorded_this_month': float(stats['not_recorded_this_month']),
                'this_month_collection': float(stats['this_month_collection']),
                'students_with_dues': stats['students_with_dues'],
                'unmatched': stats['unmatched_totals'].to_dict(),
                'top_dues': [d.to_dict() for d in stats['top_dues']],
                'warnings': stats['warnings'],
            })
        except Exception as e:
            logger.error(f"Error loading dashboard API: {e}")
            return jsonify({'success': False, 'message': 'Could not load dashboard data'}), 500
        finally:
            session_db.close()

    # Feature routes
    from fee_routes import register_fee_routes
    register_fee_routes(admin_bp, require_admin_auth)

    from student_routes import register_student_routes
    register_student_routes(admin_bp, require_admin_auth)

    from staff_routes import register_staff_routes
    register_staff_routes(admin_bp, require_admin_auth)

    from notice_routes import register_notice_routes
    register_notice_routes(admin_bp, require_admin_auth)

    from reminder_routes import register_reminder_routes
    register_reminder_routes(admin_bp, require_admin_auth)

    from settings_routes import register_settings_routes
    register_settings_routes(admin_bp, require_admin_auth)

    return admin_bp

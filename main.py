# main.py
"""
Madrasa Fee Management System
Admin console for students, staff, fees, reminders and notices
"""

import logging
from decimal import Decimal
from flask import Flask, render_template
from flask_login import LoginManager

# --- local modules ---
from config import config
from database import get_session, init_database
from models import User
from cli_commands import register_cli_commands
from fee_helpers import format_currency
from fee_models import PAYMENT_STATUS_LABELS


def create_app(config_name: str = 'default') -> Flask:
    """Create the Flask application"""
    app = Flask(__name__, template_folder="templates")
    config_class = config[config_name]
    app.config.from_object(config_class)

    # Logging
    logging.basicConfig(
        level=getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    logger = logging.getLogger(__name__)

    # DB init
    init_database(config_class().get_database_uri(), app.config.get('SQLALCHEMY_ENGINE_OPTIONS'))
    from init_db import run_on_startup
    if not run_on_startup(create_admin=not app.config.get('TESTING', False)):
        logger.warning("Application will continue with existing database state")

    # Flask-Login
    login_manager = LoginManager()
    login_manager.init_app(app)
    login_manager.login_view = "admin.login"

    @login_manager.user_loader
    def load_user(user_id: str):
        s = get_session()
        try:
            return s.query(User).filter_by(id=int(user_id), is_active=True).first()
        except (TypeError, ValueError):
            return None
        finally:
            s.close()

    # Templates
    @app.template_filter('currency')
    def currency_filter(amount):
        return format_currency(amount or Decimal('0'), app.config.get('CURRENCY_SYMBOL', '₹'))

    @app.context_processor
    def inject_institute():
        return {
            'institute_name': app.config.get('INSTITUTE_NAME'),
            'status_labels': PAYMENT_STATUS_LABELS,
        }

    # CLI
    register_cli_commands(app)

    # Blueprints
    from admin_routes import create_admin_blueprint
    app.register_blueprint(create_admin_blueprint(), url_prefix="/admin")
    logger.info("Admin blueprint registered")

    from notice_routes import create_public_blueprint
    app.register_blueprint(create_public_blueprint())
    logger.info("Public blueprint registered")

    @app.errorhandler(404)
    def not_found(_):
        return render_template('errors/404.html'), 404

    @app.errorhandler(500)
    def internal_error(e):
        logger.error(f"Internal error: {e}")
        return render_template('errors/500.html'), 500

    return app


# Passenger needs this at module level
app = create_app()

if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=5000)

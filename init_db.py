"""
Database Initialization and Integrity Checker
Runs on every startup to ensure all tables exist and singleton rows are seeded
"""

import sys
import logging
from datetime import datetime
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError
from sqlalchemy.schema import sort_tables

from database import get_engine, get_session

# Import all models to register them with Base.metadata
from models import Base, User, Student, ClassLevel, AcademicYear  # noqa: F401
from fee_models import FeePayment, FeeReminder, ReminderSettings, DEFAULT_REMINDER_TEMPLATE, ReminderFrequencyEnum  # noqa: F401
from staff_models import Staff  # noqa: F401
from notice_models import Notice  # noqa: F401

logger = logging.getLogger(__name__)


def get_existing_tables(engine):
    """Get list of existing tables in database"""
    return set(inspect(engine).get_table_names())


def get_expected_tables():
    """Get list of all expected tables from models"""
    return set(Base.metadata.tables.keys())


def create_missing_tables(engine, existing_tables, expected_tables):
    """Create any missing tables in dependency order"""
    missing_tables = expected_tables - existing_tables
    if not missing_tables:
        logger.debug("All tables exist")
        return []

    created = []
    for table in sort_tables([Base.metadata.tables[name] for name in missing_tables]):
        try:
            table.create(engine, checkfirst=True)
            created.append(table.name)
        except OperationalError as e:
            error_msg = str(e).lower()
            if 'already exists' in error_msg or 'duplicate key' in error_msg:
                logger.info(f"{table.name}: already exists (skipped duplicate indexes)")
                continue
            raise

    logger.info(f"Created {len(created)} tables: {', '.join(created)}")
    return created


def seed_reminder_settings(session):
    """Create the single reminder settings row if it is missing"""
    if session.query(ReminderSettings).count():
        return False
    session.add(ReminderSettings(
        reminder_frequency=ReminderFrequencyEnum.WEEKLY,
        reminder_day=1,
        sms_enabled=False,
        whatsapp_enabled=True,
        reminder_message_template=DEFAULT_REMINDER_TEMPLATE,
    ))
    session.commit()
    logger.info("Seeded default reminder settings")
    return True


def create_default_admin_user(session):
    """Create default admin user if no users exist"""
    if session.query(User).count():
        return False

    admin = User(username='admin', email='admin@madrasa.local', full_name='Administrator', is_active=True)
    admin.set_password('admin123')  # Change this in production!
    session.add(admin)
    session.commit()

    logger.warning("Created default admin user 'admin' with password 'admin123'; change it immediately")
    return True


def initialize_database(verbose=True, create_admin=True):
    """
    Create missing tables and seed singleton rows
    Returns: (success: bool, created_tables: list)
    """
    if verbose:
        print("\n" + "="*60)
        print("DATABASE INITIALIZATION & INTEGRITY CHECK")
        print("="*60)
        print(f"Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    try:
        engine = get_engine()
        if verbose:
            print(f"\nDatabase URL: {engine.url.render_as_string(hide_password=True)}")

        existing_tables = get_existing_tables(engine)
        expected_tables = get_expected_tables()
        created_tables = create_missing_tables(engine, existing_tables, expected_tables)

        session = get_session()
        try:
            seed_reminder_settings(session)
            if create_admin:
                create_default_admin_user(session)
        finally:
            session.close()

        if verbose:
            print(f"\nExisting tables: {len(existing_tables)}")
            print(f"Expected tables: {len(expected_tables)}")
            if created_tables:
                print(f"[OK] Created {len(created_tables)} tables")
            else:
                print("[OK] Database integrity verified - all tables exist")
            print("="*60 + "\n")

        return True, created_tables

    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        return False, []


def run_on_startup(verbose=False, create_admin=True):
    """Wrapper function to run on application startup"""
    success, _ = initialize_database(verbose=verbose, create_admin=create_admin)
    if not success:
        logger.warning("Database initialization failed! The application may not work correctly.")
    return success


if __name__ == '__main__':
    sys.exit(0 if run_on_startup(verbose=True) else 1)

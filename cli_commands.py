"""
Flask CLI commands for the madrasa fee management system
"""

import click
from flask import Flask
import logging

from database import get_session
from fee_helpers import export_register_csv, get_pending_dues, format_currency
from fee_ledger import MONTHS, current_month_name
from init_db import initialize_database
from models import User
from reminder_helpers import send_reminders, days_since_last_reminder

logger = logging.getLogger(__name__)


def register_cli_commands(app: Flask):
    """Register CLI commands with the Flask app"""

    @app.cli.command("setup-db")
    def setup_db_command():
        """Create tables and the default admin user"""
        click.echo("🚀 Setting up database...")
        success, created = initialize_database(verbose=True)
        if success:
            click.echo("✅ Database setup completed successfully!")
        else:
            click.echo("❌ Database setup failed!")

    @app.cli.command("create-admin")
    @click.option("--username", required=True, help="Admin username")
    @click.option("--email", required=True, help="Admin email")
    @click.option("--password", required=True, help="Admin password")
    @click.option("--full-name", default="", help="Full name")
    def create_admin_command(username, email, password, full_name):
        """Create an admin user"""
        session = get_session()
        try:
            existing = session.query(User).filter_by(username=username).first()
            if existing:
                click.echo(f"❌ Username '{username}' already exists")
                return

            admin = User(username=username, email=email, full_name=full_name or username, is_active=True)
            admin.set_password(password)
            session.add(admin)
            session.commit()

            click.echo(f"✅ Admin created: {username}")
            click.echo("   Login URL: /admin/login")
        except Exception as e:
            session.rollback()
            click.echo(f"❌ Failed to create admin: {e}")
        finally:
            session.close()

    @app.cli.command("list-admins")
    def list_admins_command():
        """List admin users"""
        session = get_session()
        try:
            users = session.query(User).order_by(User.username).all()
            if not users:
                click.echo("📭 No admins found")
                return

            click.echo("👥 Admins:")
            click.echo("-" * 60)
            for user in users:
                click.echo(f"  {user.username} ({user.full_name})")
                click.echo(f"    Email: {user.email}")
                click.echo(f"    Status: {'Active' if user.is_active else 'Inactive'}")
                click.echo("-" * 60)
        finally:
            session.close()

    @app.cli.command("export-register")
    @click.option("--month", type=click.Choice(MONTHS), default=None, help="Month name (default: current month)")
    @click.option("--year", type=int, default=None, help="Year (default: current year)")
    @click.option("--class", "class_level", default="", help="Only this class")
    @click.option("--output", "-o", type=click.Path(dir_okay=False, writable=True), default=None,
                  help="File to write (default: fee_register_<month>_<year>.csv)")
    def export_register_command(month, year, class_level, output):
        """Write the monthly fee register to a CSV file"""
        from datetime import date
        today = date.today()
        month = month or current_month_name(today)
        year = year or today.year
        output = output or f"fee_register_{month}_{year}.csv"

        session = get_session()
        try:
            csv_text = export_register_csv(session, month, year, class_level=class_level)
            with open(output, 'w', encoding='utf-8', newline='') as f:
                f.write(csv_text)
            click.echo(f"✅ Register for {month} {year} written to {output}")
        finally:
            session.close()

    @app.cli.command("send-fee-reminders")
    @click.option("--type", "reminder_type", type=click.Choice(['sms', 'whatsapp', 'manual', 'both']),
                  default='whatsapp', help="Reminder channel")
    @click.option("--min-days", type=int, default=0,
                  help="Skip students reminded within this many days")
    @click.option("--dry-run", is_flag=True, help="List who would be reminded without logging anything")
    def send_fee_reminders_command(reminder_type, min_days, dry_run):
        """Log reminders for every active student with pending dues"""
        session = get_session()
        try:
            report = get_pending_dues(session)
            selected = []
            for dues in report.students:
                days = days_since_last_reminder(session, dues.student.id)
                if min_days and days is not None and days < min_days:
                    continue
                selected.append(dues)

            if not selected:
                click.echo("📭 No students to remind")
                return

            symbol = app.config.get('CURRENCY_SYMBOL', '₹')
            for dues in selected:
                click.echo(f"  {dues.student.roll_number:>4}  {dues.student.full_name:<30} "
                           f"{format_currency(dues.total_pending, symbol)}")
            if dry_run:
                click.echo(f"🔎 {len(selected)} student(s) would be reminded")
                return

            sent = send_reminders(
                session, [d.student.id for d in selected], reminder_type,
                institute_name=app.config.get('INSTITUTE_NAME', 'Madrasa'),
                currency_symbol=symbol,
            )
            click.echo(f"✅ Logged {len(sent)} reminder(s)")
        except Exception as e:
            session.rollback()
            click.echo(f"❌ Failed to send reminders: {e}")
        finally:
            session.close()

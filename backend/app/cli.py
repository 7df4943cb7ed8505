# Overview: Flask CLI command groups for bootstrap, inspection, and admin workflow steps.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-email admin@freightdesk.local]
#   Idempotent bootstrap: creates tables and a default admin account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list [--role admin]
#   List all users with role and active status.
# - python -m flask users create --email ops@freightdesk.local --password "Password123" --role admin
#   Create a user (prompts if options are omitted).
# - python -m flask users set-role ops@freightdesk.local --role admin
# - python -m flask users deactivate someone@example.com
#   Block the account and revoke its sessions.
#
# Quotations (admin price entry):
# - python -m flask quotations list [--status Pending]
# - python -m flask quotations set-options QT-2024-0042 --slot 1 --title "Supplier A" --price 1250 --delivery "15 days"
#
# Payments (admin review):
# - python -m flask payments list [--status PROCESSING] [--limit 20]
# - python -m flask payments review PAY-123456-AB12CD --status COMPLETED

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, Quotation
from .models.auth import VALID_ROLES, ROLE_ADMIN
from .services.auth_service import create_user, set_role, deactivate_user, AuthError
from .services import quotation_service, payment_service, pricing_service
from .services.quotation_service import QuotationError
from .services.payment_service import PaymentError
from .validation import ValidationError, ConflictError, NotFoundError
from .models.quotations import VALID_QUOTATION_STATUSES


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default='admin@freightdesk.local', show_default=True, help='Default admin email')
@click.option('--admin-password', default='Password123', show_default=True, help='Default admin password')
@with_appcontext
def init_system(admin_email, admin_password):
    """
    Create tables (if missing) and a default admin account.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing system...")

    db.create_all()
    click.echo("PASS Tables ready")

    existing = db.session.query(User).filter_by(email=admin_email.strip().lower()).first()
    if existing:
        click.echo(f"PASS Using existing admin: {existing.email} (ID: {existing.id})")
        return

    try:
        user = create_user(email=admin_email, password=admin_password, role=ROLE_ADMIN)
    except AuthError as e:
        click.echo(f"FAIL Failed to create admin: {str(e)}")
        return
    click.echo(f"PASS Created admin: {user.email} (ID: {user.id})")
    click.echo("SECURITY Change the default password before going live")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(VALID_ROLES)), default='customer', show_default=True, help='Role')
@click.option('--full-name', default=None, help='Full name')
@with_appcontext
def create_user_cli(email, password, role, full_name):
    """
    Create a new user.

    Password must be 8+ characters with at least one letter and one digit.
    """
    try:
        profile = {"full_name": full_name} if full_name else None
        user = create_user(email=email, password=password, role=role, profile=profile)
        click.echo(f"PASS Created user: {user.email} with role '{role}' (ID: {user.id})")
        click.echo("SECURITY Password securely hashed with bcrypt")
    except AuthError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('list')
@click.option('--role', type=click.Choice(list(VALID_ROLES)), default=None, help='Filter by role')
@with_appcontext
def list_users(role):
    """List all users with their role."""
    query = db.session.query(User)
    if role:
        query = query.filter_by(role=role)

    users = query.order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Email':<35} {'Name':<25} {'Role':<10} {'Active'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<35} {(user.full_name or '-'):<25} {user.role:<10} {active_str}")

    click.echo("="*90 + "\n")


@users_group.command('set-role')
@click.argument('email')
@click.option('--role', type=click.Choice(list(VALID_ROLES)), required=True, help='New role')
@with_appcontext
def set_role_cli(email, role):
    """Promote a customer to admin or demote an admin."""
    try:
        user = set_role(email, role)
    except AuthError as e:
        click.echo(f"FAIL {str(e)}")
        return
    click.echo(f"PASS {user.email} is now '{user.role}'")


@users_group.command('deactivate')
@click.argument('email')
@with_appcontext
def deactivate_cli(email):
    """Block an account; its open sessions stop working immediately."""
    try:
        user, revoked = deactivate_user(email)
    except AuthError as e:
        click.echo(f"FAIL {str(e)}")
        return
    click.echo(f"PASS Deactivated {user.email} ({revoked} sessions revoked)")


@click.group('quotations')
def quotations_group():
    """Quotation inspection and admin price entry."""


@quotations_group.command('list')
@click.option('--status', type=click.Choice(list(VALID_QUOTATION_STATUSES)), default=None)
@click.option('--limit', type=int, default=50, show_default=True)
@with_appcontext
def list_quotations_cli(status, limit):
    query = db.session.query(Quotation)
    if status:
        query = query.filter_by(status=status)
    quotations = query.order_by(Quotation.created_at.desc()).limit(limit).all()

    if not quotations:
        click.echo("No quotations found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'Code':<14} {'Status':<10} {'Product':<35} {'Qty':<7} {'Options':<8} {'Price'}")
    click.echo("="*100)
    for q in quotations:
        options = pricing_service.resolve_price_options(q)
        price = pricing_service.display_price(q, options) or "-"
        click.echo(f"{q.quotation_id:<14} {q.status:<10} {q.product_name[:35]:<35} {q.quantity:<7} {len(options):<8} {price}")
    click.echo("="*100 + "\n")


@quotations_group.command('set-options')
@click.argument('identifier')
@click.option('--slot', type=click.IntRange(1, 3), required=True, help='Option slot (1-3)')
@click.option('--title', required=True, help='Supplier / model title')
@click.option('--price', required=True, help='Total price, e.g. 1250 or "$1,250.00"')
@click.option('--delivery', 'delivery_time', default=None, help='Delivery time, e.g. "15 days"')
@click.option('--description', default=None)
@click.option('--image', default=None, help='Option image URL or filename')
@with_appcontext
def set_options_cli(identifier, slot, title, price, delivery_time, description, image):
    """Enter one supplier price option on a quotation (by UUID or QT code)."""
    payload = {
        f"title_option{slot}": title,
        f"total_price_option{slot}": price,
    }
    if delivery_time is not None:
        payload[f"delivery_time_option{slot}"] = delivery_time
    if description is not None:
        payload[f"description_option{slot}"] = description
    if image is not None:
        payload[f"image_option{slot}"] = image

    try:
        quotation = quotation_service.set_price_options(identifier, payload)
    except (ValidationError, ConflictError, NotFoundError, QuotationError) as e:
        click.echo(f"FAIL {str(e)}")
        return

    option = pricing_service.find_option(pricing_service.resolve_price_options(quotation), slot)
    click.echo(f"PASS {quotation.quotation_id} option {slot}: {option.supplier} {option.price}")


@click.group('payments')
def payments_group():
    """Payment inspection and admin review."""


@payments_group.command('list')
@click.option('--status', default=None, help='PENDING, PROCESSING, COMPLETED, FAILED or REJECTED')
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def list_payments_cli(status, limit):
    try:
        payments = payment_service.list_payments(status=status, limit=limit)
    except ValidationError as e:
        click.echo(f"FAIL {str(e)}")
        return

    if not payments:
        click.echo("No payments found.")
        return

    click.echo("\n" + "="*110)
    click.echo(f"{'Reference':<22} {'Status':<11} {'Method':<17} {'Amount':<16} {'User':<6} {'Proof':<6} {'Quotations'}")
    click.echo("="*110)
    for p in payments:
        codes = ", ".join(link.quotation.quotation_id for link in p.links if link.quotation)
        proof = "Yes" if p.proof_url else "No"
        amount = pricing_service.format_amount(p.total_amount)
        click.echo(f"{p.reference_number:<22} {p.status:<11} {p.method:<17} {amount:<16} {p.user_id:<6} {proof:<6} {codes}")
    click.echo("="*110 + "\n")


@payments_group.command('review')
@click.argument('reference_number')
@click.option('--status', type=click.Choice(['COMPLETED', 'REJECTED'], case_sensitive=False), required=True)
@with_appcontext
def review_payment_cli(reference_number, status):
    """Confirm or refuse a PROCESSING payment after checking the bank transfer."""
    try:
        payment = payment_service.review_payment(reference_number, status)
    except (PaymentError, NotFoundError, ValidationError) as e:
        click.echo(f"FAIL {str(e)}")
        return
    click.echo(f"PASS Payment {payment.reference_number} is now {payment.status}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(quotations_group)
    app.cli.add_command(payments_group)

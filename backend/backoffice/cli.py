# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, default admin/staff users and the women's category set.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and status.
# - python -m flask users create --email admin@itkmmshop.local --password "Password123" --role admin --first-name Admin --last-name Shop
#   Create a user (prompts if options are omitted).
#
# Categories:
# - python -m flask categories seed --set women|pants|skirts|all
#   Insert default categories; prefixes that already exist are skipped.
# - python -m flask categories list
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
#   Delete expired / revoked sessions older than the retention window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, ProductCategory, User
from .models.auth import ROLE_ADMIN, ROLE_STAFF, VALID_ROLES
from .seed_data import CATEGORY_SETS
from .services import category_service, session_service
from .services.auth_service import create_user
from .validation import DomainError


DEFAULT_PASSWORD = "Password123"

DEFAULT_USERS = [
    ("admin@itkmmshop.local", ROLE_ADMIN, "Admin", "ITKMM"),
    ("staff@itkmmshop.local", ROLE_STAFF, "Staff", "ITKMM"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the back office: tables, default users, default categories.

    Creates:
    - All tables (if missing)
    - Users: admin@itkmmshop.local (admin), staff@itkmmshop.local (staff)
    - Women's fashion categories with their SKU prefixes
    - All passwords default to: "Password123"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing back office...")

    db.create_all()
    click.echo("PASS Tables ready")

    click.echo("\nUSERS Creating default users...")
    for email, role, first_name, last_name in DEFAULT_USERS:
        if db.session.query(User.id).filter_by(email=email).first():
            click.echo(f"WARN  User '{email}' already exists, skipping...")
            continue
        try:
            create_user(
                email=email,
                password=DEFAULT_PASSWORD,
                first_name=first_name,
                last_name=last_name,
                role=role,
            )
        except DomainError as e:
            db.session.rollback()
            click.echo(f"FAIL Failed to create user '{email}': {e}")
            continue
        click.echo(f"PASS Created user: {email} with role '{role}'")

    click.echo("\nLIST Seeding categories...")
    result = category_service.seed_categories(CATEGORY_SETS["women"])
    click.echo(f"PASS Categories created: {len(result['created'])}, skipped: {len(result['skipped'])}")

    click.echo("\n" + "="*60)
    click.echo("DONE Back office initialized")
    click.echo("="*60)
    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    for email, role, _, _ in DEFAULT_USERS:
        click.echo(f"   {role:<6} -> {email:<24} / {DEFAULT_PASSWORD}")
    click.echo("")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm dropping all data')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        return
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(VALID_ROLES)), prompt=True, help='Role')
@click.option('--first-name', prompt=True, help='First name')
@click.option('--last-name', prompt=True, help='Last name')
@click.option('--phone', default=None, help='10-digit phone number')
@with_appcontext
def create_user_cli(email, password, role, first_name, last_name, phone):
    """
    Create a new user.

    Password must be at least 8 characters with a letter and a digit.
    """
    try:
        user = create_user(
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            role=role,
            phone=phone,
        )
    except DomainError as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Email':<32} {'Name':<24} {'Role':<10} {'Status'}")
    click.echo("="*80)
    for user in users:
        click.echo(f"{user.id:<5} {user.email:<32} {user.full_name:<24} {user.role:<10} {user.status}")
    click.echo("="*80 + "\n")


@click.group('categories')
def categories_group():
    """Product category commands."""


@categories_group.command('seed')
@click.option('--set', 'set_name', type=click.Choice(sorted(CATEGORY_SETS) + ['all']), default='all', help='Category set to insert')
@with_appcontext
def seed_categories_cli(set_name):
    """Insert default categories. Existing prefixes are skipped, the rest still go in."""
    names = sorted(CATEGORY_SETS) if set_name == 'all' else [set_name]
    for name in names:
        result = category_service.seed_categories(CATEGORY_SETS[name])
        for prefix in result["created"]:
            click.echo(f"PASS [{name}] created {prefix}")
        for prefix in result["skipped"]:
            click.echo(f"WARN  [{name}] prefix {prefix} already exists, skipping...")
        click.echo(f"DONE [{name}] created {len(result['created'])}, skipped {len(result['skipped'])}")


@categories_group.command('list')
@with_appcontext
def list_categories_cli():
    """List categories with prefix and product count."""
    categories = db.session.query(ProductCategory).order_by(ProductCategory.prefix.asc()).all()
    if not categories:
        click.echo("No categories found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Prefix':<8} {'Name':<30} {'Status':<10} {'Products'}")
    click.echo("="*70)
    for category in categories:
        count = db.session.query(Product.id).filter_by(category_id=category.id).count()
        click.echo(f"{category.id:<5} {category.prefix or '-':<8} {category.name:<30} {category.status:<10} {count}")
    click.echo("="*70 + "\n")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions():
    """Delete expired or revoked sessions past the retention window."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"PASS Deleted {deleted} sessions")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(categories_group)
    app.cli.add_command(maintenance_group)

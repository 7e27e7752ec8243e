# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/flexpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to flexpos (PowerShell: $env:FLASK_APP="flexpos").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent). Alternatively run `python -m flask db upgrade`.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Organization management (MULTI-TENANT):
# - python -m flask orgs list
#   List all organizations.
# - python -m flask orgs create --name "Acme Corp" --code "ACME" [--tax-rate-bps 825]
#   Create a new organization (tenant) and register its default fields.
#
# Field schema:
# - python -m flask fields init-defaults --org-id 1
#   Register the core product fields for a tenant (idempotent).
# - python -m flask fields list --org-id 1
#   Show a tenant's field definitions in display order.

import click
from flask.cli import with_appcontext

from .errors import CoreError
from .extensions import db
from .models import Organization, Product, FieldDefinition
from .services import field_service, tenant_service


def _tenant(org_id: int):
    try:
        return tenant_service.resolve_tenant(org_id)
    except tenant_service.TenantAccessError as e:
        raise click.ClickException(f"Organization ID {org_id}: {e}")


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema is provisioned.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask orgs create' to add a tenant.")


@click.group('orgs')
def orgs_group():
    """Organization (tenant) management commands."""


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    """List all organizations."""
    orgs = db.session.query(Organization).order_by(Organization.id.asc()).all()

    if not orgs:
        click.echo("No organizations found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'Fields':<8} {'Products'}")
    click.echo("="*80)

    for org in orgs:
        field_count = db.session.query(FieldDefinition).filter_by(org_id=org.id).count()
        product_count = db.session.query(Product).filter_by(org_id=org.id, is_active=True).count()
        active_str = "Yes" if org.is_active else "No"

        click.echo(f"{org.id:<5} {org.name:<30} {org.code or '-':<15} {active_str:<8} {field_count:<8} {product_count}")

    click.echo("="*80 + "\n")


@orgs_group.command('create')
@click.option('--name', required=True, help='Organization name')
@click.option('--code', required=True, help='Short code (unique)')
@click.option('--tax-rate-bps', type=int, default=0, show_default=True, help='Default sale tax in basis points')
@click.option('--currency', default='$', show_default=True, help='Currency symbol for receipts')
@click.option('--no-default-fields', is_flag=True, help='Skip registering the core product fields')
@with_appcontext
def create_org_cli(name, code, tax_rate_bps, currency, no_default_fields):
    """Create a new organization (tenant)."""
    try:
        org = tenant_service.create_organization(
            name=name,
            code=code,
            tax_rate_bps=tax_rate_bps,
            currency_symbol=currency,
        )
    except CoreError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")

    if not no_default_fields:
        fields = field_service.initialize_default_fields(_tenant(org.id))
        click.echo(f"PASS Registered {len(fields)} default fields")


@click.group('fields')
def fields_group():
    """Field schema inspection/bootstrap commands."""


@fields_group.command('init-defaults')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@with_appcontext
def init_default_fields(org_id):
    """Register the core product fields for a tenant (idempotent)."""
    fields = field_service.initialize_default_fields(_tenant(org_id))
    click.echo(f"PASS Tenant {org_id} has {len(fields)} fields")


@fields_group.command('list')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@with_appcontext
def list_fields_cli(org_id):
    """List a tenant's field definitions in display order."""
    fields = field_service.list_fields(_tenant(org_id))

    if not fields:
        click.echo("No fields found. Run 'python -m flask fields init-defaults'.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'#':<4} {'Key':<20} {'Label':<24} {'Type':<12} {'Req':<5} {'Active':<7} {'Custom'}")
    click.echo("="*80)
    for f in fields:
        click.echo(
            f"{f.display_order:<4} {f.field_key:<20} {f.label[:24]:<24} {f.field_type:<12} "
            f"{'Yes' if f.is_required else 'No':<5} {'Yes' if f.is_active else 'No':<7} "
            f"{'Yes' if f.is_custom else 'No'}"
        )
    click.echo("="*80 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orgs_group)  # Multi-tenant organization management
    app.cli.add_command(fields_group)

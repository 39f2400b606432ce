# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/retail_ledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system init-db
#   Create any missing tables (safe to re-run).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Tenancy:
# - python -m flask businesses list
# - python -m flask businesses create --name "Acme Retail"
# - python -m flask outlets create --business-id 1 --name "Lekki" --address "12 Admiralty Way"
#
# Users:
# - python -m flask users create --email owner@acme.test --role OWNER --business-id 1
# - python -m flask users create --email rep@acme.test --role SALES_REP --outlet-id 1
#   Prompts for the password if --password is omitted.
#
# Products (stock changes after creation go through sales and reconciliation only):
# - python -m flask products create --outlet-id 1 --name "Rice 5kg" --price-cents 500 --quantity 10
# - python -m flask products list --outlet-id 1

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import Business, Outlet, Product, User, UserRole, derive_product_status
from .services.auth_service import PasswordValidationError, create_user


@click.group('system')
def system_group():
    """Database bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


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

    click.echo("PASS Database reset complete.")


@click.group('businesses')
def businesses_group():
    """Business (tenant) management."""


@businesses_group.command('list')
@with_appcontext
def list_businesses():
    businesses = db.session.query(Business).order_by(Business.id).all()
    if not businesses:
        click.echo("No businesses found.")
        return

    click.echo("\n" + "=" * 70)
    click.echo(f"{'ID':<5} {'Name':<35} {'Active':<8} {'Outlets'}")
    click.echo("=" * 70)
    for business in businesses:
        outlet_count = db.session.query(Outlet).filter_by(business_id=business.id).count()
        active_str = "Yes" if business.is_active else "No"
        click.echo(f"{business.id:<5} {business.name:<35} {active_str:<8} {outlet_count}")
    click.echo("=" * 70 + "\n")


@businesses_group.command('create')
@click.option('--name', required=True, help='Business name')
@with_appcontext
def create_business(name):
    business = Business(name=name.strip(), is_active=True)
    db.session.add(business)
    db.session.commit()
    click.echo(f"PASS Created business: {business.name} (ID: {business.id})")


@click.group('outlets')
def outlets_group():
    """Outlet management."""


@outlets_group.command('create')
@click.option('--business-id', type=int, required=True, help='Owning business ID')
@click.option('--name', required=True, help='Outlet name')
@click.option('--address', default=None, help='Street address')
@click.option('--phone', default=None, help='Phone number')
@with_appcontext
def create_outlet(business_id, name, address, phone):
    business = db.session.get(Business, business_id)
    if not business:
        click.echo(f"FAIL Business ID {business_id} not found")
        return

    if db.session.query(Outlet).filter_by(business_id=business_id, name=name).first():
        click.echo(f"FAIL Outlet '{name}' already exists in {business.name}")
        return

    outlet = Outlet(business_id=business_id, name=name, address=address, phone=phone)
    db.session.add(outlet)
    db.session.commit()
    click.echo(f"PASS Created outlet: {outlet.name} (ID: {outlet.id}) in {business.name}")


@click.group('users')
def users_group():
    """User management."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(UserRole.ALL, case_sensitive=False), prompt=True, help='Role')
@click.option('--full-name', default=None, help='Display name')
@click.option('--business-id', type=int, default=None, help='Business ID (OWNER)')
@click.option('--outlet-id', type=int, default=None, help='Outlet ID (STORE_EXECUTIVE, SALES_REP)')
@with_appcontext
def create_user_cli(email, password, role, full_name, business_id, outlet_id):
    """
    Create a user.

    MULTI-TENANT: OWNER needs --business-id; STORE_EXECUTIVE and SALES_REP
    need --outlet-id (the business is taken from the outlet).

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(
            email=email,
            password=password,
            role=role,
            full_name=full_name,
            business_id=business_id,
            outlet_id=outlet_id,
            rounds=current_app.config.get("BCRYPT_ROUNDS", 12),
        )
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e.message}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        return
    except LedgerError as e:
        db.session.rollback()
        click.echo(f"FAIL Failed to create user: {e.message}")
        return

    click.echo(f"PASS Created user: {user.email} with role '{user.role}'")
    if user.business_id:
        click.echo(f"     Business ID: {user.business_id}  Outlet ID: {user.outlet_id or '-'}")
    click.echo("SECURITY Password securely hashed with bcrypt")


@click.group('products')
def products_group():
    """Product management."""


@products_group.command('create')
@click.option('--outlet-id', type=int, required=True, help='Outlet ID')
@click.option('--name', required=True, help='Product name')
@click.option('--price-cents', type=click.IntRange(min=0), required=True, help='Unit price in cents')
@click.option('--quantity', type=click.IntRange(min=0), default=0, help='Opening stock')
@click.option('--reorder-point', type=click.IntRange(min=0), default=10, help='LOW_STOCK threshold')
@click.option('--sku', default=None, help='SKU (unique per outlet)')
@click.option('--category', default=None, help='Category')
@with_appcontext
def create_product(outlet_id, name, price_cents, quantity, reorder_point, sku, category):
    outlet = db.session.get(Outlet, outlet_id)
    if not outlet:
        click.echo(f"FAIL Outlet ID {outlet_id} not found")
        return

    product = Product(
        business_id=outlet.business_id,
        outlet_id=outlet.id,
        name=name,
        sku=sku,
        category=category,
        price_cents=price_cents,
        quantity=quantity,
        reorder_point=reorder_point,
        status=derive_product_status(quantity, reorder_point),
    )
    db.session.add(product)
    db.session.commit()
    click.echo(f"PASS Created product: {product.name} (ID: {product.id}) qty={product.quantity} status={product.status}")


@products_group.command('list')
@click.option('--outlet-id', type=int, required=True, help='Outlet ID')
@with_appcontext
def list_products(outlet_id):
    products = db.session.query(Product).filter_by(outlet_id=outlet_id).order_by(Product.name).all()
    if not products:
        click.echo("No products found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<6} {'Name':<32} {'Price':>10} {'Qty':>8}  {'Status'}")
    click.echo("=" * 80)
    for product in products:
        click.echo(
            f"{product.id:<6} {product.name[:32]:<32} {product.price_cents / 100:>10.2f} "
            f"{product.quantity:>8}  {product.status}"
        )
    click.echo("=" * 80 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(businesses_group)
    app.cli.add_command(outlets_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)

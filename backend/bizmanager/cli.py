# Overview: Flask CLI command groups for bootstrap, sample data, and stock inspection.

# backend/bizmanager/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` for migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed
#   Load sample users, categories, products, one order and one attendance day. Skips when products exist.
#
# Stock inspection:
# - python -m flask stock low [--threshold 3]
#   List active products with a variant at 0 < stock <= threshold.
# - python -m flask stock out
#   List active products with every variant at zero.

from datetime import timedelta

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Attendance, Category, Product, ProductVariant, User, ROLE_ADMIN, ROLE_CUSTOMER, ROLE_SALESMAN, ROLE_WORKER
from .services import delivery_service, order_service, stock_service
from .services.delivery_service import DeliveryEvent
from .services.order_service import DraftItem, OrderDraft
from .time_utils import utcnow


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed' for sample data.")


def _sample_user(name: str, email: str, role: str, **extra) -> User:
    user = db.session.query(User).filter_by(email=email).first()
    if user:
        click.echo(f"WARN  User '{email}' already exists, skipping...")
        return user
    user = User(name=name, email=email, role=role, approved=True, **extra)
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created {role}: {name} ({email}) ID {user.id}")
    return user


@system_group.command('seed')
@with_appcontext
def seed_sample_data():
    """
    Load a small working data set for local development.

    Creates an admin, a salesman (10% ceiling) with one customer and one
    worker, two categories, three products, one partly delivered order and
    a day of attendance for the salesman.
    """
    if db.session.query(Product).count() > 0:
        click.echo("WARN  Products already exist; sample data not loaded.")
        return

    click.echo("START Loading sample data...")

    _sample_user("Admin", "admin@bizmanager.local", ROLE_ADMIN)
    salesman = _sample_user(
        "Sam Seller", "salesman@bizmanager.local", ROLE_SALESMAN, max_discount_percent=10,
    )
    customer = _sample_user(
        "Corner Boutique", "customer@bizmanager.local", ROLE_CUSTOMER, salesman_id=salesman.id,
    )
    worker = _sample_user(
        "Wes Worker", "worker@bizmanager.local", ROLE_WORKER, salesman_id=salesman.id,
    )

    shirts = Category(name="Shirts", active=True)
    trousers = Category(name="Trousers", active=True)
    db.session.add_all([shirts, trousers])
    db.session.flush()

    oxford = Product(
        title="Oxford Shirt", category_id=shirts.id,
        selling_price_cents=2500, cost_price_cents=1200, images=[],
        variants=[
            ProductVariant(position=0, size="M", color="White", stock=12, production=0),
            ProductVariant(position=1, size="L", color="White", stock=2, production=10),
        ],
    )
    chino = Product(
        title="Chino Trousers", category_id=trousers.id,
        selling_price_cents=4000, cost_price_cents=2100, images=[],
        variants=[
            ProductVariant(position=0, size="32", color="Khaki", stock=0, production=20),
        ],
    )
    tee = Product(
        title="Basic Tee", category_id=shirts.id,
        selling_price_cents=900, cost_price_cents=300, images=[], fullstock=True,
        variants=[ProductVariant(position=0, size="Free", color="Default", stock=0, production=0)],
    )
    db.session.add_all([oxford, chino, tee])
    db.session.commit()
    click.echo(f"PASS Created {db.session.query(Product).count()} products in 2 categories")

    result = order_service.create_order(OrderDraft(
        customer_id=customer.id,
        salesman_id=salesman.id,
        worker_id=worker.id,
        items=[
            DraftItem(product_id=oxford.id, size="M", color="White", quantity=4,
                      selling_price_cents=2500, discount_given_cents=200),
            DraftItem(product_id=tee.id, size="Free", color="Default", quantity=10,
                      selling_price_cents=900),
        ],
        notes="Sample order",
    ))
    if not result.success:
        click.echo(f"FAIL Sample order rejected: {result.message}")
        return
    click.echo(f"PASS Created sample order ID {result.order_id}")

    delivery = delivery_service.update_order_partial_delivery(
        result.order_id,
        [DeliveryEvent(product_id=oxford.id, size="M", color="White", delivered_quantity=2)],
    )
    click.echo(f"PASS Sample delivery recorded, status: {delivery.status or delivery.message}")

    now = utcnow()
    db.session.add(Attendance(
        salesman_id=salesman.id,
        work_date=now.date(),
        login_time=now - timedelta(hours=8, minutes=30),
        logout_time=now,
        total_hours=8.5,
    ))
    db.session.commit()
    click.echo("PASS Created sample attendance (8.5 hours today)")

    click.echo("\n" + "="*60)
    click.echo("DONE Sample data loaded")
    click.echo("="*60)
    click.echo("Send X-User-Id with one of the user IDs above to call the API.")


@click.group('stock')
def stock_group():
    """Stock inspection commands."""


def _echo_products(products):
    if not products:
        click.echo("No products found.")
        return
    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<6} {'Title':<30} {'Variants (size/color: stock)'}")
    click.echo("="*80)
    for p in products:
        variants = ", ".join(f"{v.size}/{v.color}: {v.stock}" for v in p.variants)
        click.echo(f"{p.id:<6} {p.title[:30]:<30} {variants}")
    click.echo("="*80 + "\n")


@stock_group.command('low')
@click.option('--threshold', type=int, default=None, help='Override LOW_STOCK_THRESHOLD')
@with_appcontext
def list_low_stock(threshold):
    """List products running low."""
    _echo_products(stock_service.get_low_stock_products(threshold))


@stock_group.command('out')
@with_appcontext
def list_out_of_stock():
    """List products with nothing left."""
    _echo_products(stock_service.get_out_of_stock_products())


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stock_group)

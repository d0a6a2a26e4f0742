"""
Flask CLI commands.

Commands:
- flask init-db: Create all tables
- flask seed-demo: Load the sample catalog into an empty database
- flask create-admin: Create an ADMIN operator
"""

import click
from pos_app.database import db_session, create_all
from pos_app.models import AppUser, Product, UserRole
from pos_app.services import catalog_service

DEMO_PRODUCTS = [
    {'productCode': 'ESP-1001', 'name': 'Espresso Shot', 'price': '3.00', 'stockQuantity': 30},
    {'productCode': 'CAP-2002', 'name': 'Cappuccino', 'price': '4.50', 'stockQuantity': 24},
    {'productCode': 'BG-3003', 'name': 'Fresh Bagel', 'price': '2.25', 'stockQuantity': 50},
]


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create database tables."""
        create_all()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('seed-demo')
    def seed_demo():
        """Load sample products when the catalog is empty."""
        if db_session.query(Product.id).first():
            click.echo(click.style('Catalog is not empty, nothing to seed.', fg='yellow'))
            return

        for fields in DEMO_PRODUCTS:
            product = catalog_service.create_product(db_session, fields)
            click.echo(f'   {product.product_code}  {product.name}  stock={product.stock_quantity}')
        click.echo(click.style(f'Seeded {len(DEMO_PRODUCTS)} products.', fg='green'))

    @app.cli.command('create-admin')
    @click.option('--username', prompt=True, help='Admin username')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
    @click.option('--name', default='', help='Display name')
    def create_admin(username, password, name):
        """Create a new ADMIN operator."""
        username = username.strip()
        if not username:
            click.echo(click.style('Username is required.', fg='red'))
            return

        if len(password) < 6:
            click.echo(click.style('Password must be at least 6 characters.', fg='red'))
            return

        if db_session.query(AppUser).filter_by(username=username).first():
            click.echo(click.style(f'A user named {username} already exists.', fg='red'))
            return

        try:
            admin = AppUser(username=username, name=name or None, role=UserRole.ADMIN.value)
            admin.set_password(password)

            db_session.add(admin)
            db_session.commit()

            click.echo(click.style('Admin created.', fg='green', bold=True))
            click.echo(f'   Username: {username}')
            click.echo(f'   ID: {admin.id}')

        except Exception as e:
            db_session.rollback()
            click.echo(click.style(f'Could not create admin: {str(e)}', fg='red'))
            raise click.Abort() from e

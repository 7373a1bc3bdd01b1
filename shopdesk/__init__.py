import click
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from config import config

db = SQLAlchemy()


def create_app(config_name='default'):
    """Application factory — creates and configures the Flask app."""
    app = Flask(__name__)
    app.config.from_object(config[config_name])

    # ── Logging ───────────────────────────────────────────────────
    from shopdesk.utils.logging import setup_logging
    setup_logging(app)

    # ── Extensions ────────────────────────────────────────────────
    db.init_app(app)

    # ── Blueprints ────────────────────────────────────────────────
    from shopdesk.main import main as main_blueprint
    app.register_blueprint(main_blueprint)

    from shopdesk.catalog import catalog as catalog_blueprint
    app.register_blueprint(catalog_blueprint, url_prefix='/catalog')

    from shopdesk.inventory import inventory as inventory_blueprint
    app.register_blueprint(inventory_blueprint, url_prefix='/inventory')

    from shopdesk.purchasing import purchasing as purchasing_blueprint
    app.register_blueprint(purchasing_blueprint, url_prefix='/purchasing')

    from shopdesk.customers import customers as customers_blueprint
    app.register_blueprint(customers_blueprint, url_prefix='/customers')

    from shopdesk.orders import orders as orders_blueprint
    app.register_blueprint(orders_blueprint, url_prefix='/orders')

    # Registers InvoiceSequence with SQLAlchemy (billing has no blueprint)
    from shopdesk.billing import models as billing_models  # noqa: F401

    # ── Error Handlers ────────────────────────────────────────────
    register_error_handlers(app)

    # ── CLI Commands ──────────────────────────────────────────────
    register_commands(app)

    # ── ProxyFix (HTTPS termination in front of gunicorn) ─────────
    if app.config.get('BEHIND_PROXY'):
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    return app


def register_error_handlers(app):
    """Every error leaves the API as JSON: {"error": ..., "message": ...}."""
    from shopdesk.errors import ShopdeskError

    @app.errorhandler(ShopdeskError)
    def shopdesk_error(e):
        if e.status_code >= 500:
            app.logger.error(f"{e.__class__.__name__}: {e}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({'error': 'not_found', 'message': 'Resource not found.'}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({'error': 'method_not_allowed', 'message': str(e)}), 405

    @app.errorhandler(500)
    def internal_error(e):
        return jsonify({'error': 'server_error', 'message': 'Internal server error.'}), 500


def register_commands(app):
    """Register custom Flask CLI commands."""

    @app.cli.command('init-db')
    def init_db():
        """Create all database tables."""
        db.create_all()
        click.echo('✅  Database tables created.')

    @app.cli.command('show-sequences')
    def show_sequences():
        """Show invoice sequence counters (diagnostic)."""
        from shopdesk.billing.models import InvoiceSequence
        rows = InvoiceSequence.query.order_by(InvoiceSequence.day.desc()).limit(14).all()
        if not rows:
            click.echo('No sequence rows found. No orders saved yet.')
            return
        click.echo(f'{"Day":<10} {"Last Seq":<10} {"Next Invoice"}')
        click.echo('─' * 40)
        for row in rows:
            click.echo(f'{row.day:<10} {row.last_seq:<10} INV-{row.day}-{row.last_seq + 1:04d}')

    @app.cli.command('seed-demo')
    @click.option('--products', default=12, show_default=True, help='Number of demo products')
    def seed_demo(products):
        """Populate the database with demo suppliers, products and customers."""
        import random
        from decimal import Decimal
        from shopdesk.catalog.models import Product, Variant, VariantSize
        from shopdesk.purchasing.models import Supplier
        from shopdesk.customers.models import Customer

        click.echo("🌱 Seeding demo data...")
        db.create_all()

        supplier = Supplier.query.filter_by(name='Metro Textiles').first()
        if not supplier:
            supplier = Supplier(name='Metro Textiles', phone='9900001111',
                                gstin='27AAPFU0939F1ZV', state='Maharashtra', code=27)
            db.session.add(supplier)
            db.session.flush()

        if not Customer.query.filter_by(phone='9800000001').first():
            db.session.add(Customer(name='Walk-in Retail', phone='9800000001',
                                    state_name='Maharashtra', code=27))

        if Product.query.count() < products:
            names   = ['Cotton Shirt', 'Denim Jeans', 'Polo T-Shirt', 'Track Pants', 'Kurta', 'Blazer']
            colours = ['Blue', 'Black', 'White', 'Olive', 'Maroon']
            for i in range(1, products + 1):
                product = Product(name=f'{random.choice(names)} {i}', hsn=random.choice([6105, 6203, 6109]))
                for j, colour in enumerate(random.sample(colours, 2)):
                    variant = Variant(name=f'{colour} {1000 + i}', barcode=f'DEMO{i:03d}{j}',
                                      supplier_id=supplier.id)
                    cost = Decimal(random.randint(150, 1500))
                    for pos, size in enumerate(['S', 'M', 'L', 'XL']):
                        variant.sizes.append(VariantSize(
                            position=pos, size=size, buying_price=cost,
                            selling_price=(cost * Decimal('1.4')).quantize(Decimal('1')),
                            stock=random.randint(0, 60),
                        ))
                    product.variants.append(variant)
                db.session.add(product)

        db.session.commit()
        click.echo("✅ Demo seed complete.")

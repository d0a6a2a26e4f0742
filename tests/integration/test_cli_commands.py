"""
Integration tests for the Flask CLI commands.
"""

from pos_app.models import AppUser, Product


def test_init_db(app, session):
    result = app.test_cli_runner().invoke(args=['init-db'])

    assert result.exit_code == 0
    assert 'Database tables created.' in result.output


def test_seed_demo_fills_empty_catalog(app, session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=['seed-demo'])

    assert result.exit_code == 0
    assert 'Seeded 3 products.' in result.output
    assert session.query(Product).count() == 3


def test_seed_demo_skips_existing_catalog(app, session, products):
    result = app.test_cli_runner().invoke(args=['seed-demo'])

    assert 'nothing to seed' in result.output
    assert session.query(Product).count() == 3


def test_create_admin(app, session):
    result = app.test_cli_runner().invoke(args=[
        'create-admin', '--username', 'boss', '--password', 'secret1', '--name', 'The Boss'
    ])

    assert result.exit_code == 0
    user = session.query(AppUser).filter_by(username='boss').one()
    assert user.is_admin
    assert user.check_password('secret1')


def test_create_admin_rejects_short_password(app, session):
    result = app.test_cli_runner().invoke(args=['create-admin', '--username', 'boss', '--password', '123'])

    assert 'at least 6 characters' in result.output
    assert session.query(AppUser).count() == 0

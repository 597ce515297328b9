from storebook.extensions import db
from storebook.models import Account, Partner, Product, User


def test_system_init_with_samples_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "init", "--with-samples"])
    second = runner.invoke(args=["system", "init", "--with-samples"])

    assert first.exit_code == 0, first.output
    assert second.exit_code == 0, second.output
    assert db.session.query(User).filter_by(username="admin", role="admin").count() == 1
    assert db.session.query(Product).count() == 3
    assert db.session.query(Partner).count() == 2
    assert db.session.query(Account).count() == 5

    mouse = db.session.query(Product).filter_by(sku="MS-001").one()
    assert (mouse.quantity, mouse.cost_price_cents, mouse.selling_price_cents) == (50, 1000, 2500)


def test_users_create(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create",
        "--username", "clerk2",
        "--password", "Password123",
        "--full-name", "Second Clerk",
    ])
    assert result.exit_code == 0, result.output
    assert db.session.query(User).filter_by(username="clerk2", role="employee").count() == 1


def test_users_create_weak_password(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create",
        "--username", "clerk3",
        "--password", "short",
        "--full-name", "Third Clerk",
    ])
    assert result.exit_code != 0
    assert "Password validation failed" in result.output

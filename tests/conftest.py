"""
Pytest fixtures for the budget tracker test suite.

The app module builds its Flask app at import time, so the database URL has to
point at an in-memory SQLite database before it is imported.
"""
import os

os.environ['DATABASE_URL'] = 'sqlite://'
os.environ.setdefault('SECRET_KEY', 'test-secret-key')

from datetime import date
from decimal import Decimal

import pytest
from flask import template_rendered
from werkzeug.security import generate_password_hash

from app import app as flask_app
from models import db, User, Transaction, Income, Category


@pytest.fixture
def app():
    flask_app.config.update(TESTING=True)
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
    yield flask_app
    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(username='alice', password='secret'):
        with app.app_context():
            user = User(username=username, password_hash=generate_password_hash(password))
            db.session.add(user)
            db.session.commit()
            return user.id
    return _make


@pytest.fixture
def add_transaction(app):
    def _add(user_id, amount, day, category=Category.OTHER, title='Expense'):
        with app.app_context():
            txn = Transaction(user_id=user_id, title=title, amount=Decimal(amount),
                              date=day, category=category)
            db.session.add(txn)
            db.session.commit()
            return txn.id
    return _add


@pytest.fixture
def add_income(app):
    def _add(user_id, amount, day, title='Salary', source='Employer'):
        with app.app_context():
            income = Income(user_id=user_id, title=title, amount=Decimal(amount),
                            date=day, source=source)
            db.session.add(income)
            db.session.commit()
            return income.id
    return _add


@pytest.fixture
def login(client):
    def _login(user_id):
        with client.session_transaction() as sess:
            sess['user_id'] = user_id
    return _login


@pytest.fixture
def captured_templates(app):
    """Record (template, context) for every template rendered during the test."""
    recorded = []

    def record(sender, template, context, **extra):
        recorded.append((template, context))

    template_rendered.connect(record, app)
    yield recorded
    template_rendered.disconnect(record, app)


@pytest.fixture
def january_2026(make_user, add_transaction, add_income):
    user_id = make_user()
    add_transaction(user_id, '50', date(2026, 1, 5), Category.FOOD, 'Groceries')
    add_transaction(user_id, '30', date(2026, 1, 20), Category.FOOD, 'Restaurant')
    add_transaction(user_id, '20', date(2026, 2, 1), Category.TRANSPORT, 'Bus pass')
    add_income(user_id, '1000', date(2026, 1, 15))
    return user_id

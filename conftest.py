import os
import tempfile

# The app module reads its configuration at import time
_db_dir = tempfile.mkdtemp(prefix='library-tests-')
os.environ['DATABASE_URL'] = 'sqlite:///' + os.path.join(_db_dir, 'test.db')
os.environ['SESSION_COOKIE_SECURE'] = 'false'
os.environ['SCHEDULER_ENABLED'] = 'false'
os.environ.setdefault('LOG_LEVEL', 'INFO')

from datetime import timedelta

import pytest

from app import app as flask_app
from auth import hash_password
from models import db, User, Book, Transaction, STATUS_BORROWED, STATUS_RETURNED, utcnow

LIBRARIAN = {'name': 'Head Librarian', 'email': 'librarian@example.com', 'password': 'librarian123'}


@pytest.fixture
def app():
    flask_app.config['TESTING'] = True
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
    yield flask_app
    with flask_app.app_context():
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def librarian(app):
    with app.app_context():
        user = User(name=LIBRARIAN['name'], email=LIBRARIAN['email'], password=hash_password(LIBRARIAN['password']))
        db.session.add(user)
        db.session.commit()
        return user.id


@pytest.fixture
def auth_client(client, librarian):
    resp = client.post('/api/auth/login', json={'email': LIBRARIAN['email'], 'password': LIBRARIAN['password']})
    assert resp.status_code == 200
    return client


@pytest.fixture
def make_book(app):
    def _make(title='Dune', author='Frank Herbert', isbn=None, category=None, quantity=1, available=None):
        with app.app_context():
            book = Book(
                title=title,
                author=author,
                isbn=isbn,
                category=category,
                quantity=quantity,
                available=quantity if available is None else available,
            )
            db.session.add(book)
            db.session.commit()
            return book.id
    return _make


@pytest.fixture
def make_loan(app):
    def _make(book_id, days_until_due=7, returned=False, borrower_name='Ada Lovelace'):
        with app.app_context():
            transaction = Transaction(
                book_id=book_id,
                borrower_name=borrower_name,
                due_date=utcnow() + timedelta(days=days_until_due),
                status=STATUS_RETURNED if returned else STATUS_BORROWED,
                returned_at=utcnow() if returned else None,
            )
            db.session.add(transaction)
            db.session.commit()
            return transaction.id
    return _make

import pytest
from sqlalchemy.exc import OperationalError

from models import Book


def _books(app):
    with app.app_context():
        return Book.query.all()


def test_add_book_form_defaults(auth_client):
    resp = auth_client.get('/api/add-book')
    assert resp.status_code == 200
    assert resp.get_json()['form']['quantity'] == 1


def test_add_book_sets_available_to_quantity(app, auth_client):
    resp = auth_client.post('/api/add-book', json={
        'title': 'Dune',
        'author': 'Frank Herbert',
        'isbn': '9780441013593',
        'category': 'Fiction',
        'quantity': 4,
    })
    assert resp.status_code == 201
    body = resp.get_json()
    assert body['message'] == 'Book added successfully!'
    assert body['redirect'].endswith('/api/books')
    assert body['book']['available'] == 4

    [book] = _books(app)
    assert book.quantity == 4
    assert book.available == 4
    assert book.isbn == '9780441013593'


def test_add_book_optional_fields_stored_as_null(app, auth_client):
    resp = auth_client.post('/api/add-book', json={'title': 'Dune', 'author': 'Frank Herbert', 'isbn': '', 'category': ''})
    assert resp.status_code == 201

    [book] = _books(app)
    assert book.isbn is None
    assert book.category is None
    assert book.quantity == book.available == 1


@pytest.mark.parametrize('payload, message', [
    ({'title': '', 'author': 'Frank Herbert'}, 'Title is required'),
    ({'title': 'Dune', 'author': ''}, 'Author is required'),
    ({'title': 'Dune', 'author': 'Frank Herbert', 'quantity': 0}, 'Quantity must be at least 1'),
    ({'title': 'Dune', 'author': 'Frank Herbert', 'quantity': -1}, 'Quantity must be at least 1'),
])
def test_invalid_add_book_never_inserts(app, auth_client, payload, message):
    resp = auth_client.post('/api/add-book', json=payload)
    assert resp.status_code == 400
    assert resp.get_json() == {'error': message}
    assert _books(app) == []


def test_add_book_database_failure(app, auth_client, monkeypatch):
    import app as app_module

    def broken_book(**kwargs):
        raise OperationalError('INSERT INTO books', {}, Exception('connection lost'))

    monkeypatch.setattr(app_module, 'Book', broken_book)
    resp = auth_client.post('/api/add-book', json={'title': 'Dune', 'author': 'Frank Herbert'})
    monkeypatch.undo()

    assert resp.status_code == 500
    assert resp.get_json() == {'error': 'Failed to add book'}
    assert _books(app) == []


def test_oversized_isbn_is_rejected_before_insert(app, auth_client):
    resp = auth_client.post('/api/add-book', json={'title': 'Dune', 'author': 'Frank Herbert', 'isbn': '9' * 40})
    assert resp.status_code == 400
    assert resp.get_json() == {'error': 'ISBN must be at most 32 characters'}
    assert _books(app) == []


def test_non_text_title_is_rejected(app, auth_client):
    resp = auth_client.post('/api/add-book', json={'title': {'a': 1}, 'author': 'Frank Herbert'})
    assert resp.status_code == 400
    assert resp.get_json() == {'error': 'Title is required'}
    assert _books(app) == []

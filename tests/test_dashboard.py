from datetime import timedelta

import app as app_module


def test_empty_dashboard(auth_client):
    resp = auth_client.get('/api/dashboard')
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['stats'] == {'total_books': 0, 'available_books': 0, 'borrowed_books': 0, 'overdue_books': 0}
    assert [card['title'] for card in body['cards']] == ['Total Books', 'Available', 'Borrowed', 'Overdue']


def test_dashboard_counts(auth_client, make_book, make_loan):
    dune = make_book(title='Dune', quantity=3, available=1)
    make_book(title='Anathem', quantity=2, available=2)
    make_book(title='Emma', quantity=1, available=0)

    make_loan(dune, days_until_due=-3)
    make_loan(dune, days_until_due=4)
    make_loan(dune, days_until_due=-1, returned=True)

    stats = auth_client.get('/api/dashboard').get_json()['stats']
    assert stats == {'total_books': 3, 'available_books': 3, 'borrowed_books': 2, 'overdue_books': 1}


def test_overdue_uses_strictly_past_due_dates(app, auth_client, make_book, make_loan, monkeypatch):
    book_id = make_book(quantity=3)
    make_loan(book_id, days_until_due=-1)
    make_loan(book_id, days_until_due=1)

    # Moving the clock two days ahead makes the second loan overdue too
    real_utcnow = app_module.utcnow
    monkeypatch.setattr(app_module, 'utcnow', lambda: real_utcnow() + timedelta(days=2))
    stats = auth_client.get('/api/dashboard').get_json()['stats']
    assert stats['overdue_books'] == 2
    assert stats['borrowed_books'] == 2


def test_dashboard_failure_is_all_or_nothing(auth_client, make_book, monkeypatch):
    make_book()

    def broken_clock():
        raise RuntimeError('database unreachable')

    monkeypatch.setattr(app_module, 'utcnow', broken_clock)
    resp = auth_client.get('/api/dashboard')
    assert resp.status_code == 500
    assert resp.get_json() == {'error': 'Failed to load dashboard statistics'}


def test_report_overdue_counts_without_writing(app, make_book, make_loan):
    book_id = make_book(quantity=3)
    late = make_loan(book_id, days_until_due=-5)
    make_loan(book_id, days_until_due=5)

    assert app_module.report_overdue() == 1

    with app.app_context():
        from models import db, Transaction
        transaction = db.session.get(Transaction, late)
        assert transaction.status == 'borrowed'
        assert transaction.returned_at is None

from app import app, db
from auth import hash_password
from models import User, Book, Transaction, STATUS_BORROWED, utcnow
from datetime import timedelta

with app.app_context():
    # Reset the database
    db.drop_all()
    db.create_all()
    print("🔄 Database reset")

    # Insert Users
    users = [
        {"name": "Head Librarian", "email": "librarian@example.com", "password": "librarian123"},
        {"name": "Desk Assistant", "email": "assistant@example.com", "password": "assistant123"},
    ]

    for u in users:
        user = User(name=u["name"], email=u["email"], password=hash_password(u["password"]))
        db.session.add(user)

    db.session.commit()
    print("✅ Users inserted")

    # Insert Books
    books = [
        {"title": "Python Programming", "author": "John Zelle", "isbn": "9781590282410", "category": "Programming", "quantity": 5},
        {"title": "Flask Web Development", "author": "Miguel Grinberg", "isbn": "9781491991732", "category": "Web", "quantity": 3},
        {"title": "Clean Code", "author": "Robert C. Martin", "isbn": "9780132350884", "category": "Software", "quantity": 2},
        {"title": "The Hobbit", "author": "J.R.R. Tolkien", "isbn": None, "category": "Fiction", "quantity": 1},
    ]

    for b in books:
        book = Book(
            title=b["title"],
            author=b["author"],
            isbn=b["isbn"],
            category=b["category"],
            quantity=b["quantity"],
            available=b["quantity"]
        )
        db.session.add(book)

    db.session.commit()
    print("✅ Books inserted")

    # One loan still running and one already overdue
    today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    loans = [
        ("Python Programming", "Ada Lovelace", "ada@example.com", today + timedelta(days=14)),
        ("Clean Code", "Alan Turing", None, today - timedelta(days=3)),
    ]

    for title, borrower, email, due_date in loans:
        book = Book.query.filter_by(title=title).first()
        if book and book.available > 0:
            book.available -= 1
            transaction = Transaction(
                book_id=book.id,
                borrower_name=borrower,
                borrower_email=email,
                due_date=due_date,
                status=STATUS_BORROWED
            )
            db.session.add(transaction)

    db.session.commit()
    print("✅ Transactions inserted")

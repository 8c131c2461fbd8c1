from datetime import datetime, timezone
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

STATUS_BORROWED = 'borrowed'
STATUS_RETURNED = 'returned'


def utcnow():
    """Current UTC time as a naive datetime, the form stored in every timestamp column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password = db.Column(db.String(255), nullable=False)

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'email': self.email}


class Book(db.Model):
    __tablename__ = 'books'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    author = db.Column(db.String(200), nullable=False)
    isbn = db.Column(db.String(32))
    category = db.Column(db.String(100))
    quantity = db.Column(db.Integer, nullable=False, default=1)
    available = db.Column(db.Integer, nullable=False, default=1)
    cover_image_url = db.Column(db.String(500))
    created_at = db.Column(db.DateTime, default=utcnow)

    __table_args__ = (
        db.CheckConstraint('quantity >= 1', name='ck_books_quantity_positive'),
        db.CheckConstraint('available >= 0 AND available <= quantity', name='ck_books_available_range'),
    )

    @property
    def can_borrow(self):
        return (self.available or 0) > 0

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'author': self.author,
            'isbn': self.isbn,
            'category': self.category,
            'quantity': self.quantity,
            'available': self.available,
            'cover_image_url': self.cover_image_url,
            'can_borrow': self.can_borrow,
        }


class Transaction(db.Model):
    __tablename__ = 'transactions'
    id = db.Column(db.Integer, primary_key=True)
    book_id = db.Column(db.Integer, db.ForeignKey('books.id'), nullable=False)
    borrower_name = db.Column(db.String(100), nullable=False)
    borrower_email = db.Column(db.String(255))
    borrower_phone = db.Column(db.String(50))
    due_date = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=STATUS_BORROWED)
    returned_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utcnow)
    book = db.relationship('Book', backref='transactions')

    @classmethod
    def outstanding(cls):
        return cls.query.filter(cls.returned_at.is_(None))

    @classmethod
    def overdue(cls, now):
        return cls.outstanding().filter(cls.due_date < now)

    def is_overdue(self, now):
        # Derived on every read, never persisted
        return self.returned_at is None and self.due_date < now

    def to_dict(self, now=None):
        now = now or utcnow()
        return {
            'id': self.id,
            'book_id': self.book_id,
            'book_title': self.book.title if self.book else None,
            'borrower_name': self.borrower_name,
            'borrower_email': self.borrower_email,
            'borrower_phone': self.borrower_phone,
            'due_date': self.due_date.date().isoformat(),
            'status': self.status,
            'returned_at': self.returned_at.isoformat() if self.returned_at else None,
            'overdue': self.is_overdue(now),
        }

from flask import Flask, request, jsonify, g, url_for
from flask_session import Session
from apscheduler.schedulers.background import BackgroundScheduler
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
import logging

from config import Config
from models import db, User, Book, Transaction, STATUS_BORROWED, STATUS_RETURNED, utcnow
from auth import current_session_state, hash_password, check_password, login_required, navigation_links
from catalog import filter_books
from validators import ValidationError, validate_book, validate_borrow, is_valid_email

app = Flask(__name__)
app.config.from_object(Config)
CORS(app, supports_credentials=True, origins=app.config['CORS_ORIGINS'])

# Configure logging
logging.basicConfig(level=app.config['LOG_LEVEL'], format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

app.config['SESSION_SQLALCHEMY'] = db

try:
    db.init_app(app)
except Exception as e:
    logger.error(f"Failed to initialize database: {str(e)}")
    raise

Session(app)

UNAVAILABLE_MESSAGE = 'This book is currently unavailable'


@app.before_request
def log_request():
    payload = request.get_json(silent=True)
    if isinstance(payload, dict) and 'password' in payload:
        payload = {**payload, 'password': '***'}
    logger.debug(f"Incoming request: {request.method} {request.path} {payload}")


def report_overdue():
    """Log every overdue loan. Overdue is recomputed here, never written back."""
    with app.app_context():
        now = utcnow()
        transactions = Transaction.overdue(now).order_by(Transaction.due_date).all()
        for t in transactions:
            days_overdue = (now - t.due_date).days
            logger.warning(
                f"Overdue: transaction_id={t.id} book_id={t.book_id} "
                f"borrower={t.borrower_name} days_overdue={days_overdue}"
            )
        logger.debug(f"Overdue report completed: {len(transactions)} overdue transactions")
        return len(transactions)


scheduler = BackgroundScheduler()
scheduler.add_job(report_overdue, 'interval', hours=app.config['OVERDUE_REPORT_HOURS'])
if app.config['SCHEDULER_ENABLED']:
    scheduler.start()


def fetch_stats():
    now = utcnow()
    total_books = Book.query.count()
    available_books = sum(row.available or 0 for row in db.session.query(Book.available).all())
    borrowed_books = Transaction.outstanding().count()
    overdue_books = Transaction.overdue(now).count()
    return {
        'total_books': total_books,
        'available_books': available_books,
        'borrowed_books': borrowed_books,
        'overdue_books': overdue_books,
    }


def stat_cards(stats):
    return [
        {'title': 'Total Books', 'value': stats['total_books'], 'description': 'Books in inventory'},
        {'title': 'Available', 'value': stats['available_books'], 'description': 'Ready to borrow'},
        {'title': 'Borrowed', 'value': stats['borrowed_books'], 'description': 'Currently on loan'},
        {'title': 'Overdue', 'value': stats['overdue_books'], 'description': 'Past due date'},
    ]


# Routes
@app.route('/')
def home():
    return jsonify({"message": "Library Manager Backend"})


@app.route('/api/auth', methods=['GET'])
def auth_status():
    user = current_session_state().get_session()
    return jsonify({
        'authenticated': user is not None,
        'user': user.to_dict() if user else None,
    }), 200


@app.route('/api/auth/register', methods=['POST'])
def register():
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not all(isinstance(data.get(key), str) and data[key].strip() for key in ['name', 'email', 'password']):
        logger.error("Missing required fields")
        return jsonify({'error': 'Missing required fields'}), 400
    email = data['email'].strip()
    if not is_valid_email(email):
        return jsonify({'error': 'Invalid email address'}), 400
    if len(data['name'].strip()) > 100:
        return jsonify({'error': 'Name must be at most 100 characters'}), 400
    if len(email) > 120:
        return jsonify({'error': 'Email must be at most 120 characters'}), 400
    if len(data['password']) < 6:
        return jsonify({'error': 'Password must be at least 6 characters'}), 400
    if User.query.filter(func.lower(User.email) == email.lower()).first():
        logger.debug(f"Duplicate email: {email}")
        return jsonify({'error': 'Email already exists'}), 400
    try:
        new_user = User(name=data['name'].strip(), email=email, password=hash_password(data['password']))
        db.session.add(new_user)
        db.session.commit()
        logger.debug(f"User registered: {email}")
        return jsonify({'message': 'User registered successfully', 'user': new_user.to_dict()}), 201
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'Email already exists'}), 400
    except Exception as e:
        logger.error(f"Registration error: {str(e)}")
        db.session.rollback()
        return jsonify({'error': 'Failed to register user'}), 500


@app.route('/api/auth/login', methods=['POST'])
def login():
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not all(isinstance(data.get(key), str) and data[key] for key in ['email', 'password']):
        logger.error("Invalid login payload")
        return jsonify({'error': 'Missing email or password'}), 400
    try:
        user = User.query.filter(func.lower(User.email) == data['email'].strip().lower()).first()
    except Exception as e:
        logger.error(f"Login error: {str(e)}")
        return jsonify({'error': 'An unexpected error occurred'}), 500
    if not user or not check_password(data['password'], user.password):
        logger.debug(f"Invalid credentials for: {data['email']}")
        return jsonify({'error': 'Invalid credentials'}), 401
    current_session_state().sign_in(user)
    logger.debug(f"Session created for user: {user.email}")
    return jsonify({'message': 'Login successful', 'user': user.to_dict(), 'redirect': url_for('dashboard')}), 200


@app.route('/api/auth/logout', methods=['POST'])
@login_required
def logout():
    current_session_state().sign_out()
    logger.debug("User logged out")
    return jsonify({'message': 'Logout successful', 'redirect': g.shell.redirect_to}), 200


@app.route('/api/session', methods=['GET'])
@login_required
def shell_session():
    return jsonify({
        'user': g.shell.session.to_dict(),
        'navigation': g.shell.navigation(navigation_links()),
    }), 200


@app.route('/api/dashboard', methods=['GET'])
@login_required
def dashboard():
    try:
        stats = fetch_stats()
    except Exception as e:
        logger.error(f"Error fetching stats: {str(e)}")
        return jsonify({'error': 'Failed to load dashboard statistics'}), 500
    logger.debug(f"Dashboard stats: {stats}")
    return jsonify({'stats': stats, 'cards': stat_cards(stats)}), 200


@app.route('/api/books', methods=['GET'])
@login_required
def get_books():
    search = request.args.get('search', '')
    try:
        books = Book.query.order_by(Book.title.asc()).all()
    except Exception as e:
        logger.error(f"Error fetching books: {str(e)}")
        return jsonify({'error': 'Failed to load books'}), 500
    filtered = filter_books(books, search)
    logger.debug(f"Fetched {len(books)} books, {len(filtered)} match '{search}'")
    return jsonify([b.to_dict() for b in filtered]), 200


@app.route('/api/add-book', methods=['GET', 'POST'])
@login_required
def add_book():
    if request.method == 'GET':
        return jsonify({'form': {'title': '', 'author': '', 'isbn': '', 'category': '', 'quantity': 1}}), 200
    data = request.get_json(silent=True) or {}
    try:
        fields = validate_book(data)
    except ValidationError as e:
        logger.debug(f"Add book rejected: {e.message}")
        return jsonify({'error': e.message}), 400
    try:
        new_book = Book(available=fields['quantity'], **fields)
        db.session.add(new_book)
        db.session.commit()
        logger.debug(f"Book added: {new_book.title} (book_id={new_book.id})")
        return jsonify({
            'message': 'Book added successfully!',
            'book': new_book.to_dict(),
            'redirect': url_for('get_books'),
        }), 201
    except Exception as e:
        logger.error(f"Error adding book: {str(e)}")
        db.session.rollback()
        return jsonify({'error': 'Failed to add book'}), 500


@app.route('/api/books/<int:book_id>/borrow', methods=['POST'])
@login_required
def borrow_book(book_id):
    data = request.get_json(silent=True) or {}
    book = db.session.get(Book, book_id)
    if not book:
        logger.debug(f"Book not found: book_id={book_id}")
        return jsonify({'error': 'Book not found'}), 404
    if book.available <= 0:
        logger.debug(f"Book unavailable: book_id={book_id}")
        return jsonify({'error': UNAVAILABLE_MESSAGE}), 400
    try:
        fields = validate_borrow(data)
    except ValidationError as e:
        logger.debug(f"Borrow rejected: {e.message}")
        return jsonify({'error': e.message}), 400
    try:
        # Conditional decrement; a concurrent borrower may have taken the last copy
        result = db.session.execute(
            update(Book)
            .where(Book.id == book_id, Book.available > 0)
            .values(available=Book.available - 1)
        )
        if result.rowcount == 0:
            db.session.rollback()
            logger.debug(f"Book unavailable at commit time: book_id={book_id}")
            return jsonify({'error': UNAVAILABLE_MESSAGE}), 400
        transaction = Transaction(book_id=book_id, status=STATUS_BORROWED, **fields)
        db.session.add(transaction)
        db.session.commit()
        logger.debug(f"Book borrowed: book_id={book_id} by {fields['borrower_name']}")
        return jsonify({
            'message': 'Book borrowed successfully!',
            'transaction': transaction.to_dict(),
            'book': book.to_dict(),
        }), 201
    except Exception as e:
        logger.error(f"Error borrowing book: {str(e)}")
        db.session.rollback()
        return jsonify({'error': 'Failed to process borrowing'}), 500


@app.route('/api/transactions/<int:transaction_id>/return', methods=['POST'])
@login_required
def return_book(transaction_id):
    transaction = db.session.get(Transaction, transaction_id)
    if not transaction:
        logger.debug(f"Transaction not found: transaction_id={transaction_id}")
        return jsonify({'error': 'Transaction not found'}), 404
    if transaction.returned_at is not None:
        logger.debug(f"Transaction already returned: transaction_id={transaction_id}")
        return jsonify({'error': 'Transaction already returned'}), 400
    try:
        # Only an outstanding loan matches; zero rows means a concurrent return won
        result = db.session.execute(
            update(Transaction)
            .where(Transaction.id == transaction_id, Transaction.returned_at.is_(None))
            .values(returned_at=utcnow(), status=STATUS_RETURNED)
        )
        if result.rowcount == 0:
            db.session.rollback()
            logger.debug(f"Transaction returned concurrently: transaction_id={transaction_id}")
            return jsonify({'error': 'Transaction already returned'}), 400
        db.session.execute(
            update(Book)
            .where(Book.id == transaction.book_id, Book.available < Book.quantity)
            .values(available=Book.available + 1)
        )
        db.session.commit()
        logger.debug(f"Book returned: transaction_id={transaction_id}")
        return jsonify({
            'message': 'Book returned successfully!',
            'transaction': transaction.to_dict(),
            'book': transaction.book.to_dict(),
        }), 200
    except Exception as e:
        logger.error(f"Error returning book: {str(e)}")
        db.session.rollback()
        return jsonify({'error': 'Failed to process return'}), 500


@app.route('/api/transactions', methods=['GET'])
@login_required
def get_transactions():
    status = request.args.get('status', '')
    now = utcnow()
    if status == 'outstanding':
        query = Transaction.outstanding()
    elif status == 'overdue':
        query = Transaction.overdue(now)
    elif status == 'returned':
        query = Transaction.query.filter(Transaction.returned_at.isnot(None))
    elif status:
        return jsonify({'error': f'Unknown status filter: {status}'}), 400
    else:
        query = Transaction.query
    try:
        transactions = query.order_by(Transaction.due_date.desc(), Transaction.id.desc()).all()
    except Exception as e:
        logger.error(f"Error fetching transactions: {str(e)}")
        return jsonify({'error': 'Failed to fetch transactions'}), 500
    logger.debug(f"Fetched {len(transactions)} transactions (status={status or 'all'})")
    return jsonify([t.to_dict(now) for t in transactions]), 200


@app.errorhandler(Exception)
def handle_error(error):
    if isinstance(error, HTTPException):
        return jsonify({'error': error.description}), error.code
    logger.error(f"Unhandled error: {str(error)}")
    return jsonify({'error': 'An unexpected error occurred'}), 500


if __name__ == '__main__':
    with app.app_context():
        db.create_all()
        logger.debug(f"Database connected: {app.config['SQLALCHEMY_DATABASE_URI']}")
    app.run(host='0.0.0.0', port=app.config['PORT'], debug=True)

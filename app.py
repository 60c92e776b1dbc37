import os
import logging
from datetime import MAXYEAR, MINYEAR, datetime
from decimal import Decimal, InvalidOperation
from functools import wraps
from flask import Flask, render_template, request, redirect, url_for, session, jsonify, flash, abort
from werkzeug.security import generate_password_hash, check_password_hash
from models import db, User, Transaction, Income, Category
from repositories import TransactionRepository, IncomeRepository
from cashflow import DataValidationError, Period, summarize, monthly_trend
from ml.recommender import generate_recommendations, predict_next_month_expense

def create_app():
    logging.basicConfig(
        level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    app = Flask(__name__, template_folder='templates', static_folder='static')
    app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL', 'sqlite:///budget.db')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev-secret-key-change-me')
    db.init_app(app)
    with app.app_context():
        db.create_all()
    return app

app = create_app()
transactions_repo = TransactionRepository()
incomes_repo = IncomeRepository()

# Numeric(12, 2) leaves ten digits before the decimal point
MAX_AMOUNT = Decimal(10) ** 10

# ---------------------- Auth Helpers ----------------------
def current_user():
    uid = session.get('user_id')
    if uid:
        return db.session.get(User, uid)
    return None

def login_required(view_func):
    @wraps(view_func)
    def wrapped(*args, **kwargs):
        if not current_user():
            return redirect(url_for('login', next=request.path))
        return view_func(*args, **kwargs)
    return wrapped

# ---------------------- Errors ----------------------
@app.errorhandler(DataValidationError)
def handle_data_validation_error(exc):
    app.logger.warning('Cashflow summary aborted for %s: %s', request.path, exc)
    if request.path.startswith('/api/'):
        return jsonify({'error': str(exc)}), 422
    return render_template('error.html', message=str(exc)), 422

# ---------------------- Form Helpers ----------------------
def _requested_period():
    year = request.args.get('year', type=int)
    month = request.args.get('month', type=int)
    today = Period.current()
    try:
        return Period(today.year if year is None else year, today.month if month is None else month)
    except ValueError:
        abort(400)

def _requested_year():
    year = request.args.get('year', type=int)
    if year is None:
        return Period.current().year
    if not MINYEAR <= year <= MAXYEAR:
        abort(400)
    return year

def _parse_record_form(form):
    """Validate the fields shared by transactions and incomes. Returns (values, error)."""
    title = form.get('title', '').strip()
    if not title:
        return None, 'Title is required.'
    try:
        rdate = datetime.strptime(form.get('date', ''), '%Y-%m-%d').date()
    except ValueError:
        return None, 'Invalid date format.'
    try:
        amount = Decimal(form.get('amount', ''))
        if not amount.is_finite() or amount < 0:
            return None, 'Amount must be zero or positive.'
        if amount >= MAX_AMOUNT:
            return None, 'Amount is too large.'
        amount = amount.quantize(Decimal('0.01'))
    except InvalidOperation:
        return None, 'Amount must be a number.'
    return {'title': title, 'date': rdate, 'amount': amount}, None

def _parse_transaction_form(form):
    values, error = _parse_record_form(form)
    if error:
        return None, error
    category = form.get('category', 'OTHER')
    if category not in Category.__members__:
        return None, 'Unknown category.'
    values['category'] = Category[category]
    values['description'] = form.get('description', '')
    return values, None

def _parse_income_form(form):
    values, error = _parse_record_form(form)
    if error:
        return None, error
    values['source'] = form.get('source', '')
    return values, None

def _summary_for(user, period):
    """Load the user's records and summarize them. Both dashboards go through here."""
    transactions = transactions_repo.find_by_user(user.id)
    incomes = incomes_repo.find_by_user(user.id)
    return transactions, incomes, summarize(transactions, incomes, period)

# ---------------------- Routes: Auth ----------------------
@app.route('/register', methods=['GET', 'POST'])
def register():
    if request.method == 'POST':
        username = request.form.get('username', '').strip()
        password = request.form.get('password', '')
        if not username or not password:
            flash('All fields are required.', 'error')
            return render_template('register.html')
        if User.query.filter_by(username=username).first():
            flash('Username already taken.', 'error')
            return render_template('register.html')
        user = User(username=username, password_hash=generate_password_hash(password))
        db.session.add(user)
        db.session.commit()
        app.logger.info('Registered user %s', username)
        flash('Registration successful. Please log in.', 'success')
        return redirect(url_for('login'))
    return render_template('register.html')

@app.route('/login', methods=['GET', 'POST'])
def login():
    if request.method == 'POST':
        username = request.form.get('username', '').strip()
        password = request.form.get('password', '')
        user = User.query.filter_by(username=username).first()
        if not user or not check_password_hash(user.password_hash, password):
            app.logger.info('Failed login for %s', username)
            flash('Invalid credentials.', 'error')
            return render_template('login.html')
        session['user_id'] = user.id
        app.logger.info('User %s logged in', username)
        flash('Welcome back!', 'success')
        next_url = request.args.get('next', '')
        if not next_url.startswith('/') or next_url.startswith('//'):
            next_url = url_for('home')
        return redirect(next_url)
    return render_template('login.html')

@app.route('/logout')
def logout():
    session.clear()
    flash('Logged out.', 'success')
    return redirect(url_for('login'))

# ---------------------- Routes: Pages ----------------------
@app.route('/')
def home():
    user = current_user()
    if not user:
        return render_template('landing.html')
    period = _requested_period()
    transactions, incomes, summary = _summary_for(user, period)
    return render_template(
        'home.html',
        user=user,
        period=period,
        transactions=transactions,
        income_list=incomes,
        monthly_total=summary.monthly_expense_total,
        total_earnings=summary.monthly_income_total,
        net_cashflow=summary.net_cashflow,
        category_totals=summary.category_totals,
    )

@app.route('/dashboard')
@login_required
def dashboard():
    user = current_user()
    period = _requested_period()
    transactions, _, summary = _summary_for(user, period)
    return render_template(
        'dashboard.html',
        user=user,
        period=period,
        transactions=transactions,
        monthly_total=summary.monthly_expense_total,
        total_earnings=summary.monthly_income_total,
        net_cashflow=summary.net_cashflow,
        category_totals=summary.category_totals,
    )

# ---------------------- Routes: Transactions ----------------------
@app.route('/transactions/add', methods=['GET', 'POST'])
@login_required
def add_transaction():
    if request.method == 'POST':
        values, error = _parse_transaction_form(request.form)
        if error:
            flash(error, 'error')
            return render_template('transaction_form.html', categories=Category, transaction=None), 400
        transactions_repo.add(Transaction(user_id=current_user().id, **values))
        flash('Transaction added.', 'success')
        return redirect(url_for('dashboard'))
    return render_template('transaction_form.html', categories=Category, transaction=None)

@app.route('/transactions/<int:txn_id>/edit', methods=['GET', 'POST'])
@login_required
def edit_transaction(txn_id):
    txn = transactions_repo.get_for_user(txn_id, current_user().id)
    if not txn:
        abort(404)
    if request.method == 'POST':
        values, error = _parse_transaction_form(request.form)
        if error:
            flash(error, 'error')
            return render_template('transaction_form.html', categories=Category, transaction=txn), 400
        for key, value in values.items():
            setattr(txn, key, value)
        transactions_repo.save()
        app.logger.info('Updated transaction %s', txn.id)
        flash('Transaction updated.', 'success')
        return redirect(url_for('dashboard'))
    return render_template('transaction_form.html', categories=Category, transaction=txn)

@app.route('/transactions/delete/<int:txn_id>', methods=['POST'])
@login_required
def delete_transaction(txn_id):
    txn = transactions_repo.get_for_user(txn_id, session['user_id'])
    if not txn:
        return jsonify({'success': False, 'message': 'Transaction not found.'}), 404
    transactions_repo.delete(txn)
    return jsonify({'success': True, 'message': 'Transaction deleted.'})

# ---------------------- Routes: Incomes ----------------------
@app.route('/incomes/add', methods=['GET', 'POST'])
@login_required
def add_income():
    if request.method == 'POST':
        values, error = _parse_income_form(request.form)
        if error:
            flash(error, 'error')
            return render_template('income_form.html', income=None), 400
        incomes_repo.add(Income(user_id=current_user().id, **values))
        flash('Income added.', 'success')
        return redirect(url_for('home'))
    return render_template('income_form.html', income=None)

@app.route('/incomes/<int:income_id>/edit', methods=['GET', 'POST'])
@login_required
def edit_income(income_id):
    income = incomes_repo.get_for_user(income_id, current_user().id)
    if not income:
        abort(404)
    if request.method == 'POST':
        values, error = _parse_income_form(request.form)
        if error:
            flash(error, 'error')
            return render_template('income_form.html', income=income), 400
        for key, value in values.items():
            setattr(income, key, value)
        incomes_repo.save()
        app.logger.info('Updated income %s', income.id)
        flash('Income updated.', 'success')
        return redirect(url_for('home'))
    return render_template('income_form.html', income=income)

@app.route('/incomes/delete/<int:income_id>', methods=['POST'])
@login_required
def delete_income(income_id):
    income = incomes_repo.get_for_user(income_id, session['user_id'])
    if not income:
        return jsonify({'success': False, 'message': 'Income not found.'}), 404
    incomes_repo.delete(income)
    return jsonify({'success': True, 'message': 'Income deleted.'})

# ---------------------- API Endpoints ----------------------
@app.route('/api/summary')
@login_required
def api_summary():
    _, _, summary = _summary_for(current_user(), _requested_period())
    return jsonify(summary.to_dict())

@app.route('/api/monthly_trend')
@login_required
def api_monthly_trend():
    """Return monthly income/expense for a given year. Months with no records are 0."""
    user = current_user()
    year = _requested_year()
    summaries = monthly_trend(transactions_repo.find_by_user(user.id), incomes_repo.find_by_user(user.id), year)
    return jsonify([{
        'month': str(s.period),
        'income': str(s.monthly_income_total),
        'expense': str(s.monthly_expense_total),
        'net_cashflow': str(s.net_cashflow),
    } for s in summaries])

@app.route('/api/recommendations')
@login_required
def api_recommendations():
    user = current_user()
    transactions = transactions_repo.find_by_user(user.id)
    incomes = incomes_repo.find_by_user(user.id)
    return jsonify({
        'recommendations': generate_recommendations(transactions, incomes),
        'next_month_expense_prediction': predict_next_month_expense(transactions),
    })

# ---------------------- Run App ----------------------
if __name__ == '__main__':
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)), debug=True)

import enum
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

class Category(enum.Enum):
    FOOD = 'Food'
    TRANSPORT = 'Transport'
    HOUSING = 'Housing'
    UTILITIES = 'Utilities'
    ENTERTAINMENT = 'Entertainment'
    HEALTH = 'Health'
    SHOPPING = 'Shopping'
    EDUCATION = 'Education'
    OTHER = 'Other'

    @property
    def label(self):
        return self.value

class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    # no cascade: deleting a user is not supported
    transactions = db.relationship('Transaction', backref='user', lazy=True)
    incomes = db.relationship('Income', backref='user', lazy=True)

class Transaction(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    title = db.Column(db.String(120), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)  # always positive
    date = db.Column(db.Date, nullable=False, index=True)
    category = db.Column(db.Enum(Category), nullable=False, default=Category.OTHER)
    description = db.Column(db.Text, nullable=True)

class Income(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    title = db.Column(db.String(120), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    date = db.Column(db.Date, nullable=False, index=True)
    source = db.Column(db.String(120), nullable=True)

"""Monthly cashflow aggregation.

Pure functions over a user's already-loaded transactions and incomes. Records
are read by attribute (``amount``, ``date`` and, for transactions,
``category``), so ORM rows and plain objects are both accepted.
"""
import logging
from dataclasses import dataclass, field
from datetime import MAXYEAR, MINYEAR, date, datetime
from decimal import Decimal, InvalidOperation

from models import Category

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


class DataValidationError(ValueError):
    """A record cannot be aggregated (negative amount, bad date, bad category)."""


@dataclass(frozen=True, order=True)
class Period:
    """A calendar month, covering [start, end)."""
    year: int
    month: int

    def __post_init__(self):
        if not MINYEAR <= self.year <= MAXYEAR:
            raise ValueError(f'Year must be {MINYEAR}-{MAXYEAR}, got {self.year}')
        if not 1 <= self.month <= 12:
            raise ValueError(f'Month must be 1-12, got {self.month}')

    @classmethod
    def current(cls):
        return cls.containing(date.today())

    @classmethod
    def containing(cls, day):
        return cls(day.year, day.month)

    @classmethod
    def parse(cls, text):
        """Parse 'YYYY-MM'."""
        try:
            year, month = (int(part) for part in text.split('-'))
        except (AttributeError, ValueError):
            raise ValueError(f'Invalid period {text!r}, expected YYYY-MM')
        return cls(year, month)

    @property
    def start(self):
        return date(self.year, self.month, 1)

    @property
    def end(self):
        """First day after the period, or None for December of MAXYEAR."""
        if self.is_last():
            return None
        return self.next().start

    def is_last(self):
        return self.year == MAXYEAR and self.month == 12

    def next(self):
        if self.is_last():
            raise ValueError(f'No period after {self}')
        if self.month == 12:
            return Period(self.year + 1, 1)
        return Period(self.year, self.month + 1)

    def previous(self):
        if self.month == 1:
            return Period(self.year - 1, 12)
        return Period(self.year, self.month - 1)

    def contains(self, day):
        return (day.year, day.month) == (self.year, self.month)

    def __str__(self):
        return f'{self.year:04d}-{self.month:02d}'


@dataclass
class CashflowSummary:
    period: Period
    monthly_expense_total: Decimal = ZERO
    monthly_income_total: Decimal = ZERO
    net_cashflow: Decimal = ZERO
    # categories without activity in the period are omitted
    category_totals: dict = field(default_factory=dict)

    def to_dict(self):
        return {
            'period': str(self.period),
            'expense': str(self.monthly_expense_total),
            'income': str(self.monthly_income_total),
            'net_cashflow': str(self.net_cashflow),
            'category_totals': {c.name: str(v) for c, v in self.category_totals.items()},
        }


def _amount(record):
    value = getattr(record, 'amount', None)
    if value is None or isinstance(value, bool):
        raise DataValidationError(f'Missing amount on {record!r}')
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise DataValidationError(f'Amount {value!r} is not a number')
    if not amount.is_finite():
        raise DataValidationError(f'Amount {value!r} is not a number')
    if amount < 0:
        raise DataValidationError(f'Amount {value!r} is negative')
    return amount


def _date(record):
    value = getattr(record, 'date', None)
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            raise DataValidationError(f'Date {value!r} is not an ISO date')
    raise DataValidationError(f'Missing or invalid date on {record!r}')


def _category(record):
    value = getattr(record, 'category', None)
    if isinstance(value, Category):
        return value
    if isinstance(value, str):
        if value in Category.__members__:
            return Category[value]
        try:
            return Category(value)
        except ValueError:
            pass
    raise DataValidationError(f'Unknown category {value!r}')


def _normalize_transactions(transactions):
    return [(_amount(t), _date(t), _category(t)) for t in transactions]


def _normalize_incomes(incomes):
    return [(_amount(i), _date(i)) for i in incomes]


def _summarize_normalized(expenses, earnings, period):
    summary = CashflowSummary(period=period)
    category_totals = {}
    for amount, day, category in expenses:
        if period.contains(day):
            summary.monthly_expense_total += amount
            category_totals[category] = category_totals.get(category, ZERO) + amount
    for amount, day in earnings:
        if period.contains(day):
            summary.monthly_income_total += amount
    summary.net_cashflow = summary.monthly_income_total - summary.monthly_expense_total
    summary.category_totals = category_totals
    return summary


def summarize(transactions, incomes, period=None):
    """Aggregate one user's records for ``period`` (default: current month).

    Every record is validated before anything is summed, so a
    DataValidationError never comes with a partial result.
    """
    period = period or Period.current()
    expenses = _normalize_transactions(transactions)
    earnings = _normalize_incomes(incomes)
    summary = _summarize_normalized(expenses, earnings, period)
    logger.debug('Summarized %d transactions and %d incomes for %s: net %s',
                 len(expenses), len(earnings), period, summary.net_cashflow)
    return summary


def monthly_trend(transactions, incomes, year):
    """Return the twelve monthly summaries of ``year``, January first."""
    expenses = _normalize_transactions(transactions)
    earnings = _normalize_incomes(incomes)
    return [_summarize_normalized(expenses, earnings, Period(year, m)) for m in range(1, 13)]

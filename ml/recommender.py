import pandas as pd
from sklearn.linear_model import LinearRegression

TARGET_SAVINGS_RATE = 0.2
# last month above this multiple of the earlier average counts as a spike
SPIKE_RATIO = 1.2
TOP_CATEGORIES = 3

# Callers pass the user's records as loaded by the repositories; floats are fine here,
# these figures are estimates and never feed the cashflow totals.

def _records_df(transactions, incomes=()):
    data = [{
        'date': t.date,
        'amount': float(t.amount),
        'type': 'expense',
        'category': t.category.value if hasattr(t.category, 'value') else str(t.category)
    } for t in transactions]
    data += [{
        'date': i.date,
        'amount': float(i.amount),
        'type': 'income',
        'category': 'Income'
    } for i in incomes]
    if not data:
        return pd.DataFrame(columns=['date', 'amount', 'type', 'category'])
    df = pd.DataFrame(data)
    df['date'] = pd.to_datetime(df['date'])
    return df

def _monthly_expenses(df):
    expenses = df[df['type'] == 'expense'].copy()
    expenses['ym'] = expenses['date'].dt.to_period('M').astype(str)
    return expenses.groupby('ym')['amount'].sum()

def predict_next_month_expense(transactions):
    df = _records_df(transactions)
    if df.empty:
        return 0.0
    monthly = _monthly_expenses(df)
    if len(monthly) < 2:
        # Not enough data to fit
        return float(monthly.iloc[-1])
    m = monthly.reset_index()
    m['idx'] = range(1, len(m) + 1)
    model = LinearRegression().fit(m[['idx']].values, m['amount'].values)
    pred = float(model.predict([[m['idx'].max() + 1]])[0])
    return max(pred, 0.0)

def _savings_insight(total_income, total_expense):
    if total_income <= 0:
        return 'No income recorded yet, so a savings rate cannot be computed.'
    rate = max((total_income - total_expense) / total_income, 0)
    return f'You keep {rate:.1%} of your income; the recommended baseline is {TARGET_SAVINGS_RATE:.0%}.'

def _category_insights(df):
    spend = df[df['type'] == 'expense'].groupby('category')['amount'].sum().nlargest(TOP_CATEGORIES)
    return [f'{category} is one of your largest expenses at {total:,.2f}; consider a monthly cap.'
            for category, total in spend.items()]

def _spike_insight(df):
    monthly = _monthly_expenses(df)
    if len(monthly) < 2:
        return None
    if monthly.iloc[-1] > SPIKE_RATIO * monthly.iloc[:-1].mean():
        return (f'Spending in {monthly.index[-1]} was more than {SPIKE_RATIO - 1:.0%} above '
                'your earlier monthly average.')
    return None

def generate_recommendations(transactions, incomes):
    df = _records_df(transactions, incomes)
    if df.empty:
        return ['Record at least two months of transactions to unlock insights.']
    total_income = df[df['type'] == 'income']['amount'].sum()
    total_expense = df[df['type'] == 'expense']['amount'].sum()
    recs = [_savings_insight(total_income, total_expense)]
    recs += _category_insights(df)
    if total_expense > 0:
        spike = _spike_insight(df)
        if spike:
            recs.append(spike)
    forecast = f'Expected spending next month: {predict_next_month_expense(transactions):,.2f}.'
    if total_income > 0:
        forecast += f' Try to set aside at least {total_income * TARGET_SAVINGS_RATE:,.2f}.'
    recs.append(forecast)
    return recs

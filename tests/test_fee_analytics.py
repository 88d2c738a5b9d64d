import pytest

from fee_analytics import MonthlyAggregation
from models import expense_from_api, students_from_api
from factories import raw_fee, raw_student


def _aggregation(students=(), expenses=()):
    return MonthlyAggregation(students_from_api(list(students)),
                              [expense_from_api(e) for e in expenses])


def test_monthly_fee_expense_profit():
    students = [
        raw_student('a', 'Anil', 1, fees=[raw_fee(500, '2024-01-05')]),
        raw_student('b', 'Bina', 2, fees=[raw_fee(300, '2024-02-10')]),
    ]
    expenses = [{'_id': 'e1', 'description': 'Rent', 'amount': 200, 'date': '2024-01-20',
                 'category': 'Rent'}]
    agg = _aggregation(students, expenses)

    assert agg.months == ['2024-01', '2024-02']
    assert agg.month_summary('2024-01') == {
        'month': '2024-01', 'fee': 500.0, 'expense': 200.0, 'profit': 300.0, 'profit_percentage': 60.0,
    }
    assert agg.month_summary('2024-02') == {
        'month': '2024-02', 'fee': 300.0, 'expense': 0.0, 'profit': 300.0, 'profit_percentage': 100.0,
    }


def test_default_selection_is_latest_month():
    agg = _aggregation([raw_student('a', 'Anil', 1, fees=[raw_fee(500, '2023-12-05'),
                                                          raw_fee(500, '2024-03-01')])])
    assert agg.select_month() == '2024-03'
    assert agg.select_month('2023-12') == '2023-12'


def test_month_with_only_expenses_has_zero_percentage():
    agg = _aggregation(expenses=[{'_id': 'e', 'description': 'Chairs', 'amount': 900,
                                  'date': '2024-04-02', 'category': 'Supplies'}])
    summary = agg.month_summary('2024-04')
    assert summary['fee'] == 0.0
    assert summary['profit'] == -900.0
    assert summary['profit_percentage'] == 0


def test_percentage_rounded_to_one_decimal():
    students = [raw_student('a', 'Anil', 1, fees=[raw_fee(300, '2024-05-01')])]
    expenses = [{'_id': 'e', 'description': 'x', 'amount': 100, 'date': '2024-05-03', 'category': 'Other'}]
    assert _aggregation(students, expenses).profit_percentage('2024-05') == pytest.approx(66.7)


def test_unreadable_dates_are_skipped():
    students = [raw_student('a', 'Anil', 1, fees=[raw_fee(500, 'not-a-date'), raw_fee(200, '2024-06-01')])]
    agg = _aggregation(students)
    assert agg.months == ['2024-06']
    assert agg.fee('2024-06') == 200.0


def test_no_data():
    agg = _aggregation()
    assert agg.months == []
    assert agg.select_month() is None
    assert agg.month_summary(None)['fee'] == 0.0


def test_expense_totals_by_category():
    expenses = [
        {'_id': '1', 'description': 'Rent', 'amount': 8000, 'date': '2024-01-01', 'category': 'Rent'},
        {'_id': '2', 'description': 'Power', 'amount': 1200, 'date': '2024-01-10', 'category': 'Utilities'},
        {'_id': '3', 'description': 'Rent', 'amount': 8000, 'date': '2024-02-01', 'category': 'Rent'},
    ]
    agg = _aggregation(expenses=expenses)
    assert agg.total_expenses() == 17200.0
    assert agg.expenses_by_category() == {'Rent': 16000.0, 'Utilities': 1200.0}

from datetime import datetime

from create_test_data import make_demo_expenses, make_demo_students, push_demo_data
from models import EXPENSE_CATEGORIES, students_from_api
from seat_engine import reconcile_seats

TODAY = datetime(2024, 6, 15)


def test_demo_students_are_seeded_and_seat_unique():
    first = make_demo_students(20, total_seats=25, seed=7, today=TODAY)
    second = make_demo_students(20, total_seats=25, seed=7, today=TODAY)
    assert first == second

    seats = [s['seatNumber'] for s in first]
    assert len(set(seats)) == 20
    assert all(1 <= n <= 25 for n in seats)
    assert all(len(s['mobile']) == 10 for s in first)

    layout = reconcile_seats(25, students_from_api(first))
    assert layout['conflicts'] == {}
    assert len(layout['available_seat_numbers']) == 5


def test_student_count_capped_by_seats():
    assert len(make_demo_students(30, total_seats=10, seed=1, today=TODAY)) == 10


def test_demo_expenses_cover_each_month():
    expenses = make_demo_expenses(months=3, seed=3, today=TODAY)
    rent_months = sorted(e['date'][:7] for e in expenses if e['description'] == 'Hall rent')
    assert rent_months == ['2024-04', '2024-05', '2024-06']
    assert all(e['category'] in EXPENSE_CATEGORIES for e in expenses)


def test_push_demo_data(backend, fake_api):
    students = make_demo_students(3, total_seats=5, seed=2, today=TODAY)
    expenses = make_demo_expenses(months=1, seed=2, today=TODAY)
    counts = push_demo_data(fake_api, students, expenses)

    assert counts['students'] == 3
    assert counts['fees'] == sum(len(s['fees']) for s in students)
    assert counts['expenses'] == len(expenses)
    assert len(backend.students) == 3

#!/usr/bin/env python3
"""
Create demo data for a coaching institute: students on seats, their monthly
fee payments and a few months of running expenses.

Run directly to push the data to a backend account:

    DEMO_EMAIL=owner@example.com DEMO_PASSWORD=secret python create_test_data.py
"""
import os
import random
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pandas as pd
from faker import Faker

from api_client import ApiClient, ApiError
from config import Config
from models import EXPENSE_CATEGORIES

COURSES = ['JEE Mains', 'NEET', 'Class 10 Boards', 'Class 12 Boards', 'SSC CGL', 'UPSC Prelims']

logger = logging.getLogger(__name__)


def make_demo_students(count: int = 30, total_seats: int = 50, seed: Optional[int] = None,
                       today: Optional[datetime] = None) -> List[Dict]:
    """
    Students in backend (camelCase) shape, each on a distinct seat, with
    monthly payments from their join date. Roughly one in five stops paying
    a couple of months back so the follow-up list has something in it.
    """
    fake = Faker('en_IN')  # Indian locale for better names
    rng = random.Random(seed)
    if seed is not None:
        fake.seed_instance(seed)
    today = today or datetime.now()

    count = min(count, total_seats)
    seats = rng.sample(range(1, total_seats + 1), count)

    students = []
    for seat_number in seats:
        monthly = rng.choice([500, 800, 1000, 1500])
        months_enrolled = rng.randint(1, 8)
        join_date = today - timedelta(days=30 * months_enrolled + rng.randint(0, 10))

        paid_months = months_enrolled
        if rng.random() < 0.2:
            paid_months = max(months_enrolled - rng.randint(2, 3), 0)

        fees = []
        for month in range(paid_months):
            paid_on = join_date + timedelta(days=30 * month + rng.randint(0, 5))
            fees.append({
                'amount': monthly,
                'date': paid_on.strftime('%Y-%m-%d'),
                'description': 'Monthly Fee',
            })

        students.append({
            'name': fake.name(),
            'mobile': f"{rng.randint(6, 9)}{rng.randint(0, 999999999):09d}",
            'address': fake.city(),
            'courseName': rng.choice(COURSES),
            'joinDate': join_date.strftime('%Y-%m-%d'),
            'seatNumber': seat_number,
            'totalFees': monthly * 12,
            'fees': fees,
        })

    return students


def make_demo_expenses(months: int = 6, seed: Optional[int] = None,
                       today: Optional[datetime] = None) -> List[Dict]:
    """Rent and utilities every month plus a few one-off purchases."""
    fake = Faker('en_IN')
    rng = random.Random(seed)
    if seed is not None:
        fake.seed_instance(seed)
    today = today or datetime.now()

    expenses = []
    for back in range(months):
        year, month = divmod(today.year * 12 + today.month - 1 - back, 12)
        month_start = datetime(year, month + 1, 1)
        expenses.append({'description': 'Hall rent', 'amount': 8000, 'category': 'Rent',
                         'date': month_start.strftime('%Y-%m-%d')})
        expenses.append({'description': 'Electricity bill', 'amount': rng.randint(900, 2500),
                         'category': 'Utilities',
                         'date': (month_start + timedelta(days=9)).strftime('%Y-%m-%d')})
        for _ in range(rng.randint(0, 2)):
            expenses.append({
                'description': fake.sentence(nb_words=3).rstrip('.'),
                'amount': rng.randint(100, 3000),
                'category': rng.choice(EXPENSE_CATEGORIES),
                'date': (month_start + timedelta(days=rng.randint(0, 27))).strftime('%Y-%m-%d'),
            })

    return expenses


def save_demo_workbook(students: List[Dict], output_file: str = 'demo_students.xlsx') -> str:
    rows = [{k: v for k, v in s.items() if k != 'fees'} for s in students]
    df = pd.DataFrame(rows).sort_values('seatNumber')
    df.to_excel(output_file, index=False, engine='openpyxl')
    return output_file


def push_demo_data(api: ApiClient, students: List[Dict], expenses: List[Dict]) -> Dict[str, int]:
    """Create every student (then their payments) and every expense through the API."""
    created = {'students': 0, 'fees': 0, 'expenses': 0}

    for student in students:
        fields = {k: str(v) for k, v in student.items() if k != 'fees'}
        try:
            record = api.create_student(fields) or {}
        except ApiError as e:
            logger.error(f"Could not create {student['name']}: {e.message or e}")
            continue
        created['students'] += 1

        student_id = record.get('_id') or record.get('id')
        if not student_id:
            continue
        for fee in student['fees']:
            try:
                api.add_fee(student_id, fee)
                created['fees'] += 1
            except ApiError as e:
                logger.error(f"Could not add fee for {student['name']}: {e.message or e}")

    for expense in expenses:
        try:
            api.add_expense(expense)
            created['expenses'] += 1
        except ApiError as e:
            logger.error(f"Could not add expense {expense['description']}: {e.message or e}")

    return created


if __name__ == "__main__":
    logging.basicConfig(level=Config.LOG_LEVEL)
    print("🎓 Creating demo data for the coaching dashboard")
    print("=" * 50)

    students = make_demo_students(total_seats=Config.DEFAULT_TOTAL_SEATS)
    expenses = make_demo_expenses()
    output_file = save_demo_workbook(students)

    print(f"📊 Students: {len(students)}")
    print(f"💰 Payments: {sum(len(s['fees']) for s in students)}")
    print(f"🧾 Expenses: {len(expenses)}")
    print(f"📁 Student sheet written to '{output_file}'")

    email = os.environ.get('DEMO_EMAIL')
    password = os.environ.get('DEMO_PASSWORD')
    if not email or not password:
        print("ℹ️  Set DEMO_EMAIL and DEMO_PASSWORD to push the data to the backend")
    else:
        client = ApiClient(Config.API_URL, timeout=Config.API_TIMEOUT)
        try:
            token, _ = client.login(email, password)
        except ApiError as e:
            print(f"❌ Login failed: {e.message or e}")
        else:
            client.token = token
            counts = push_demo_data(client, students, expenses)
            print(f"✅ Created {counts['students']} students, {counts['fees']} payments, "
                  f"{counts['expenses']} expenses")

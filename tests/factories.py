"""Backend-shaped (camelCase) records for tests."""
import copy
from datetime import datetime, timedelta
from typing import Dict, List, Optional


def raw_fee(amount, date, description="Monthly Fee", fee_id=None) -> Dict:
    return {'_id': fee_id or f"fee-{date}-{amount}", 'amount': amount, 'date': date,
            'description': description}


def raw_student(student_id: str, name: str, seat: Optional[int], fees: Optional[List[Dict]] = None,
                total_fees=6000, image=None, **extra) -> Dict:
    record = {
        '_id': student_id,
        'name': name,
        'mobile': '9876543210',
        'address': 'Sector 12, Noida',
        'courseName': 'JEE Mains',
        'joinDate': '2024-01-02T00:00:00.000Z',
        'seatNumber': seat,
        'totalFees': total_fees,
        'fees': fees or [],
    }
    if image:
        record['image'] = image
    record.update(extra)
    return record


def days_ago(days: int, now: Optional[datetime] = None) -> str:
    return ((now or datetime.now()) - timedelta(days=days)).strftime('%Y-%m-%dT%H:%M:%S')


def clone(records):
    return copy.deepcopy(records)

import math
from datetime import datetime
from typing import Dict, List, Optional
from urllib.parse import quote

from models import format_amount, last_payment, total_paid

NO_PAYMENTS_TEXT = "No fees paid yet"
WHATSAPP_SHARE_URL = "https://wa.me/?text="


def days_since(when: Optional[datetime], now: Optional[datetime] = None) -> Optional[int]:
    """Whole days elapsed, floored. None when there is no date."""
    if when is None:
        return None
    now = now or datetime.now()
    return math.floor((now - when).total_seconds() / 86400)


def classify_student(student: Dict, threshold_days: int = 30, now: Optional[datetime] = None) -> Dict:
    """
    Follow-up entry for one student.

    Students without any payment are overdue outright. Otherwise the
    overdue badge goes on only once the last payment is more than
    ``threshold_days`` old; younger gaps are still listed, unbadged.
    """
    last = last_payment(student)
    days = days_since(last['date'], now) if last else None

    if last is None:
        is_overdue = True
        status_text = NO_PAYMENTS_TEXT
    else:
        is_overdue = days is not None and days > threshold_days
        status_text = f"Last Payment: ₹{format_amount(last['amount'])} ({days} days ago)"

    return {
        'student': student,
        'last_payment': last,
        'days_since_last_payment': days,
        'total_paid': total_paid(student),
        'no_payments': last is None,
        'is_overdue': is_overdue,
        'badge': f"{days} days overdue" if last is not None and is_overdue else "Overdue",
        'status_text': status_text,
    }


def classify_students(students: List[Dict], threshold_days: int = 30,
                      now: Optional[datetime] = None) -> List[Dict]:
    return [classify_student(s, threshold_days, now) for s in students]


def reminder_message(institute_name: str, student: Dict, days_since_last_payment: Optional[int]) -> str:
    last = last_payment(student)

    message = f"📚 *Fee Reminder - {institute_name}*\n\n"
    message += f"👤 *{student.get('name', '')}*\n"
    message += f"🪑 Seat: {student.get('seat_number') or '-'}\n"
    message += f"📱 Mobile: {student.get('mobile', '')}\n"
    if last:
        message += f"💰 Last Fee: ₹{format_amount(last['amount'])} ({days_since_last_payment} days ago)\n"
    else:
        message += f"💰 Status: {NO_PAYMENTS_TEXT}\n"
    message += "\nPlease submit your monthly fee at the earliest.\n"
    message += "Thank you!"
    return message


def whatsapp_link(message: str) -> str:
    # Same escaping as JavaScript's encodeURIComponent
    return WHATSAPP_SHARE_URL + quote(message, safe="-_.!~*'()")

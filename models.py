# Records are owned by the backend; these helpers turn its camelCase JSON into
# the snake_case dicts the rest of the app works with, and back again.
import re
from typing import Dict, List, Optional

from date_utils import iso_day, parse_datetime

EXPENSE_CATEGORIES = [
    "General",
    "Rent",
    "Utilities",
    "Supplies",
    "Maintenance",
    "Marketing",
    "Other",
]


def _to_float(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _to_int(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def format_amount(value) -> str:
    """500.0 -> '500', 499.5 -> '499.5'"""
    amount = _to_float(value)
    if amount.is_integer():
        return str(int(amount))
    return f"{amount:.2f}".rstrip("0").rstrip(".")


def resolve_asset_url(path: Optional[str], asset_base_url: str = "") -> Optional[str]:
    if not path:
        return None
    if path.startswith("/"):
        return f"{asset_base_url.rstrip('/')}{path}"
    return path


def initials(name: str) -> str:
    parts = [p for p in re.split(r"\s+", (name or "").strip()) if p]
    if not parts:
        return "?"
    if len(parts) == 1:
        return parts[0][0].upper()
    return (parts[0][0] + parts[-1][0]).upper()


def fee_from_api(raw: Dict, tz_name: str = "") -> Dict:
    return {
        'id': raw.get('_id') or raw.get('id'),
        'amount': _to_float(raw.get('amount')),
        'date': parse_datetime(raw.get('date'), tz_name),
        'description': raw.get('description') or "",
        'status': raw.get('status') or "paid",
    }


def student_from_api(raw: Dict, asset_base_url: str = "", tz_name: str = "") -> Dict:
    fees = raw.get('fees') if isinstance(raw.get('fees'), list) else []
    return {
        'id': raw.get('_id') or raw.get('id'),
        'name': raw.get('name') or "",
        'mobile': raw.get('mobile') or "",
        'address': raw.get('address') or "",
        'course_name': raw.get('courseName') or "",
        'join_date': parse_datetime(raw.get('joinDate'), tz_name),
        'seat_number': _to_int(raw.get('seatNumber')),
        'total_fees': _to_float(raw.get('totalFees')),
        'image': resolve_asset_url(raw.get('image'), asset_base_url),
        'fees': [fee_from_api(f, tz_name) for f in fees],
    }


def expense_from_api(raw: Dict, tz_name: str = "") -> Dict:
    return {
        'id': raw.get('_id') or raw.get('id'),
        'description': raw.get('description') or "",
        'amount': _to_float(raw.get('amount')),
        'date': parse_datetime(raw.get('date'), tz_name),
        'category': raw.get('category') or "General",
    }


def profile_from_api(raw: Optional[Dict]) -> Dict:
    raw = raw or {}
    return {
        'email': raw.get('email') or "",
        'coaching_name': raw.get('coachingName') or "",
        'owner_name': raw.get('ownerName') or "",
        'seats': _to_int(raw.get('seats')),
    }


def profile_to_api(profile: Dict) -> Dict:
    return {
        'email': profile.get('email', ""),
        'coachingName': profile.get('coaching_name', ""),
        'ownerName': profile.get('owner_name', ""),
        'seats': profile.get('seats') or 0,
    }


def student_to_form(data: Dict, original_seat_number: Optional[int] = None) -> Dict[str, str]:
    """Multipart text fields for student create/update."""
    fields = {
        'name': data.get('name', ""),
        'mobile': data.get('mobile', ""),
        'address': data.get('address', ""),
        'courseName': data.get('course_name', ""),
        'joinDate': iso_day(data.get('join_date')),
        'seatNumber': str(data.get('seat_number') or ""),
        'totalFees': format_amount(data.get('total_fees') or 0),
    }
    if original_seat_number is not None:
        fields['originalSeatNumber'] = str(original_seat_number)
    return fields


def fee_to_api(data: Dict) -> Dict:
    return {
        'amount': _to_float(data.get('amount')),
        'date': iso_day(data.get('date')),
        'description': data.get('description') or "Monthly Fee",
    }


def expense_to_api(data: Dict) -> Dict:
    return {
        'description': data.get('description', ""),
        'amount': _to_float(data.get('amount')),
        'date': iso_day(data.get('date')),
        'category': data.get('category') or "General",
    }


def total_paid(student: Dict) -> float:
    return sum(f['amount'] for f in student.get('fees', []))


def remaining_balance(student: Dict) -> float:
    return student.get('total_fees', 0.0) - total_paid(student)


def last_payment(student: Dict) -> Optional[Dict]:
    """Most recent payment; the backend appends fees in chronological order."""
    fees: List[Dict] = student.get('fees') or []
    return fees[-1] if fees else None


def students_from_api(raw_students: List[Dict], asset_base_url: str = "", tz_name: str = "") -> List[Dict]:
    return [student_from_api(s, asset_base_url, tz_name) for s in raw_students]

# Client-side validation. Each validator returns (data, errors); a non-empty
# errors dict (field -> message) means the form must not be submitted.
import math
import re
from datetime import datetime
from typing import Dict, Iterable, Optional, Tuple

from models import EXPENSE_CATEGORIES

MOBILE_ERROR = "Mobile number must be exactly 10 digits"
MIN_PASSWORD_LENGTH = 6


def clean_mobile(value: str) -> str:
    return re.sub(r"\D", "", value or "")


def _field(form, name: str) -> str:
    return (form.get(name) or "").strip()


def _parse_day(value: str) -> Optional[str]:
    try:
        return datetime.strptime(value, "%Y-%m-%d").strftime("%Y-%m-%d")
    except ValueError:
        return None


def _parse_number(value: str) -> Optional[float]:
    try:
        number = float(value)
    except ValueError:
        return None
    # float() accepts "nan" and "inf", which are not amounts
    return number if math.isfinite(number) else None


def allowed_image(filename: str, allowed_extensions: Iterable[str]) -> bool:
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in allowed_extensions


def validate_student_form(form, available_seats: Iterable[int],
                          current_seat: Optional[int] = None) -> Tuple[Dict, Dict[str, str]]:
    """
    ``available_seats`` are the free seats from the latest reconciliation;
    on edit the student's own ``current_seat`` is acceptable too.
    """
    errors: Dict[str, str] = {}
    data = {
        'name': _field(form, 'name'),
        'mobile': clean_mobile(_field(form, 'mobile')),
        'address': _field(form, 'address'),
        'course_name': _field(form, 'course_name'),
    }

    if not data['name']:
        errors['name'] = "Name is required"
    if len(data['mobile']) != 10:
        errors['mobile'] = MOBILE_ERROR

    join_date = _field(form, 'join_date') or datetime.now().strftime("%Y-%m-%d")
    data['join_date'] = _parse_day(join_date)
    if data['join_date'] is None:
        errors['join_date'] = "Join date must be a valid date"

    seat_text = _field(form, 'seat_number')
    try:
        seat_number = int(seat_text)
    except ValueError:
        seat_number = None
    allowed = set(available_seats)
    if current_seat is not None:
        allowed.add(current_seat)
    if seat_number is None:
        errors['seat_number'] = "Select a seat"
    elif seat_number not in allowed:
        errors['seat_number'] = f"Seat {seat_number} is not available"
    data['seat_number'] = seat_number

    total_fees = _parse_number(_field(form, 'total_fees') or "0")
    if total_fees is None or total_fees < 0:
        errors['total_fees'] = "Total fees must be a non-negative number"
    data['total_fees'] = total_fees or 0.0

    return data, errors


def validate_fee_form(form) -> Tuple[Dict, Dict[str, str]]:
    errors: Dict[str, str] = {}
    amount = _parse_number(_field(form, 'amount'))
    if amount is None or amount <= 0:
        errors['amount'] = "Amount must be greater than zero"

    day = _parse_day(_field(form, 'date') or datetime.now().strftime("%Y-%m-%d"))
    if day is None:
        errors['date'] = "Date must be a valid date"

    data = {
        'amount': amount,
        'date': day,
        'description': _field(form, 'description') or "Monthly Fee",
    }
    return data, errors


def validate_expense_form(form) -> Tuple[Dict, Dict[str, str]]:
    errors: Dict[str, str] = {}
    description = _field(form, 'description')
    if not description:
        errors['description'] = "Description is required"

    amount = _parse_number(_field(form, 'amount'))
    if amount is None or amount <= 0:
        errors['amount'] = "Amount must be greater than zero"

    day = _parse_day(_field(form, 'date') or datetime.now().strftime("%Y-%m-%d"))
    if day is None:
        errors['date'] = "Date must be a valid date"

    category = _field(form, 'category') or "General"
    if category not in EXPENSE_CATEGORIES:
        errors['category'] = "Unknown category"

    data = {'description': description, 'amount': amount, 'date': day, 'category': category}
    return data, errors


def validate_password_form(form) -> Tuple[Dict, Dict[str, str]]:
    errors: Dict[str, str] = {}
    current = form.get('current_password') or ""
    new = form.get('new_password') or ""
    confirm = form.get('confirm_password') or ""

    if not current:
        errors['current_password'] = "Current password is required"
    if new != confirm:
        errors['confirm_password'] = "New password and confirm password do not match"
    if len(new) < MIN_PASSWORD_LENGTH:
        errors['new_password'] = f"New password must be at least {MIN_PASSWORD_LENGTH} characters long"

    return {'current_password': current, 'new_password': new}, errors


def validate_login_form(form) -> Tuple[Dict, Dict[str, str]]:
    errors: Dict[str, str] = {}
    email = _field(form, 'email')
    password = form.get('password') or ""
    if not email:
        errors['email'] = "Email is required"
    if not password:
        errors['password'] = "Password is required"
    return {'email': email, 'password': password}, errors


def _validate_institute(form, errors: Dict[str, str]) -> Dict:
    data = {
        'email': _field(form, 'email'),
        'coaching_name': _field(form, 'coaching_name'),
        'owner_name': _field(form, 'owner_name'),
    }
    if not data['email'] or '@' not in data['email']:
        errors['email'] = "A valid email is required"
    if not data['coaching_name']:
        errors['coaching_name'] = "Coaching institute name is required"
    if not data['owner_name']:
        errors['owner_name'] = "Owner name is required"

    try:
        seats = int(_field(form, 'seats'))
    except ValueError:
        seats = None
    if seats is None or seats <= 0:
        errors['seats'] = "Number of seats must be a positive whole number"
    data['seats'] = seats
    return data


def validate_register_form(form) -> Tuple[Dict, Dict[str, str]]:
    errors: Dict[str, str] = {}
    data = _validate_institute(form, errors)
    data['password'] = form.get('password') or ""
    if len(data['password']) < MIN_PASSWORD_LENGTH:
        errors['password'] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    return data, errors


def validate_profile_form(form) -> Tuple[Dict, Dict[str, str]]:
    errors: Dict[str, str] = {}
    data = _validate_institute(form, errors)
    return data, errors

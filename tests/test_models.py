from datetime import datetime

from date_utils import month_key, parse_datetime
from models import (
    format_amount, initials, profile_from_api, profile_to_api, remaining_balance, student_from_api,
    student_to_form, total_paid
)
from factories import raw_fee, raw_student


def test_student_from_api_normalizes_fields():
    raw = raw_student('s1', 'Anil Kumar', '7', fees=[raw_fee('500', '2024-01-05')], total_fees='6000',
                      image='/uploads/anil.png')
    student = student_from_api(raw, asset_base_url='http://backend:4000')

    assert student['id'] == 's1'
    assert student['seat_number'] == 7
    assert student['total_fees'] == 6000.0
    assert student['course_name'] == 'JEE Mains'
    assert student['image'] == 'http://backend:4000/uploads/anil.png'
    assert student['fees'][0]['amount'] == 500.0
    assert student['fees'][0]['date'] == datetime(2024, 1, 5)
    assert total_paid(student) == 500.0
    assert remaining_balance(student) == 5500.0


def test_student_to_form_sends_original_seat_on_edit():
    data = {'name': 'Anil', 'mobile': '9876543210', 'address': 'Noida', 'course_name': 'NEET',
            'join_date': '2024-02-01', 'seat_number': 7, 'total_fees': 12000.0}

    assert 'originalSeatNumber' not in student_to_form(data)
    fields = student_to_form(data, original_seat_number=3)
    assert fields['seatNumber'] == '7'
    assert fields['originalSeatNumber'] == '3'
    assert fields['courseName'] == 'NEET'
    assert fields['totalFees'] == '12000'


def test_profile_round_trip_keys():
    profile = profile_from_api({'email': 'a@b.c', 'coachingName': 'Bright', 'ownerName': 'Asha', 'seats': '40'})
    assert profile == {'email': 'a@b.c', 'coaching_name': 'Bright', 'owner_name': 'Asha', 'seats': 40}
    assert profile_to_api(profile)['coachingName'] == 'Bright'


def test_format_amount_and_initials():
    assert format_amount(500.0) == '500'
    assert format_amount(499.5) == '499.5'
    assert initials('anil kumar sharma') == 'AS'
    assert initials('') == '?'


def test_offset_timestamps_convert_to_local_zone():
    parsed = parse_datetime('2024-01-31T20:00:00.000Z', 'Asia/Kolkata')
    assert parsed == datetime(2024, 2, 1, 1, 30)
    assert month_key('2024-01-31T20:00:00.000Z', 'Asia/Kolkata') == '2024-02'
    assert parse_datetime('garbage') is None

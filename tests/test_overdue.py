from datetime import datetime
from urllib.parse import unquote

from models import student_from_api
from overdue import classify_student, days_since, reminder_message, whatsapp_link
from factories import days_ago, raw_fee, raw_student

NOW = datetime(2024, 3, 15, 12, 0, 0)


def _student(*fees):
    return student_from_api(raw_student('a', 'Anil Kumar', 4, fees=list(fees)))


def test_thirty_days_is_not_overdue():
    entry = classify_student(_student(raw_fee(800, days_ago(30, NOW))), 30, NOW)
    assert entry['days_since_last_payment'] == 30
    assert entry['is_overdue'] is False


def test_thirty_one_days_is_overdue():
    entry = classify_student(_student(raw_fee(800, days_ago(31, NOW))), 30, NOW)
    assert entry['days_since_last_payment'] == 31
    assert entry['is_overdue'] is True
    assert entry['badge'] == '31 days overdue'
    assert entry['status_text'] == 'Last Payment: ₹800 (31 days ago)'


def test_no_payments_is_overdue():
    entry = classify_student(_student(), 30, NOW)
    assert entry['no_payments'] is True
    assert entry['is_overdue'] is True
    assert entry['badge'] == 'Overdue'
    assert entry['status_text'] == 'No fees paid yet'
    assert entry['days_since_last_payment'] is None


def test_last_payment_is_last_in_list():
    entry = classify_student(_student(raw_fee(500, days_ago(60, NOW)), raw_fee(700, days_ago(5, NOW))),
                             30, NOW)
    assert entry['last_payment']['amount'] == 700.0
    assert entry['total_paid'] == 1200.0
    assert entry['is_overdue'] is False


def test_days_since_floors_partial_days():
    assert days_since(datetime(2024, 3, 13, 18, 0), NOW) == 1
    assert days_since(None, NOW) is None


def test_reminder_message_and_link():
    student = _student(raw_fee(800, days_ago(40, NOW)))
    message = reminder_message('Bright Future Academy', student, 40)

    assert message.startswith('📚 *Fee Reminder - Bright Future Academy*')
    assert '👤 *Anil Kumar*' in message
    assert '🪑 Seat: 4' in message
    assert '💰 Last Fee: ₹800 (40 days ago)' in message
    assert message.endswith('Thank you!')

    link = whatsapp_link(message)
    assert link.startswith('https://wa.me/?text=')
    assert ' ' not in link
    assert unquote(link[len('https://wa.me/?text='):]) == message


def test_reminder_message_without_payments():
    message = reminder_message('Bright Future Academy', _student(), None)
    assert '💰 Status: No fees paid yet' in message

import itertools
from unittest.mock import patch

import pytest

from api_client import ApiError
from factories import clone, raw_student

PROFILE = {
    'email': 'owner@example.com',
    'coachingName': 'Bright Future Academy',
    'ownerName': 'Asha Rao',
    'seats': 10,
}


class FakeBackend:
    """In-memory stand-in for the REST backend, shared by every FakeApi of a test."""

    def __init__(self):
        self.students = []
        self.expenses = []
        self.profile = dict(PROFILE)
        self.password = 'secret123'
        self.calls = []
        self.failing = {}
        self.assets = {}
        self._ids = itertools.count(1)

    def next_id(self, prefix):
        return f"{prefix}-{next(self._ids)}"

    def fail(self, method, message=None, status_code=500):
        self.failing[method] = (message, status_code)

    def count(self, method):
        return sum(1 for call in self.calls if call[0] == method)

    def find(self, student_id):
        for student in self.students:
            if student['_id'] == student_id:
                return student
        raise ApiError('Student not found', 404)


class FakeApi:
    def __init__(self, backend, base_url, token=None, asset_base_url="", timeout=20):
        self.backend = backend
        self.base_url = base_url
        self.token = token
        self.timeout = timeout

    def _call(self, method, *args):
        self.backend.calls.append((method,) + args)
        if method in self.backend.failing:
            message, status_code = self.backend.failing[method]
            raise ApiError(message, status_code)

    def login(self, email, password):
        self._call('login', email)
        if password != self.backend.password:
            raise ApiError('Invalid credentials', 401)
        return 'tok-123', dict(self.backend.profile)

    def register(self, email, password, coaching_name, seats, owner_name):
        self._call('register', email, coaching_name, seats, owner_name)
        return {'message': 'registered'}

    def get_profile(self):
        self._call('get_profile')
        return dict(self.backend.profile)

    def update_profile(self, payload):
        self._call('update_profile', payload)
        self.backend.profile.update(payload)

    def change_password(self, current_password, new_password):
        self._call('change_password', current_password, new_password)
        if current_password != self.backend.password:
            raise ApiError('Current password is incorrect', 400)
        self.backend.password = new_password

    def list_students(self):
        self._call('list_students')
        return clone(self.backend.students)

    def get_student(self, student_id):
        self._call('get_student', student_id)
        return clone(self.backend.find(student_id))

    def overdue_students(self):
        self._call('overdue_students')
        return clone(self.backend.students)

    def create_student(self, fields, photo=None):
        self._call('create_student', fields, photo)
        record = raw_student(self.backend.next_id('stu'), fields['name'], int(fields['seatNumber']),
                             total_fees=float(fields['totalFees']), mobile=fields['mobile'],
                             address=fields['address'], courseName=fields['courseName'],
                             joinDate=fields['joinDate'])
        self.backend.students.append(record)
        return clone(record)

    def update_student(self, student_id, fields, photo=None):
        self._call('update_student', student_id, fields, photo)
        record = self.backend.find(student_id)
        record.update({
            'name': fields['name'],
            'mobile': fields['mobile'],
            'address': fields['address'],
            'courseName': fields['courseName'],
            'joinDate': fields['joinDate'],
            'seatNumber': int(fields['seatNumber']),
            'totalFees': float(fields['totalFees']),
        })
        return clone(record)

    def delete_student(self, student_id):
        self._call('delete_student', student_id)
        self.backend.students.remove(self.backend.find(student_id))

    def add_fee(self, student_id, payload):
        self._call('add_fee', student_id, payload)
        record = dict(payload, _id=self.backend.next_id('fee'))
        self.backend.find(student_id)['fees'].append(record)

    def update_fee(self, student_id, fee_id, payload):
        self._call('update_fee', student_id, fee_id, payload)
        for fee in self.backend.find(student_id)['fees']:
            if fee['_id'] == fee_id:
                fee.update(payload)

    def delete_fee(self, student_id, fee_id):
        self._call('delete_fee', student_id, fee_id)
        student = self.backend.find(student_id)
        student['fees'] = [f for f in student['fees'] if f['_id'] != fee_id]

    def list_expenses(self):
        self._call('list_expenses')
        return clone(self.backend.expenses)

    def add_expense(self, payload):
        self._call('add_expense', payload)
        self.backend.expenses.append(dict(payload, _id=self.backend.next_id('exp')))

    def delete_expense(self, expense_id):
        self._call('delete_expense', expense_id)
        self.backend.expenses = [e for e in self.backend.expenses if e['_id'] != expense_id]

    def fetch_asset(self, url):
        return self.backend.assets.get(url)


@pytest.fixture()
def backend():
    return FakeBackend()


@pytest.fixture()
def app(backend, tmp_path):
    import app as app_module

    flask_app = app_module.app
    flask_app.config['TESTING'] = True
    flask_app.config['SECRET_KEY'] = 'test-secret'
    app_module.excel_handler.export_folder = str(tmp_path)
    app_module.directory.clear()

    with patch('app.ApiClient', lambda *args, **kwargs: FakeApi(backend, *args, **kwargs)):
        yield flask_app

    app_module.directory.clear()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def logged_in(client):
    with client.session_transaction() as sess:
        sess['token'] = 'tok-123'
        sess['user_data'] = {
            'email': PROFILE['email'],
            'coaching_name': PROFILE['coachingName'],
            'owner_name': PROFILE['ownerName'],
            'seats': PROFILE['seats'],
        }
    return client


@pytest.fixture()
def fake_api(backend):
    return FakeApi(backend, 'http://backend/api', token='tok-123')

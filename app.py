import os
import io
import logging
from datetime import datetime
from functools import wraps
from typing import Dict, List, Optional

from flask import Flask, render_template, request, redirect, url_for, flash, send_file, session
from werkzeug.utils import secure_filename

from api_client import ApiClient, ApiError
from card_renderer import card_renderer, id_card_filename, receipt_filename
from config import Config
from date_utils import display_date, iso_day
from events import StudentDirectory, expenses_changed, fees_changed, profile_changed, student_changed
from excel_handler import ExcelHandler
from fee_analytics import MonthlyAggregation
from forms import (
    allowed_image, validate_expense_form, validate_fee_form, validate_login_form,
    validate_password_form, validate_profile_form, validate_register_form, validate_student_form
)
from models import (
    EXPENSE_CATEGORIES, expense_from_api, expense_to_api, fee_to_api, format_amount,
    initials, profile_from_api, profile_to_api, remaining_balance, student_from_api,
    student_to_form, students_from_api, total_paid
)
from overdue import classify_student, classify_students, reminder_message, whatsapp_link
from seat_engine import seat_reconciliation
from session_context import SessionContext

app = Flask(__name__)
app.config.from_object(Config)

# Set up logging
logging.basicConfig(level=app.config['LOG_LEVEL'])

# Ensure directories exist
os.makedirs(app.config['EXPORT_FOLDER'], exist_ok=True)

# Initialize handlers
excel_handler = ExcelHandler(app.config['EXPORT_FOLDER'])
directory = StudentDirectory(app.config['STUDENT_CACHE_SECONDS']).connect()


def session_context() -> SessionContext:
    return SessionContext(session, app.config['HIGHLIGHT_SECONDS'])


def get_api() -> ApiClient:
    return ApiClient(
        app.config['API_URL'],
        token=session_context().token,
        asset_base_url=app.config['ASSET_BASE_URL'],
        timeout=app.config['API_TIMEOUT'],
    )


def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not session_context().is_authenticated:
            return redirect(url_for('login', next=request.path))
        return f(*args, **kwargs)
    return decorated_function


def institute_name() -> str:
    return session_context().institute_name(app.config['INSTITUTE_FALLBACK_NAME'])


def total_seats() -> int:
    return session_context().total_seats(app.config['DEFAULT_TOTAL_SEATS'])


def flash_api_error(error: ApiError, fallback: str):
    flash(error.message or fallback, 'error')


def _safe_next(target: Optional[str]) -> str:
    if target and target.startswith('/') and not target.startswith('//'):
        return target
    return url_for('dashboard')


def load_students(api: ApiClient) -> List[Dict]:
    raw = directory.students(api.token, api.list_students)
    return students_from_api(raw, app.config['ASSET_BASE_URL'], app.config['LOCAL_TIMEZONE'])


def load_student(api: ApiClient, student_id: str) -> Dict:
    return student_from_api(api.get_student(student_id), app.config['ASSET_BASE_URL'],
                            app.config['LOCAL_TIMEZONE'])


def load_expenses(api: ApiClient) -> List[Dict]:
    raw = directory.expenses(api.token, api.list_expenses)
    return [expense_from_api(e, app.config['LOCAL_TIMEZONE']) for e in raw]


def seat_layout(api: ApiClient) -> Dict:
    return seat_reconciliation.load_layout(lambda: load_students(api), total_seats())


def refresh_profile(api: ApiClient) -> Dict:
    """Pull the latest profile; the cached copy stays in place if the backend is unreachable."""
    ctx = session_context()
    try:
        profile = profile_from_api(api.get_profile())
        ctx.save_profile(profile)
        return profile
    except ApiError as e:
        logging.error(f"Error fetching profile: {str(e)}")
        return ctx.profile


def _photo_upload(errors: Dict[str, str]):
    file = request.files.get('image')
    if not file or not file.filename:
        return None
    if not allowed_image(file.filename, app.config['ALLOWED_IMAGE_EXTENSIONS']):
        errors['image'] = "Photo must be an image file (png, jpg, jpeg, gif, webp)"
        return None
    return (secure_filename(file.filename), file.stream, file.mimetype or 'application/octet-stream')


@app.context_processor
def inject_globals():
    ctx = session_context()
    return {
        'institute_name': institute_name(),
        'owner_name': ctx.profile.get('owner_name') or "",
        'is_authenticated': ctx.is_authenticated,
        'format_amount': format_amount,
        'display_date': display_date,
        'iso_day': iso_day,
        'initials': initials,
    }


@app.route('/')
def index():
    if session_context().is_authenticated:
        return redirect(url_for('dashboard'))
    return redirect(url_for('login'))


@app.route('/login', methods=['GET', 'POST'])
def login():
    ctx = session_context()
    next_url = request.values.get('next')
    if ctx.is_authenticated:
        return redirect(_safe_next(next_url))

    if request.method == 'GET':
        return render_template('login.html', errors={}, form={}, next=next_url)

    data, errors = validate_login_form(request.form)
    if errors:
        return render_template('login.html', errors=errors, form=request.form, next=next_url), 400

    try:
        token, user = get_api().login(data['email'], data['password'])
        ctx.save_login(token, profile_from_api(user))
        return redirect(_safe_next(next_url))
    except ApiError as e:
        flash_api_error(e, 'Something went wrong')
        return render_template('login.html', errors={}, form=request.form, next=next_url), 401


@app.route('/register', methods=['GET', 'POST'])
def register():
    if session_context().is_authenticated:
        return redirect(url_for('dashboard'))

    if request.method == 'GET':
        return render_template('register.html', errors={}, form={})

    data, errors = validate_register_form(request.form)
    if errors:
        return render_template('register.html', errors=errors, form=request.form), 400

    try:
        get_api().register(data['email'], data['password'], data['coaching_name'],
                           data['seats'], data['owner_name'])
        flash('Registration successful. Please log in.', 'success')
        return redirect(url_for('login'))
    except ApiError as e:
        flash_api_error(e, 'Something went wrong')
        return render_template('register.html', errors={}, form=request.form)


@app.route('/logout', methods=['POST'])
def logout():
    ctx = session_context()
    directory.invalidate(ctx.token)
    ctx.clear()
    flash('Logged out', 'info')
    return redirect(url_for('login'))


@app.route('/dashboard')
@login_required
def dashboard():
    api = get_api()
    refresh_profile(api)

    layout = seat_layout(api)
    ctx = session_context()

    integrity_warnings = []
    for seat_number, student_ids in sorted(layout['conflicts'].items()):
        integrity_warnings.append(f"Seat {seat_number} is assigned to {len(student_ids)} students")
    for student in layout['unplaced']:
        integrity_warnings.append(f"{student.get('name') or 'A student'} has no valid seat (seat {student.get('seat_number')})")

    return render_template(
        'dashboard.html',
        seats=layout['seats'],
        stats=seat_reconciliation.occupancy_stats(layout),
        search_result=ctx.search_result(),
        highlight_seats=ctx.highlighted_seats(),
        highlight_ms=ctx.highlight_remaining_ms(),
        integrity_warnings=integrity_warnings,
    )


@app.route('/search', methods=['POST'])
@login_required
def search():
    query = request.form.get('q', '')
    layout = seat_layout(get_api())
    result = seat_reconciliation.search_by_name(query, layout['seats'])
    session_context().record_search(result)

    if result and result['matches']:
        return redirect(url_for('dashboard', _anchor=f"seat-{result['matches'][0]['seat_number']}"))
    return redirect(url_for('dashboard'))


@app.route('/search/dismiss', methods=['POST'])
@login_required
def dismiss_search():
    session_context().dismiss_search()
    return redirect(url_for('dashboard'))


@app.route('/search/highlight/<int:seat_number>', methods=['POST'])
@login_required
def highlight_seat(seat_number):
    session_context().highlight_seat(seat_number)
    return redirect(url_for('dashboard', _anchor=f"seat-{seat_number}"))


@app.route('/seats/<int:seat_number>')
@login_required
def seat_click(seat_number):
    layout = seat_layout(get_api())
    seat = next((s for s in layout['seats'] if s['seat_number'] == seat_number), None)
    if seat is None:
        flash(f'Seat {seat_number} does not exist', 'error')
        return redirect(url_for('dashboard'))
    if seat['occupied'] and seat['student_id']:
        return redirect(url_for('student_profile', student_id=seat['student_id']))
    return redirect(url_for('add_student', seat=seat_number))


@app.route('/students')
@login_required
def students():
    try:
        student_list = load_students(get_api())
    except ApiError as e:
        logging.error(f"Error fetching students: {str(e)}")
        student_list = []

    rows = [
        {'student': s, 'paid': total_paid(s), 'remaining': remaining_balance(s)}
        for s in sorted(student_list, key=lambda s: s.get('seat_number') or 0)
    ]
    return render_template('students.html', rows=rows)


@app.route('/students/add', methods=['GET', 'POST'])
@login_required
def add_student():
    api = get_api()
    available = seat_layout(api)['available_seat_numbers']

    if request.method == 'GET':
        form = {'seat_number': request.args.get('seat', type=int) or (available[0] if available else None),
                'join_date': datetime.now().strftime('%Y-%m-%d')}
        return render_template('student_form.html', mode='add', form=form, errors={},
                               available_seats=available)

    data, errors = validate_student_form(request.form, available)
    photo = _photo_upload(errors)
    if errors:
        return render_template('student_form.html', mode='add', form=request.form, errors=errors,
                               available_seats=available), 400

    try:
        api.create_student(student_to_form(data), photo)
        student_changed.send(app, token=api.token, student_id=None, action='created')
        flash('Student added successfully', 'success')
        return redirect(url_for('students'))
    except ApiError as e:
        flash_api_error(e, 'Failed to add student')
        return render_template('student_form.html', mode='add', form=request.form, errors={},
                               available_seats=available)


def render_student_profile(student_id: str, fee_errors: Optional[Dict] = None,
                           fee_form: Optional[Dict] = None, status: int = 200):
    try:
        student = load_student(get_api(), student_id)
    except ApiError as e:
        flash_api_error(e, 'Student not found')
        return redirect(url_for('students'))

    editing_fee_id = request.args.get('edit_fee') or (fee_form or {}).get('fee_id')
    if fee_form is None:
        fee_form = {'amount': '', 'date': datetime.now().strftime('%Y-%m-%d'), 'description': 'Monthly Fee'}
        editing = next((f for f in student['fees'] if f['id'] == editing_fee_id), None)
        if editing:
            fee_form = {'amount': format_amount(editing['amount']), 'date': iso_day(editing['date']),
                        'description': editing['description']}

    return render_template(
        'student_profile.html',
        student=student,
        paid=total_paid(student),
        remaining=remaining_balance(student),
        fee_form=fee_form,
        fee_errors=fee_errors or {},
        editing_fee_id=editing_fee_id,
    ), status


@app.route('/students/<student_id>')
@login_required
def student_profile(student_id):
    return render_student_profile(student_id)


@app.route('/students/<student_id>/edit', methods=['GET', 'POST'])
@login_required
def edit_student(student_id):
    api = get_api()
    try:
        student = load_student(api, student_id)
    except ApiError as e:
        flash_api_error(e, 'Student not found')
        return redirect(url_for('students'))

    current_seat = student['seat_number']
    available = seat_layout(api)['available_seat_numbers']
    seat_choices = sorted(set(available) | ({current_seat} if current_seat else set()))

    if request.method == 'GET':
        form = {
            'name': student['name'],
            'mobile': student['mobile'],
            'address': student['address'],
            'course_name': student['course_name'],
            'join_date': iso_day(student['join_date']),
            'seat_number': current_seat,
            'total_fees': format_amount(student['total_fees']),
        }
        return render_template('student_form.html', mode='edit', student=student, form=form,
                               errors={}, available_seats=seat_choices)

    data, errors = validate_student_form(request.form, available, current_seat=current_seat)
    photo = _photo_upload(errors)
    if errors:
        return render_template('student_form.html', mode='edit', student=student, form=request.form,
                               errors=errors, available_seats=seat_choices), 400

    try:
        api.update_student(student_id, student_to_form(data, original_seat_number=current_seat or 0), photo)
        student_changed.send(app, token=api.token, student_id=student_id, action='updated')
        flash('Student updated successfully', 'success')
        return redirect(url_for('student_profile', student_id=student_id))
    except ApiError as e:
        flash_api_error(e, 'Failed to update student')
        return render_template('student_form.html', mode='edit', student=student, form=request.form,
                               errors={}, available_seats=seat_choices)


@app.route('/students/<student_id>/delete', methods=['POST'])
@login_required
def delete_student(student_id):
    api = get_api()
    try:
        api.delete_student(student_id)
        student_changed.send(app, token=api.token, student_id=student_id, action='deleted')
        flash('Student deleted successfully', 'success')
    except ApiError as e:
        flash_api_error(e, 'Failed to delete student')
    return redirect(url_for('students'))


@app.route('/students/<student_id>/fees', methods=['POST'])
@login_required
def add_fee(student_id):
    data, errors = validate_fee_form(request.form)
    if errors:
        return render_student_profile(student_id, fee_errors=errors, fee_form=request.form, status=400)

    api = get_api()
    try:
        api.add_fee(student_id, fee_to_api(data))
        fees_changed.send(app, token=api.token, student_id=student_id, action='created')
        flash('Fee added successfully', 'success')
    except ApiError as e:
        flash_api_error(e, 'Failed to save fee')
    return redirect(url_for('student_profile', student_id=student_id))


@app.route('/students/<student_id>/fees/<fee_id>', methods=['POST'])
@login_required
def update_fee(student_id, fee_id):
    data, errors = validate_fee_form(request.form)
    if errors:
        form = dict(request.form)
        form['fee_id'] = fee_id
        return render_student_profile(student_id, fee_errors=errors, fee_form=form, status=400)

    api = get_api()
    try:
        api.update_fee(student_id, fee_id, fee_to_api(data))
        fees_changed.send(app, token=api.token, student_id=student_id, action='updated')
        flash('Fee updated successfully', 'success')
    except ApiError as e:
        flash_api_error(e, 'Failed to save fee')
    return redirect(url_for('student_profile', student_id=student_id))


@app.route('/students/<student_id>/fees/<fee_id>/delete', methods=['POST'])
@login_required
def delete_fee(student_id, fee_id):
    api = get_api()
    try:
        api.delete_fee(student_id, fee_id)
        fees_changed.send(app, token=api.token, student_id=student_id, action='deleted')
        flash('Fee record deleted', 'success')
    except ApiError as e:
        flash_api_error(e, 'Failed to delete fee')
    return redirect(url_for('student_profile', student_id=student_id))


def _png_download(png: bytes, filename: str):
    return send_file(io.BytesIO(png), mimetype='image/png', as_attachment=True, download_name=filename)


@app.route('/students/<student_id>/id_card')
@login_required
def download_id_card(student_id):
    api = get_api()
    try:
        student = load_student(api, student_id)
    except ApiError as e:
        flash_api_error(e, 'Student not found')
        return redirect(url_for('students'))

    photo = api.fetch_asset(student['image']) if student['image'] else None
    png = card_renderer.id_card(institute_name(), student, photo)
    return _png_download(png, id_card_filename(institute_name(), student))


@app.route('/students/<student_id>/fees/<fee_id>/receipt')
@login_required
def download_receipt(student_id, fee_id):
    api = get_api()
    try:
        student = load_student(api, student_id)
    except ApiError as e:
        flash_api_error(e, 'Student not found')
        return redirect(url_for('students'))

    fee = next((f for f in student['fees'] if f['id'] == fee_id), None)
    if fee is None:
        flash('Fee record not found', 'error')
        return redirect(url_for('student_profile', student_id=student_id))

    photo = api.fetch_asset(student['image']) if student['image'] else None
    png = card_renderer.fee_receipt(institute_name(), student, fee, photo)
    return _png_download(png, receipt_filename(institute_name(), student, fee))


@app.route('/notifications')
@login_required
def notifications():
    api = get_api()
    try:
        raw = directory.overdue(api.token, api.overdue_students)
        overdue = students_from_api(raw, app.config['ASSET_BASE_URL'], app.config['LOCAL_TIMEZONE'])
    except ApiError as e:
        logging.error(f"Error fetching overdue students: {str(e)}")
        overdue = []

    entries = classify_students(overdue, app.config['OVERDUE_THRESHOLD_DAYS'])
    for entry in entries:
        entry['reminder_url'] = url_for('send_reminder', student_id=entry['student']['id'])
    return render_template('notifications.html', entries=entries)


@app.route('/notifications/<student_id>/remind')
@login_required
def send_reminder(student_id):
    try:
        student = load_student(get_api(), student_id)
    except ApiError as e:
        flash_api_error(e, 'Student not found')
        return redirect(url_for('notifications'))

    entry = classify_student(student, app.config['OVERDUE_THRESHOLD_DAYS'])
    message = reminder_message(institute_name(), student, entry['days_since_last_payment'])
    return redirect(whatsapp_link(message))


def load_aggregation(api: ApiClient) -> MonthlyAggregation:
    try:
        student_list = load_students(api)
        expenses = load_expenses(api)
    except ApiError as e:
        logging.error(f"Error fetching analytics data: {str(e)}")
        student_list, expenses = [], []
    return MonthlyAggregation(student_list, expenses, app.config['LOCAL_TIMEZONE'])


@app.route('/analytics')
@login_required
def analytics():
    aggregation = load_aggregation(get_api())
    selected = aggregation.select_month(request.args.get('month'))
    return render_template(
        'analytics.html',
        months=aggregation.months,
        selected_month=selected,
        summary=aggregation.month_summary(selected),
    )


def render_expenses(errors: Optional[Dict] = None, form: Optional[Dict] = None, status: int = 200):
    try:
        expenses = load_expenses(get_api())
    except ApiError as e:
        logging.error(f"Error fetching expenses: {str(e)}")
        expenses = []

    aggregation = MonthlyAggregation([], expenses, app.config['LOCAL_TIMEZONE'])
    form = form or {'date': datetime.now().strftime('%Y-%m-%d'), 'category': 'General'}
    return render_template(
        'expenses.html',
        expenses=expenses,
        total=aggregation.total_expenses(),
        by_category=aggregation.expenses_by_category(),
        categories=EXPENSE_CATEGORIES,
        form=form,
        errors=errors or {},
    ), status


@app.route('/expenses')
@login_required
def expenses():
    return render_expenses()


@app.route('/expenses/add', methods=['POST'])
@login_required
def add_expense():
    data, errors = validate_expense_form(request.form)
    if errors:
        return render_expenses(errors, request.form, status=400)

    api = get_api()
    try:
        api.add_expense(expense_to_api(data))
        expenses_changed.send(app, token=api.token, expense_id=None, action='created')
        flash('Expense added successfully', 'success')
    except ApiError as e:
        flash_api_error(e, 'Failed to add expense')
    return redirect(url_for('expenses'))


@app.route('/expenses/<expense_id>/delete', methods=['POST'])
@login_required
def delete_expense(expense_id):
    api = get_api()
    try:
        api.delete_expense(expense_id)
        expenses_changed.send(app, token=api.token, expense_id=expense_id, action='deleted')
        flash('Expense deleted', 'success')
    except ApiError as e:
        flash_api_error(e, 'Failed to delete expense')
    return redirect(url_for('expenses'))


@app.route('/settings', methods=['GET', 'POST'])
@login_required
def settings():
    if request.method == 'GET':
        return render_template('settings.html', errors={})

    data, errors = validate_password_form(request.form)
    if errors:
        return render_template('settings.html', errors=errors), 400

    try:
        get_api().change_password(data['current_password'], data['new_password'])
        flash('Password updated successfully', 'success')
        return redirect(url_for('settings'))
    except ApiError as e:
        flash_api_error(e, 'Failed to update password')
        return render_template('settings.html', errors={})


@app.route('/profile', methods=['GET', 'POST'])
@login_required
def profile():
    api = get_api()
    if request.method == 'GET':
        return render_template('profile.html', form=refresh_profile(api), errors={})

    data, errors = validate_profile_form(request.form)
    if errors:
        return render_template('profile.html', form=request.form, errors=errors), 400

    try:
        api.update_profile(profile_to_api(data))
        session_context().save_profile(data)
        profile_changed.send(app, token=api.token, action='updated')
        flash('Profile updated successfully', 'success')
        return redirect(url_for('profile'))
    except ApiError as e:
        flash_api_error(e, 'Failed to update profile')
        return render_template('profile.html', form=request.form, errors={})


def _xlsx_download(filepath: Optional[str], fallback_endpoint: str):
    if filepath and os.path.exists(filepath):
        return send_file(filepath, as_attachment=True, download_name=os.path.basename(filepath))
    flash('Error generating Excel file', 'error')
    return redirect(url_for(fallback_endpoint))


@app.route('/export/students')
@login_required
def export_students():
    try:
        student_list = load_students(get_api())
    except ApiError as e:
        flash_api_error(e, 'Could not load students for export')
        return redirect(url_for('students'))

    if not student_list:
        flash('No student data to export', 'warning')
        return redirect(url_for('students'))
    return _xlsx_download(excel_handler.export_student_ledger(student_list, institute_name()), 'students')


@app.route('/export/seats')
@login_required
def export_seats():
    layout = seat_layout(get_api())
    return _xlsx_download(excel_handler.export_seat_plan(layout, institute_name()), 'dashboard')


@app.route('/export/analytics')
@login_required
def export_analytics():
    aggregation = load_aggregation(get_api())
    if not aggregation.months:
        flash('No fee or expense data to export', 'warning')
        return redirect(url_for('analytics'))
    return _xlsx_download(excel_handler.export_monthly_summary(aggregation, institute_name()), 'analytics')


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=5000, debug=True)

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests


class ApiError(Exception):
    """A failed backend call. ``message`` is the backend's own text when it sent one."""

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message or "Request failed")
        self.message = message
        self.status_code = status_code


class ApiClient:
    """
    Thin wrapper around the coaching backend's REST API.

    Every authenticated call carries ``Authorization: Bearer <token>``.
    Student create/update go out as multipart (optional photo upload);
    everything else is JSON. Nothing is retried.
    """

    def __init__(self, base_url: str, token: Optional[str] = None,
                 asset_base_url: str = "", timeout: float = 20):
        self.logger = logging.getLogger(__name__)
        self.base_url = base_url.rstrip('/')
        self.asset_base_url = asset_base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self.session = requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {'Accept': 'application/json'}
        if self.token:
            headers['Authorization'] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method, url, headers=self._headers(), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            self.logger.error(f"{method} {path} failed: {str(e)}")
            raise ApiError(None) from e

        if not 200 <= response.status_code < 300:
            message = None
            try:
                body = response.json()
                if isinstance(body, dict):
                    message = body.get('message') or body.get('error')
            except ValueError:
                pass
            self.logger.error(f"{method} {path} returned HTTP {response.status_code}: {message or response.text[:200]}")
            raise ApiError(message, response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    # Auth

    def login(self, email: str, password: str) -> Tuple[str, Dict]:
        data = self._request('POST', '/auth/login', json={'email': email, 'password': password})
        if not data or not data.get('token'):
            raise ApiError("Login response did not include a token")
        return data['token'], data.get('user') or {}

    def register(self, email: str, password: str, coaching_name: str,
                 seats: int, owner_name: str) -> Any:
        return self._request('POST', '/auth/register', json={
            'email': email,
            'password': password,
            'coachingName': coaching_name,
            'seats': seats,
            'ownerName': owner_name,
        })

    def get_profile(self) -> Dict:
        data = self._request('GET', '/auth/profile') or {}
        return data.get('user') or {}

    def update_profile(self, payload: Dict) -> Any:
        return self._request('PUT', '/auth/profile', json=payload)

    def change_password(self, current_password: str, new_password: str) -> Any:
        return self._request('PUT', '/auth/password', json={
            'currentPassword': current_password,
            'newPassword': new_password,
        })

    # Students

    def list_students(self) -> List[Dict]:
        data = self._request('GET', '/students')
        return data if isinstance(data, list) else []

    def get_student(self, student_id: str) -> Dict:
        return self._request('GET', f'/students/{student_id}') or {}

    def overdue_students(self) -> List[Dict]:
        data = self._request('GET', '/students/overdue')
        return data if isinstance(data, list) else []

    def create_student(self, fields: Dict[str, str], photo=None) -> Any:
        return self._request('POST', '/students', data=fields, files=self._photo_files(photo))

    def update_student(self, student_id: str, fields: Dict[str, str], photo=None) -> Any:
        return self._request('PUT', f'/students/{student_id}', data=fields,
                             files=self._photo_files(photo))

    def delete_student(self, student_id: str) -> Any:
        return self._request('DELETE', f'/students/{student_id}')

    @staticmethod
    def _photo_files(photo) -> Optional[Dict]:
        # photo is a (filename, stream, mimetype) tuple
        if not photo:
            return None
        return {'image': photo}

    # Fee payments

    def add_fee(self, student_id: str, payload: Dict) -> Any:
        return self._request('POST', f'/students/{student_id}/fees', json=payload)

    def update_fee(self, student_id: str, fee_id: str, payload: Dict) -> Any:
        return self._request('PUT', f'/students/{student_id}/fees/{fee_id}', json=payload)

    def delete_fee(self, student_id: str, fee_id: str) -> Any:
        return self._request('DELETE', f'/students/{student_id}/fees/{fee_id}')

    # Expenses

    def list_expenses(self) -> List[Dict]:
        data = self._request('GET', '/expenses')
        return data if isinstance(data, list) else []

    def add_expense(self, payload: Dict) -> Any:
        return self._request('POST', '/expenses', json=payload)

    def delete_expense(self, expense_id: str) -> Any:
        return self._request('DELETE', f'/expenses/{expense_id}')

    # Assets

    def fetch_asset(self, url: str) -> Optional[bytes]:
        """Download a photo. Returns None instead of raising; callers render without it."""
        if not url:
            return None
        if url.startswith('/'):
            url = f"{self.asset_base_url}{url}"
        try:
            response = self.session.get(url, timeout=self.timeout)
            if 200 <= response.status_code < 300:
                return response.content
            self.logger.warning(f"Photo fetch {url} returned HTTP {response.status_code}")
        except requests.RequestException as e:
            self.logger.warning(f"Photo fetch {url} failed: {str(e)}")
        return None

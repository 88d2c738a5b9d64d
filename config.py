import os
from dotenv import load_dotenv

load_dotenv()


def _int_env(name, default):
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


class Config:
    # Flask
    SECRET_KEY = os.environ.get("SESSION_SECRET", "dev-secret-key-change-in-production")
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB max upload (student photos)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG").upper()

    # Backend REST API
    API_URL = os.environ.get("API_URL", "http://localhost:4000/api").rstrip("/")
    # Static assets such as /uploads/<photo> are served from the API host
    ASSET_BASE_URL = os.environ.get("ASSET_BASE_URL", "http://localhost:4000").rstrip("/")
    API_TIMEOUT = float(os.environ.get("API_TIMEOUT", "20"))

    # Institute defaults (the profile's seat count wins when present)
    DEFAULT_TOTAL_SEATS = _int_env("DEFAULT_TOTAL_SEATS", 50)
    OVERDUE_THRESHOLD_DAYS = _int_env("OVERDUE_THRESHOLD_DAYS", 30)
    INSTITUTE_FALLBACK_NAME = os.environ.get("INSTITUTE_FALLBACK_NAME", "Coaching Institute")

    # Dashboard behaviour
    HIGHLIGHT_SECONDS = _int_env("HIGHLIGHT_SECONDS", 4)
    STUDENT_CACHE_SECONDS = _int_env("STUDENT_CACHE_SECONDS", 30)
    # Empty means the server's local zone
    LOCAL_TIMEZONE = os.environ.get("LOCAL_TIMEZONE", "")

    # Files
    EXPORT_FOLDER = os.environ.get("EXPORT_FOLDER", "exports")
    ALLOWED_IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}

"""
Schedule admin client configuration.
Backend location, durable storage and navigation targets. No credentials in this file.
"""
import os

# REST backend base URL; every endpoint path is joined onto it
API_BASE_URL = os.environ.get("SCHEDULE_ADMIN_API_BASE_URL", "http://localhost:3000/api").rstrip("/")

# Durable client-side storage (tokens + cached user). SQLite file survives restarts.
STORAGE_URL = os.environ.get("SCHEDULE_ADMIN_STORAGE_URL", "sqlite:///./schedule_admin.db")

# Per-request timeout (seconds); expiry surfaces as NetworkError
REQUEST_TIMEOUT = float(os.environ.get("SCHEDULE_ADMIN_REQUEST_TIMEOUT", "10"))

# Auth endpoints (relative to API_BASE_URL)
LOGIN_ENDPOINT = "/auth/login"
REFRESH_ENDPOINT = "/auth/refresh"
REGISTER_ENDPOINT = "/auth/register"
PROFILE_ENDPOINT = "/auth/profile"
ADMIN_ENDPOINT = "/auth/admin"

# Navigation targets for the routing layer
LOGIN_PATH = "/login"
DEFAULT_AUTHENTICATED_PATH = "/dashboard"

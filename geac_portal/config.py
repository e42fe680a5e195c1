"""
Application configuration values

Values are read from the environment once at import time. A local .env file
is loaded first so development setups do not need exported variables.
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_int(name, default):
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


# Backend REST API (server-side calls prefer the internal address)
API_URL = (os.environ.get('API_URL_INTERNAL')
           or os.environ.get('API_URL')
           or 'http://localhost:8080').rstrip('/')
REQUEST_TIMEOUT = _env_int('API_TIMEOUT', 10)

# Flask session signing key (flash messages only)
SECRET_KEY = os.environ.get('SECRET_KEY', 'geac-dev-key')

# Auth cookie issued after login
TOKEN_COOKIE = 'token'
TOKEN_MAX_AGE = 60 * 60 * 24 * 7
COOKIE_SECURE = _env_bool('COOKIE_SECURE')

LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

# Admin dashboards
DASHBOARD_PAGE_SIZE = 10

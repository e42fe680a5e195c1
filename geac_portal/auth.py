"""
Token and permission helpers

The GEAC API issues a JWT at login; the portal keeps it in an httpOnly cookie
and forwards it on every backend call. Claims are read from the payload only
to decide what to show (the backend enforces the real permissions), so the
signature is never verified here.

Roles (the 'role' claim):
- ADMIN: statistics dashboards, event creation and management
- PROFESSOR: event creation
- ORGANIZER: event management (edit, delete)
- STUDENT, PROFESSOR, ORGANIZER: organization access requests
- any signed-in user: catalogue, registration and evaluations
Creating or managing events also needs membership in an organization.

This module provides functions for:
- Reading and decoding the auth token
- Setting and clearing the auth cookie
- Login/role decorators
- Safe post-login redirects
"""

import base64
import binascii
import json
from functools import wraps
from flask import request, redirect, url_for, render_template, make_response, g, has_request_context

from geac_portal import config

# =============================================================================
# TOKEN
# =============================================================================

def get_token():
    """Get the raw auth token of the current request (or None)."""
    if not has_request_context():
        return None
    return request.cookies.get(config.TOKEN_COOKIE) or None


def decode_token_payload(token):
    """
    Decode the claims segment of a JWT.

    Args:
        token (str): Compact JWT 'header.payload.signature'

    Returns:
        dict: The claims, or {} when the token is malformed
    """
    if not token or not isinstance(token, str):
        return {}
    parts = token.split('.')
    if len(parts) < 2 or not parts[1]:
        return {}
    segment = parts[1]
    segment += '=' * (-len(segment) % 4)
    try:
        raw = base64.urlsafe_b64decode(segment.encode('ascii'))
        claims = json.loads(raw.decode('utf-8'))
    except (binascii.Error, UnicodeError, ValueError):
        return {}
    return claims if isinstance(claims, dict) else {}


def get_current_claims():
    """Claims of the current request's token, decoded once per request."""
    if not has_request_context():
        return {}
    if 'token_claims' not in g:
        g.token_claims = decode_token_payload(get_token())
    return g.token_claims


def get_current_user_id():
    """Get current user ID from the token (or None)."""
    return get_current_claims().get('id')


def get_current_user_role():
    """Get current user's role from the token (or None)."""
    return get_current_claims().get('role')


def get_current_user_name():
    claims = get_current_claims()
    return claims.get('name') or claims.get('sub')


def get_current_user():
    """
    Get the signed-in user as a dict.

    Returns:
        dict or None: id, role and name from the token, or None when signed out
    """
    if not is_user_logged_in():
        return None
    return {
        'id': get_current_user_id(),
        'role': get_current_user_role(),
        'name': get_current_user_name(),
    }


# =============================================================================
# COOKIE
# =============================================================================

def set_token_cookie(response, token):
    """Store the auth token on the response (httpOnly, 7 days)."""
    response.set_cookie(
        config.TOKEN_COOKIE,
        token,
        max_age=config.TOKEN_MAX_AGE,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite='Lax',
        path='/',
    )
    return response


def clear_token_cookie(response):
    response.delete_cookie(config.TOKEN_COOKIE, path='/')
    return response

# =============================================================================
# LOGIN STATUS CHECKS
# =============================================================================

def is_user_logged_in():
    """True if the request carries an auth token."""
    return get_token() is not None


def is_admin():
    return get_current_user_role() == 'ADMIN'


def has_role(*roles):
    return is_user_logged_in() and get_current_user_role() in roles

# =============================================================================
# REDIRECT HELPERS
# =============================================================================

def safe_next_url(url):
    """
    Return url if it is a relative path inside the site, else None.
    Protocol-relative ('//host') and absolute URLs are rejected.
    """
    if not url or not isinstance(url, str):
        return None
    if not url.startswith('/') or url.startswith('//') or url.startswith('/\\'):
        return None
    return url


def _current_relative_url():
    path = request.full_path if request.query_string else request.path
    return path

# =============================================================================
# AUTH DECORATORS
# =============================================================================

def _no_cache(response):
    response.headers['Cache-Control'] = 'no-cache, no-store, must-revalidate'
    response.headers['Pragma'] = 'no-cache'
    response.headers['Expires'] = '0'
    return response


def require_login(f):
    """Require a signed-in user for protected routes."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_user_logged_in():
            return redirect(url_for('login', next=_current_relative_url()))
        return _no_cache(make_response(f(*args, **kwargs)))
    return decorated_function


def require_role(*allowed_roles):
    """
    Decorator factory for token roles.
    Usage:
        @require_role('ADMIN')
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not is_user_logged_in():
                return redirect(url_for('login', next=_current_relative_url()))

            if get_current_user_role() not in allowed_roles:
                return render_template('errors/403.html'), 403

            return _no_cache(make_response(f(*args, **kwargs)))
        return decorated_function
    return decorator

"""
Backend REST API client

Every page in the portal is backed by the external GEAC API. This module
forwards the signed-in user's bearer token (read from the auth cookie) and
translates backend failures into either empty results (reads) or result
dicts carrying an error message (writes), so routes only have to flash
messages.

Read helpers:   return [] / None on any failure (failure is logged)
Write helpers:  return {'success': True, ...} or {'success': False, 'error': str}
"""

import logging
import requests

from geac_portal import config
from geac_portal.auth import get_token, get_current_user_id
from geac_portal.errors import ApiError, NotAuthenticated

logger = logging.getLogger(__name__)

CONNECTION_ERROR = 'Could not connect to the server.'

_session = requests.Session()


# =============================================================================
# LOW-LEVEL REQUEST HELPERS
# =============================================================================

def _error_message(response, default):
    """Return the backend 'message' field of an error body, or the default."""
    try:
        data = response.json()
    except ValueError:
        return default
    if isinstance(data, dict) and data.get('message'):
        return data['message']
    return default


def call_api(method, endpoint, payload=None, default_error='Request failed.', auth=True):
    """
    Send one request to the backend and return the decoded JSON body.

    Args:
        method (str): HTTP method
        endpoint (str): Path below API_URL, starting with '/'
        payload (dict, optional): JSON body
        default_error (str): Message used when the backend gives none
        auth (bool): Whether the bearer token is required and sent

    Raises:
        NotAuthenticated: auth is required and there is no token
        ApiError: non-2xx response or connection failure
    """
    headers = {'Content-Type': 'application/json'}
    if auth:
        token = get_token()
        if not token:
            raise NotAuthenticated()
        headers['Authorization'] = f'Bearer {token}'

    url = f"{config.API_URL}{endpoint}"
    try:
        response = _session.request(
            method, url, json=payload, headers=headers,
            timeout=config.REQUEST_TIMEOUT,
        )
    except requests.exceptions.RequestException as e:
        logger.exception("Error calling %s %s: %s", method, endpoint, e)
        raise ApiError(CONNECTION_ERROR) from e

    if not response.ok:
        logger.error("%s %s failed with status %s", method, endpoint, response.status_code)
        raise ApiError(_error_message(response, default_error), response.status_code)

    if response.status_code == 204 or not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def fetch_list(endpoint):
    """GET a collection; any failure (including no token) gives []."""
    try:
        data = call_api('GET', endpoint)
    except ApiError:
        return []
    return data if isinstance(data, list) else []


def fetch_one(endpoint):
    """GET a single record; any failure gives None."""
    try:
        data = call_api('GET', endpoint)
    except ApiError:
        return None
    return data if isinstance(data, dict) else None


def _write(method, endpoint, payload=None, default_error='Request failed.'):
    try:
        data = call_api(method, endpoint, payload, default_error=default_error)
    except ApiError as e:
        return {'success': False, 'error': e.message}
    return {'success': True, 'data': data}


# =============================================================================
# DOMAIN LOOKUPS
# =============================================================================

def get_categories():
    return fetch_list('/categories')


def get_locations():
    return fetch_list('/locations')


def get_requirements():
    return fetch_list('/requirements')


def get_tags():
    return fetch_list('/tags')


def get_organizers():
    return fetch_list('/organizers')


def get_speakers():
    return fetch_list('/speakers')


def get_user_organizers():
    """Organizations the signed-in user belongs to (id taken from the token)."""
    user_id = get_current_user_id()
    if user_id is None:
        return []
    return fetch_list(f'/organizers/user/{user_id}')


def get_event_evaluations(event_id):
    return fetch_list(f'/evaluation/{event_id}')


# =============================================================================
# EVENTS
# =============================================================================

def get_all_events():
    return fetch_list('/events')


def get_event(event_id):
    return fetch_one(f'/events/{event_id}')


def create_event(payload):
    return _write('POST', '/events/create', payload, 'Error creating event.')


def update_event(event_id, payload):
    return _write('PATCH', f'/events/{event_id}', payload, 'Error updating event.')


def delete_event(event_id):
    return _write('DELETE', f'/events/{event_id}', None, 'Error deleting event.')


def register_for_event(event_id):
    return _write('POST', f'/registrations/{event_id}', None,
                  'Error registering for the event.')


def cancel_registration(event_id):
    return _write('DELETE', f'/registrations/{event_id}', None,
                  'Error cancelling the registration.')


def submit_evaluation(event_id, rating, comment):
    payload = {'eventId': event_id, 'rating': rating, 'comment': comment}
    return _write('POST', '/evaluation', payload, 'Error sending evaluation.')


def create_requirement(description):
    """Create a requirement; on success 'requirement' holds {id, description}."""
    result = _write('POST', '/requirements', {'description': description},
                    'Error creating requirement.')
    if result['success']:
        data = result.pop('data')
        result['requirement'] = data if isinstance(data, dict) else {}
    return result


def create_speaker(name, bio=None, email=None, qualifications=None):
    """
    Create a speaker.

    Qualifications are dicts with 'title_name' and 'institution'; the backend
    expects 'titleName'.
    """
    if not name or not name.strip():
        return {'success': False, 'error': 'Speaker name is required.'}

    payload = {
        'name': name,
        'bio': bio,
        'email': email,
        'qualifications': [
            {'titleName': q['title_name'], 'institution': q['institution']}
            for q in (qualifications or [])
        ],
    }
    result = _write('POST', '/speakers', payload, 'Could not save the speaker.')
    if result['success']:
        data = result.pop('data')
        result['speakerId'] = data.get('id') if isinstance(data, dict) else None
    return result


# =============================================================================
# ADMIN VIEWS
# =============================================================================

def get_event_statistics():
    return fetch_list('/views/eventstatistics')


def get_organization_engagement():
    return fetch_list('/views/organization-engagement')


def get_student_hours():
    return fetch_list('/extracurricular-hours/all')


# =============================================================================
# AUTH
# =============================================================================

def login(email, password):
    """Exchange credentials for a token; returns {'success', 'token'|'error'}."""
    try:
        data = call_api('POST', '/auth/login', {'email': email, 'password': password},
                        default_error='Invalid credentials.', auth=False)
    except ApiError as e:
        if e.status_code is None:
            return {'success': False,
                    'error': 'Server unavailable. Please try again later.'}
        return {'success': False, 'error': e.message}
    token = data.get('token') if isinstance(data, dict) else None
    if not token:
        return {'success': False, 'error': 'Invalid credentials.'}
    return {'success': True, 'token': token}

"""
Validation module for form input.

Each function returns None for valid input, or an error message string for
invalid input. Checks run in a fixed order and stop at the first problem,
which is the message shown above the form.
"""

import math
import re
from datetime import datetime

from geac_portal.forms import to_number
from geac_portal.locations import find_location
from geac_portal.tables import round_half_up

DATETIME_LOCAL_FORMAT = '%Y-%m-%dT%H:%M'
MIN_COMMENT_LENGTH = 5
MIN_RATING = 1
MAX_RATING = 5


def parse_datetime_local(value):
    """Parse an HTML datetime-local value ('YYYY-MM-DDTHH:MM[:SS]'); None if invalid."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    for fmt in (DATETIME_LOCAL_FORMAT, DATETIME_LOCAL_FORMAT + ':%S'):
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _finite_number(value):
    number = to_number(value)
    if number is None or not math.isfinite(number):
        return None
    return number


# =============================================================================
# Event form
# =============================================================================

def check_event_create(form_data, locations, now=None):
    """
    Validate the create-event form

    Args:
        form_data (dict): State from forms.form_from_request()
        locations (list): Location records (for the venue capacity check)
        now (datetime, optional): Current time, for tests

    Returns:
        str or None: Error message if invalid, None if valid
    """
    if now is None:
        now = datetime.now()

    if not form_data['title'].strip():
        return 'The title cannot be empty.'
    if not form_data['description'].strip():
        return 'The description cannot be empty.'

    if not form_data['speakers']:
        return 'Select at least one speaker.'
    if not form_data['tags']:
        return 'Select at least one tag.'

    start = parse_datetime_local(form_data['start_time'])
    end = parse_datetime_local(form_data['end_time'])
    if start is None:
        return 'Please enter a valid start date and time.'
    if end is None:
        return 'Please enter a valid end date and time.'

    if start < now:
        return 'The start date cannot be in the past.'
    if end <= start:
        return 'The end date must be after the start date.'

    duration_hours = (end - start).total_seconds() / 3600
    workload = _finite_number(form_data['workload_hours'])
    if workload is None or workload < 1:
        return 'The workload must be at least 1 hour.'
    if workload < duration_hours:
        return (f'The workload entered ({workload:g}h) cannot be less than the '
                f'actual duration of the event ({round_half_up(duration_hours)}h).')

    capacity = _finite_number(form_data['max_capacity'])
    if capacity is None or capacity <= 0:
        return 'The maximum capacity must be greater than 0.'

    if form_data['is_online']:
        link_error = check_online_link(form_data['online_link'])
        if link_error:
            return link_error
    else:
        location = find_location(locations, form_data['location_id'])
        if location and location.get('capacity') is not None and capacity > location['capacity']:
            return (f'The capacity entered ({capacity:g}) exceeds the limit of the selected venue '
                    f'({location.get("name")} holds at most {location["capacity"]} people).')

    return None


def check_event_update(form_data):
    """
    Validate the edit-event form. Only title and description are required;
    empty fields are left unchanged by the backend.
    """
    if not form_data['title'].strip():
        return 'The title cannot be empty.'
    if not form_data['description'].strip():
        return 'The description cannot be empty.'

    start = parse_datetime_local(form_data['start_time'])
    end = parse_datetime_local(form_data['end_time'])
    if form_data['start_time'] and start is None:
        return 'Please enter a valid start date and time.'
    if form_data['end_time'] and end is None:
        return 'Please enter a valid end date and time.'
    if start and end and end <= start:
        return 'The end date must be after the start date.'

    if form_data['is_online']:
        return check_online_link(form_data['online_link'])
    return None


def check_online_link(link):
    if not link or not link.strip():
        return 'Please enter the link for the online event.'
    if not re.match(r'^https?://\S+$', link.strip()):
        return 'The online link must start with http:// or https://.'
    return None


# =============================================================================
# Evaluation, speaker, requirement, login
# =============================================================================

def check_evaluation(rating, comment):
    """
    Validate an event evaluation

    Args:
        rating: Star rating as submitted (1-5)
        comment (str): Free-text review

    Returns:
        str or None: Error message if invalid, None if valid
    """
    try:
        rating = int(rating)
    except (TypeError, ValueError):
        rating = 0
    if rating < MIN_RATING or rating > MAX_RATING:
        return 'Please select a rating from 1 to 5 stars.'

    if len((comment or '').strip()) < MIN_COMMENT_LENGTH:
        return f'Please write a review with at least {MIN_COMMENT_LENGTH} characters.'

    return None


def check_email(email):
    """Optional e-mail: blank is allowed, anything else must look like an address."""
    if not email or not email.strip():
        return None
    email = email.strip()
    if email.count('@') != 1:
        return 'Email address must contain exactly one @ symbol.'
    if not re.match(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$', email):
        return 'Please enter a valid email address (e.g., user@example.com).'
    return None


def clean_qualifications(qualifications):
    """Keep only qualification rows with both a title and an institution."""
    return [
        {'title_name': q.get('title_name', '').strip(), 'institution': q.get('institution', '').strip()}
        for q in qualifications or []
        if (q.get('title_name') or '').strip() and (q.get('institution') or '').strip()
    ]


def check_speaker(name, email=None):
    if not name or not name.strip():
        return 'Speaker name is required.'
    return check_email(email)


def check_requirement(description):
    if not description or not description.strip():
        return 'The requirement description cannot be empty.'
    return None


def check_login(email, password):
    if not email or not email.strip():
        return 'Email address is required.'
    if not password:
        return 'Password is required.'
    return None

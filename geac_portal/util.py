"""
Template helpers, display constants and pagination utilities
"""

from datetime import datetime, date, time
from math import ceil
from urllib.parse import urlencode
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DISPLAY_TIMEZONE = 'America/Sao_Paulo'

# --- Jinja filters for Brazilian date/time ---

def parse_datetime(value):
    """
    Parse an API timestamp into a datetime.
    Accepts datetimes, dates, and ISO strings (with or without 'Z'/offset).
    Returns None when the value cannot be parsed.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _to_local(dt):
    """Convert aware datetimes to the display zone; naive ones are already local."""
    if dt.tzinfo is None:
        return dt
    try:
        return dt.astimezone(ZoneInfo(DISPLAY_TIMEZONE))
    except ZoneInfoNotFoundError:
        return dt


def br_date(value):
    """Format a date/datetime/ISO string as DD/MM/YYYY."""
    if not value:
        return '-'
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.strftime('%d/%m/%Y')
    dt = parse_datetime(value)
    if dt is None:
        return str(value)
    return _to_local(dt).strftime('%d/%m/%Y')


def br_datetime(value):
    """Format a datetime/ISO string as DD/MM/YYYY HH:MM."""
    if not value:
        return '-'
    dt = parse_datetime(value)
    if dt is None:
        return str(value)
    return _to_local(dt).strftime('%d/%m/%Y %H:%M')


def hm(value):
    """Format the time part as HH:MM."""
    if not value:
        return '-'
    if isinstance(value, time):
        return value.strftime('%H:%M')
    dt = parse_datetime(value)
    if dt is None:
        return str(value)
    return _to_local(dt).strftime('%H:%M')


def title_case(text):
    """'SEMINÁRIO de dados' -> 'Seminário De Dados'."""
    if not text:
        return ''
    return ' '.join(word[:1].upper() + word[1:].lower() for word in text.split(' '))


# Event statuses as sent by the API
EVENT_STATUSES = ['UPCOMING', 'ACTIVE', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED']

STATUS_LABELS = {
    'UPCOMING': 'Upcoming',
    'ACTIVE': 'Active',
    'IN_PROGRESS': 'In progress',
    'COMPLETED': 'Completed',
    'CANCELLED': 'Cancelled',
}

# Badge class per category name as sent by the API (lower-case)
CATEGORY_BADGES = {
    'palestra': 'badge-blue',
    'seminario': 'badge-green',
    'cultural': 'badge-purple',
    'feira': 'badge-fuchsia',
    'workshop': 'badge-pink',
    'livre': 'badge-teal',
    'conferencia': 'badge-orange',
    'festival': 'badge-rose',
}


def status_label(status):
    if not status:
        return '-'
    return STATUS_LABELS.get(status, status)


def category_badge(category):
    """CSS class for a category badge; unknown categories get the default."""
    return CATEGORY_BADGES.get((category or '').strip().lower(), 'badge-default')


def register_template_filters(app):
    app.add_template_filter(br_date, 'br_date')
    app.add_template_filter(br_datetime, 'br_datetime')
    app.add_template_filter(hm, 'hm')
    app.add_template_filter(title_case, 'title_case')
    app.add_template_filter(status_label, 'status_label')
    app.add_template_filter(category_badge, 'category_badge')


# Pagination
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def _to_int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def create_pagination_info(page, per_page, total, base_url, **kwargs):
    """
    Create pagination information for templates.

    Args:
        page (int): Current page number (1-based)
        per_page (int): Items per page
        total (int): Total number of items
        base_url (str): Base URL for pagination links
        **kwargs: Additional query parameters to include in URLs

    Returns:
        dict: page, per_page, total, pages, has_prev, has_next, prev_num,
              next_num, page_urls, start_index, end_index
    """
    page = max(1, _to_int(page, 1))
    per_page = max(1, min(_to_int(per_page, DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE))
    total = max(0, _to_int(total, 0))

    pages = ceil(total / per_page) if total > 0 else 1
    page = min(page, pages)

    has_prev = page > 1
    has_next = page < pages

    page_urls = {}
    for p in range(1, pages + 1):
        params = {k: v for k, v in kwargs.items() if v not in (None, '')}
        params['page'] = p
        params['per_page'] = per_page
        page_urls[p] = f"{base_url}?{urlencode(params)}"

    return {
        'page': page,
        'per_page': per_page,
        'total': total,
        'pages': pages,
        'has_prev': has_prev,
        'has_next': has_next,
        'prev_num': page - 1 if has_prev else None,
        'next_num': page + 1 if has_next else None,
        'page_urls': page_urls,
        'start_index': (page - 1) * per_page + 1 if total else 0,
        'end_index': min(page * per_page, total),
    }


def get_pagination_params(request, default_per_page=DEFAULT_PAGE_SIZE):
    """
    Extract (page, per_page) from the request query string.
    Invalid values fall back to the defaults.
    """
    page = max(1, _to_int(request.args.get('page'), 1))
    per_page = _to_int(request.args.get('per_page'), default_per_page)
    per_page = max(1, min(per_page, MAX_PAGE_SIZE))
    return page, per_page


def create_pagination_links(pagination_info, max_links=5):
    """
    Create a window of page links around the current page.

    Returns:
        list: dicts with 'num', 'url', 'is_current'
    """
    current_page = pagination_info['page']
    total_pages = pagination_info['pages']
    page_urls = pagination_info['page_urls']

    if total_pages <= max_links:
        pages = list(range(1, total_pages + 1))
    else:
        half = max_links // 2
        start = max(1, current_page - half)
        end = min(total_pages, start + max_links - 1)
        if end - start + 1 < max_links:
            start = max(1, end - max_links + 1)
        pages = list(range(start, end + 1))

    return [
        {'num': num, 'url': page_urls.get(num, '#'), 'is_current': num == current_page}
        for num in pages
    ]

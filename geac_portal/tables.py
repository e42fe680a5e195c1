"""
Filter -> sort -> paginate pipeline for list pages

The admin dashboards and the event management list all work the same way:
the full list comes from the API, a search term (and optionally a status)
narrows it, one column orders it, and a fixed-size page of it is rendered.
The state travels in the query string so every header and pager link is a
plain GET.
"""

import math
import unicodedata
from urllib.parse import urlencode

ALL_STATUSES = 'ALL'
DIRECTIONS = ('asc', 'desc')


def round_half_up(value, ndigits=0):
    """Round halves away from zero (1.5 -> 2, 2.5 -> 3, 0.25 -> 0.3 with ndigits=1)."""
    factor = 10 ** ndigits
    scaled = abs(value) * factor
    rounded = math.floor(scaled + 0.5) / factor
    if ndigits == 0:
        rounded = int(rounded)
    return rounded if value >= 0 else -rounded


def percent(part, whole):
    """Whole-number percentage; 0 when whole is 0."""
    if not whole:
        return 0
    return round_half_up(part / whole * 100)


def text_sort_key(value):
    """Accent- and case-insensitive key, with the raw text as a tie-breaker."""
    text = '' if value is None else str(value)
    folded = unicodedata.normalize('NFKD', text)
    folded = ''.join(ch for ch in folded if not unicodedata.combining(ch)).casefold()
    return (folded, text)


def _number(value):
    if value is None:
        return 0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0


class TableState:
    """Search, status filter, sort and page of one list view."""

    def __init__(self, search='', status=ALL_STATUSES, sort_field=None,
                 sort_direction='desc', page=1):
        self.search = search or ''
        self.status = status or ALL_STATUSES
        self.sort_field = sort_field
        self.sort_direction = sort_direction
        self.page = page

    @classmethod
    def from_args(cls, args, sort_fields, default_sort, statuses=None,
                  default_direction='desc'):
        """
        Parse state from request args.

        Unknown sort fields fall back to default_sort, unknown directions to
        default_direction, unknown statuses to ALL, bad pages to 1.
        """
        sort_field = args.get('sort', default_sort)
        if sort_field not in sort_fields:
            sort_field = default_sort

        direction = args.get('dir', default_direction)
        if direction not in DIRECTIONS:
            direction = default_direction

        status = args.get('status', ALL_STATUSES) or ALL_STATUSES
        if statuses is not None and status not in statuses:
            status = ALL_STATUSES

        try:
            page = max(1, int(args.get('page', 1)))
        except (TypeError, ValueError):
            page = 1

        return cls(
            search=args.get('q', ''),
            status=status,
            sort_field=sort_field,
            sort_direction=direction,
            page=page,
        )

    @property
    def is_filtered(self):
        return bool(self.search.strip()) or self.status != ALL_STATUSES

    def params(self, **overrides):
        """Query parameters for this state; page is dropped unless overridden."""
        params = {
            'q': self.search,
            'status': self.status,
            'sort': self.sort_field,
            'dir': self.sort_direction,
        }
        params.update(overrides)
        return {k: v for k, v in params.items()
                if v not in (None, '') and not (k == 'status' and v == ALL_STATUSES)}

    def query(self, **overrides):
        return urlencode(self.params(**overrides))


def toggle_sort(current_field, current_direction, clicked_field):
    """Clicking the active column flips it; a new column starts descending."""
    if clicked_field == current_field:
        return clicked_field, 'asc' if current_direction == 'desc' else 'desc'
    return clicked_field, 'desc'


def sort_links(state, fields):
    """
    Header link data for each sortable field.

    Returns:
        dict: field -> {'query': str, 'indicator': 'none'|'asc'|'desc'}
    """
    links = {}
    for field in fields:
        new_field, new_direction = toggle_sort(state.sort_field, state.sort_direction, field)
        indicator = state.sort_direction if field == state.sort_field else 'none'
        links[field] = {
            'query': state.query(sort=new_field, dir=new_direction),
            'indicator': indicator,
        }
    return links


def filter_rows(rows, search, fields, status=None, status_field=None):
    """
    Keep rows matching the status and containing the search term.

    An empty term keeps every row. The term is matched case-insensitively
    as a substring of any of the given fields; missing values never match.
    """
    result = list(rows)
    if status and status != ALL_STATUSES and status_field:
        result = [row for row in result if row.get(status_field) == status]

    term = (search or '').strip().lower()
    if not term:
        return result

    def matches(row):
        for field in fields:
            value = row.get(field)
            if value and term in str(value).lower():
                return True
        return False

    return [row for row in result if matches(row)]


def sort_rows(rows, field, direction, text_fields=()):
    """Stable sort by one column; text columns use text_sort_key."""
    if field in text_fields:
        key = lambda row: text_sort_key(row.get(field))
    else:
        key = lambda row: _number(row.get(field))
    return sorted(rows, key=key, reverse=(direction == 'desc'))


def paginate(rows, page, page_size=10):
    """
    Slice one page out of rows.

    Returns:
        dict: items, page, pages, total, start_index, end_index,
              has_prev, has_next
    """
    total = len(rows)
    pages = max(1, math.ceil(total / page_size))
    try:
        page = int(page)
    except (TypeError, ValueError):
        page = 1
    page = min(max(1, page), pages)
    start = (page - 1) * page_size
    return {
        'items': rows[start:start + page_size],
        'page': page,
        'pages': pages,
        'total': total,
        'start_index': start + 1 if total else 0,
        'end_index': min(page * page_size, total),
        'has_prev': page > 1,
        'has_next': page < pages,
    }


def run_pipeline(rows, state, search_fields, text_fields, page_size,
                 status_field=None):
    """filter -> sort -> paginate; returns (sorted_rows, page_info)."""
    filtered = filter_rows(rows, state.search, search_fields,
                           status=state.status, status_field=status_field)
    ordered = sort_rows(filtered, state.sort_field, state.sort_direction, text_fields)
    return ordered, paginate(ordered, state.page, page_size)

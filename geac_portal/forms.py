"""
Event form state

The create and edit pages share one form. Its state is a plain dict that
round-trips through the HTML form, so every intermediate step (choosing a
city, adding a tag, creating a speaker inline) is a normal POST that
re-renders the page with the state preserved.
"""

from geac_portal.locations import find_location_data, initial_selection, resolve_selection

# Multi-value fields holding id strings
LIST_FIELDS = ('requirement_ids', 'tags', 'speakers')


def unique_ids(values):
    """Drop blanks and duplicates, keep first-seen order, normalise to str."""
    seen = []
    for value in values or []:
        if value is None:
            continue
        value = str(value).strip()
        if value and value not in seen:
            seen.append(value)
    return seen


def _first_id(items, default=''):
    return str(items[0]['id']) if items else default


def blank_form(categories, locations, organizers):
    """Empty create form defaulting to the first category, location and organization."""
    city, campus = initial_selection(locations)
    return {
        'title': '',
        'description': '',
        'start_time': '',
        'end_time': '',
        'category_id': _first_id(categories, '1'),
        'location_id': _first_id(locations, '1'),
        'organizer_id': _first_id(organizers),
        'requirement_ids': [],
        'tags': [],
        'speakers': [],
        'workload_hours': '',
        'max_capacity': '',
        'online_link': '',
        'is_online': False,
        'city': city,
        'campus': campus,
    }


def form_from_request(form, locations=None):
    """
    Read the form state from a submitted MultiDict.

    When locations are given the city/campus/venue triple is made consistent,
    using the hidden prev_city/prev_campus fields to tell which select changed.
    """
    data = {
        'title': form.get('title', ''),
        'description': form.get('description', ''),
        'start_time': form.get('start_time', '').strip(),
        'end_time': form.get('end_time', '').strip(),
        'category_id': form.get('category_id', '').strip(),
        'location_id': form.get('location_id', '').strip(),
        'organizer_id': form.get('organizer_id', '').strip(),
        'requirement_ids': unique_ids(form.getlist('requirement_ids')),
        'tags': unique_ids(form.getlist('tags')),
        'speakers': unique_ids(form.getlist('speakers')),
        'workload_hours': form.get('workload_hours', '').strip(),
        'max_capacity': form.get('max_capacity', '').strip(),
        'online_link': form.get('online_link', '').strip(),
        'is_online': form.get('is_online') in ('on', 'true', '1', 'yes'),
        'city': form.get('city', ''),
        'campus': form.get('campus', ''),
    }
    if locations is not None:
        city, campus, location_id = resolve_selection(
            locations,
            data['city'],
            data['campus'],
            data['location_id'],
            previous_city=form.get('prev_city'),
            previous_campus=form.get('prev_campus'),
        )
        data.update(city=city, campus=campus, location_id=location_id)
    return data


def add_item(form_data, field, item_id):
    """Append an id to a list field unless it is already there."""
    item_id = str(item_id).strip() if item_id is not None else ''
    if field in LIST_FIELDS and item_id and item_id not in form_data[field]:
        form_data[field] = form_data[field] + [item_id]
    return form_data


def remove_item(form_data, field, item_id):
    if field in LIST_FIELDS:
        form_data[field] = [value for value in form_data[field] if value != str(item_id)]
    return form_data


def clear_items(form_data, field):
    if field in LIST_FIELDS:
        form_data[field] = []
    return form_data


def apply_list_action(form_data, action, form):
    """
    Handle the add/remove buttons of the list fields.

    Actions:
        'add:<field>'          adds the id picked in '<field>_pick'
        'remove:<field>:<id>'  removes one id
        'clear:<field>'        removes every id

    Returns:
        bool: True when the action was a list action
    """
    parts = (action or '').split(':')
    if len(parts) == 2 and parts[0] == 'add':
        add_item(form_data, parts[1], form.get(f'{parts[1]}_pick', ''))
        return True
    if len(parts) == 3 and parts[0] == 'remove':
        remove_item(form_data, parts[1], parts[2])
        return True
    if len(parts) == 2 and parts[0] == 'clear':
        clear_items(form_data, parts[1])
        return True
    return False


def _find_id_by_name(items, name, key='name'):
    if not name:
        return None
    for item in items:
        if (item.get(key) or '').lower() == name.lower():
            return str(item['id'])
    return None


def form_from_event(event, categories, locations, tags, speakers, organizers):
    """
    Pre-fill the edit form from an EventResponse record.

    Tags and speakers arrive as names and are mapped back to ids
    (case-insensitive); names with no match are dropped.
    """
    location = event.get('location') or None
    if event.get('categoryId') is not None:
        category_id = str(event['categoryId'])
    else:
        category_id = (_find_id_by_name(categories, event.get('categoryName'))
                       or _first_id(categories, '1'))

    if location and location.get('id') is not None:
        location_id = str(location['id'])
    else:
        location_id = find_location_data(locations, (location or {}).get('name', ''))['location_id']

    city, campus = initial_selection(locations, location)

    return {
        'title': event.get('title') or '',
        'description': event.get('description') or '',
        'start_time': (event.get('startTime') or '')[:16],
        'end_time': (event.get('endTime') or '')[:16],
        'category_id': category_id,
        'location_id': location_id,
        'organizer_id': _first_id(organizers),
        'requirement_ids': unique_ids(req.get('id') for req in event.get('requirements') or []),
        'tags': unique_ids(_find_id_by_name(tags, name) for name in event.get('tags') or []),
        'speakers': unique_ids(_find_id_by_name(speakers, name) for name in event.get('speakers') or []),
        'workload_hours': str(event['workloadHours']) if event.get('workloadHours') is not None else '',
        'max_capacity': str(event['maxCapacity']) if event.get('maxCapacity') is not None else '',
        'online_link': event.get('onlineLink') or '',
        'is_online': bool(event.get('onlineLink')) and not location,
        'city': city,
        'campus': campus,
    }


def to_number(value):
    """'4' -> 4, '2.5' -> 2.5, anything else -> None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return None


def _to_int_list(values):
    return [int(value) for value in values if str(value).isdigit()]


def build_create_payload(form_data):
    """EventRequest body for POST /events/create."""
    location_id = to_number(form_data['location_id'])
    payload = {
        'title': form_data['title'].strip(),
        'description': form_data['description'].strip(),
        'startTime': form_data['start_time'],
        'endTime': form_data['end_time'],
        'categoryId': int(to_number(form_data['category_id']) or 0),
        'requirementIds': _to_int_list(form_data['requirement_ids']),
        'workloadHours': to_number(form_data['workload_hours']),
        'maxCapacity': to_number(form_data['max_capacity']),
        'onlineLink': form_data['online_link'] if form_data['is_online'] else None,
        'locationId': int(location_id) if location_id is not None else 1,
        'tags': _to_int_list(form_data['tags']),
        'speakers': _to_int_list(form_data['speakers']),
        'orgId': form_data['organizer_id'],
    }
    if payload['onlineLink'] is None:
        del payload['onlineLink']
    return payload


def build_patch_payload(form_data):
    """EventPatchRequest body for PATCH /events/<id>; empty values are omitted."""
    location_id = None if form_data['is_online'] else (to_number(form_data['location_id']) or None)
    payload = {
        'title': form_data['title'].strip(),
        'description': form_data['description'].strip(),
        'startTime': form_data['start_time'] or None,
        'endTime': form_data['end_time'] or None,
        'categoryId': to_number(form_data['category_id']),
        'requirementIds': _to_int_list(form_data['requirement_ids']),
        'workloadHours': to_number(form_data['workload_hours']) or None,
        'maxCapacity': to_number(form_data['max_capacity']) or None,
        'onlineLink': form_data['online_link'] if form_data['is_online'] else None,
        'locationId': int(location_id) if location_id else None,
        'tags': _to_int_list(form_data['tags']),
        'speakers': _to_int_list(form_data['speakers']),
        'orgId': form_data['organizer_id'] or None,
    }
    return {key: value for key, value in payload.items() if value is not None}

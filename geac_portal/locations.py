"""
Cascading location selector (city -> campus -> venue)

Locations come from the API as flat records carrying their city and campus.
The event forms narrow them in three steps; changing an upper level resets
the levels below it to the first available choice.
"""

from geac_portal.tables import text_sort_key


def _distinct_sorted(values):
    return sorted({value for value in values if value})


def available_cities(locations):
    return _distinct_sorted(loc.get('city') for loc in locations)


def available_campuses(locations, city):
    return _distinct_sorted(loc.get('campus') for loc in locations if loc.get('city') == city)


def available_venues(locations, city, campus):
    venues = [loc for loc in locations
              if loc.get('city') == city and loc.get('campus') == campus]
    return sorted(venues, key=lambda loc: text_sort_key(loc.get('name')))


def _first_location_id(locations, city, campus):
    for loc in locations:
        if loc.get('city') == city and loc.get('campus') == campus:
            return str(loc.get('id'))
    return ''


def select_city(locations, city):
    """
    Pick a new city.

    Returns:
        tuple: (city, campus, location_id) where campus is the first campus of
               that city in list order and location_id the first venue of the
               pair ('' when there is none)
    """
    campus = next((loc.get('campus') or '' for loc in locations if loc.get('city') == city), '')
    return city, campus, _first_location_id(locations, city, campus)


def select_campus(locations, city, campus):
    """Pick a new campus within the city; returns the first venue id ('' if none)."""
    return _first_location_id(locations, city, campus)


def find_location(locations, location_id):
    if location_id in (None, ''):
        return None
    for loc in locations:
        if str(loc.get('id')) == str(location_id):
            return loc
    return None


def find_location_data(locations, name):
    """
    Look up a venue by name for pre-filling a form.
    Unknown names fall back to the first location ('1' when there is none).
    """
    loc = next((item for item in locations if item.get('name') == name), None)
    first = locations[0] if locations else {}
    return {
        'location_id': str(loc['id']) if loc else (str(first['id']) if first else '1'),
        'city': (loc or {}).get('city') or first.get('city', ''),
        'campus': (loc or {}).get('campus') or first.get('campus', ''),
    }


def initial_selection(locations, location=None):
    """
    Starting (city, campus) for a form: the event's own location when
    editing, otherwise the first location in the list.
    """
    first = locations[0] if locations else {}
    if location:
        return (location.get('city') or first.get('city', ''),
                location.get('campus') or first.get('campus', ''))
    return first.get('city', ''), first.get('campus', '')


def resolve_selection(locations, city, campus, location_id, previous_city=None,
                      previous_campus=None):
    """
    Re-derive a consistent (city, campus, location_id) from submitted values.

    A city different from previous_city resets campus and venue; a campus
    different from previous_campus resets the venue. A venue that does not
    belong to the selected pair is replaced by the pair's first venue.
    """
    if previous_city is not None and city != previous_city:
        return select_city(locations, city)

    if campus not in available_campuses(locations, city):
        return select_city(locations, city)

    if previous_campus is not None and campus != previous_campus:
        return city, campus, select_campus(locations, city, campus)

    loc = find_location(locations, location_id)
    if loc is None or loc.get('city') != city or loc.get('campus') != campus:
        location_id = select_campus(locations, city, campus)
    return city, campus, str(location_id)


def location_choices(locations, city, campus):
    """Everything a template needs to render the three selects."""
    return {
        'cities': available_cities(locations),
        'campuses': available_campuses(locations, city),
        'venues': available_venues(locations, city, campus),
    }

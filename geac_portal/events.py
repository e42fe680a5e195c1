"""
Event pages for the GEAC portal

Features:
- Event catalogue with keyword/category/campus/date filters
- Event detail with registration, evaluations summary and evaluation form
- Create / edit forms with cascading location selector and inline
  creation of requirements and speakers
- Event management list with search, status filter and delete confirmation
- Organization access request page
"""

import logging
from datetime import datetime
from flask import render_template, request, redirect, url_for, flash, abort, jsonify

from geac_portal import app, api
from geac_portal.auth import require_login, require_role, safe_next_url
from geac_portal.forms import (
    add_item,
    apply_list_action,
    blank_form,
    build_create_payload,
    build_patch_payload,
    form_from_event,
    form_from_request,
)
from geac_portal.locations import location_choices
from geac_portal.tables import filter_rows, percent, text_sort_key
from geac_portal.util import (
    EVENT_STATUSES,
    create_pagination_info,
    create_pagination_links,
    get_pagination_params,
    parse_datetime,
)
from geac_portal.validation import (
    check_event_create,
    check_event_update,
    check_evaluation,
    check_requirement,
    check_speaker,
    clean_qualifications,
)

logger = logging.getLogger(__name__)

# Token roles allowed on each group of pages; organization membership is checked
# separately inside the views.
CREATE_ROLES = ('PROFESSOR', 'ADMIN')
MANAGE_ROLES = ('ORGANIZER', 'ADMIN')
LOOKUP_ROLES = ('PROFESSOR', 'ORGANIZER', 'ADMIN')
REQUEST_ROLES = ('STUDENT', 'PROFESSOR', 'ORGANIZER')


# =============================================================================
# VIEW HELPERS
# =============================================================================

def to_event_view(event):
    """
    Flatten an EventResponse record for templates and filters.
    Date and times are split out of the ISO start/end timestamps.
    """
    location = event.get('location') or {}
    start = parse_datetime(event.get('startTime'))
    end = parse_datetime(event.get('endTime'))
    return {
        'id': str(event.get('id')),
        'title': event.get('title') or '',
        'description': event.get('description') or '',
        'category': (event.get('categoryName') or '').lower(),
        'date': start.date().isoformat() if start else '',
        'start': start,
        'end': end,
        'start_time': start.strftime('%H:%M') if start else '',
        'end_time': end.strftime('%H:%M') if end else '',
        'location': location.get('name') or '',
        'campus': location.get('campus') or '',
        'city': location.get('city') or '',
        'speakers': event.get('speakers') or [],
        'capacity': event.get('maxCapacity') or 0,
        'registered': event.get('registeredCount') or 0,
        'requirements': event.get('requirements') or [],
        'organizer': event.get('organizerName') or '',
        'organizer_email': event.get('organizerEmail') or '',
        'tags': event.get('tags') or [],
        'is_registered': bool(event.get('isRegistered')),
        'online_link': event.get('onlineLink') or '',
        'status': event.get('status') or '',
        'user_registration_status': event.get('userRegistrationStatus') or '',
        'user_attended': bool(event.get('userAttended')),
        'workload_hours': event.get('workloadHours'),
    }


def filter_catalogue(events, keyword='', category='', campus='', on_date=''):
    """
    Filter catalogue rows.

    Args:
        keyword (str): Substring of title, description, organizer or any tag
        category (str): Category name (case-insensitive)
        campus (str): Exact campus
        on_date (str): 'YYYY-MM-DD' of the start date
    """
    term = (keyword or '').strip().lower()
    result = []
    for event in events:
        if category and event['category'] != category.lower():
            continue
        if campus and event['campus'] != campus:
            continue
        if on_date and event['date'] != on_date:
            continue
        if term:
            haystack = [event['title'], event['description'], event['organizer']] + list(event['tags'])
            if not any(term in (text or '').lower() for text in haystack):
                continue
        result.append(event)
    return result


def registration_state(event, user_organizers, now=None):
    """
    Decide which registration control the detail page shows.

    Returns:
        str: 'organizer', 'cancelled', 'completed', 'closed', 'full',
             'registered' or 'open'
    """
    if now is None:
        now = datetime.now()

    organizer_emails = {org.get('contactEmail') for org in user_organizers or []}
    if event['organizer_email'] and event['organizer_email'] in organizer_emails:
        return 'organizer'

    if event['status'] == 'CANCELLED':
        return 'cancelled'
    if event['status'] == 'COMPLETED':
        return 'completed'

    start = event.get('start')
    if start is not None:
        if start.tzinfo is not None:
            start = start.astimezone().replace(tzinfo=None)
        if start < now:
            return 'closed'

    is_full = event['capacity'] > 0 and event['registered'] >= event['capacity']
    if is_full and not event['is_registered']:
        return 'full'
    if event['is_registered']:
        return 'registered'
    return 'open'


def evaluation_summary(evaluations):
    """
    Average, total and per-star breakdown of an event's evaluations.
    Ratings outside 1-5 count towards the average but not the breakdown.
    """
    total = len(evaluations)
    if not total:
        return {'total': 0, 'average': None, 'breakdown': []}

    counts = {star: 0 for star in range(1, 6)}
    for evaluation in evaluations:
        rating = evaluation.get('rating')
        if rating in counts:
            counts[rating] += 1

    average = sum(evaluation.get('rating') or 0 for evaluation in evaluations) / total
    return {
        'total': total,
        'average': f'{average:.1f}',
        'breakdown': [
            {'star': star, 'count': counts[star], 'pct': counts[star] / total * 100}
            for star in (5, 4, 3, 2, 1)
        ],
    }


def reviewer_initial(name):
    return name[:1].upper() if name else '?'


def status_counts(events):
    """Totals shown above the management list."""
    counts = {'total': len(events)}
    for status in ('ACTIVE', 'UPCOMING', 'COMPLETED', 'CANCELLED'):
        counts[status] = sum(1 for event in events if event.get('status') == status)
    return counts


# =============================================================================
# FORM HELPERS
# =============================================================================

def load_form_lookups():
    """Everything the create/edit form needs from the API."""
    return {
        'categories': api.get_categories(),
        'locations': api.get_locations(),
        'requirements': api.get_requirements(),
        'tags': api.get_tags(),
        'speakers': api.get_speakers(),
        'organizers': api.get_user_organizers(),
    }


def _qualifications_from_request(form):
    titles = form.getlist('qualification_title')
    institutions = form.getlist('qualification_institution')
    return [
        {'title_name': title, 'institution': institution}
        for title, institution in zip(titles, institutions)
    ]


def speaker_form_from_request(form):
    qualifications = _qualifications_from_request(form)
    if form.get('action') == 'add_qualification':
        qualifications.append({'title_name': '', 'institution': ''})
    return {
        'name': form.get('speaker_name', ''),
        'email': form.get('speaker_email', ''),
        'bio': form.get('speaker_bio', ''),
        'qualifications': qualifications or [{'title_name': '', 'institution': ''}],
    }


def blank_speaker_form():
    return {'name': '', 'email': '', 'bio': '',
            'qualifications': [{'title_name': '', 'institution': ''}]}


def handle_inline_action(action, form_data, lookups, form):
    """
    Apply a non-submitting form action.

    Returns:
        tuple: (handled, error_message, speaker_form)
    """
    speaker_form = speaker_form_from_request(form)

    if apply_list_action(form_data, action, form):
        return True, None, speaker_form

    if action in ('refresh', 'add_qualification'):
        return True, None, speaker_form

    if action == 'create_requirement':
        description = form.get('new_requirement', '').strip()
        error = check_requirement(description)
        if error:
            return True, error, speaker_form
        result = api.create_requirement(description)
        if not result['success']:
            return True, result['error'], speaker_form
        requirement = result['requirement']
        if requirement.get('id') is not None:
            lookups['requirements'].append(requirement)
            add_item(form_data, 'requirement_ids', requirement['id'])
        return True, None, speaker_form

    if action == 'create_speaker':
        error = check_speaker(speaker_form['name'], speaker_form['email'])
        if error:
            return True, error, speaker_form
        result = api.create_speaker(
            speaker_form['name'].strip(),
            bio=speaker_form['bio'].strip(),
            email=speaker_form['email'].strip() or None,
            qualifications=clean_qualifications(speaker_form['qualifications']),
        )
        if not result['success']:
            return True, result['error'], speaker_form
        if result.get('speakerId') is not None:
            lookups['speakers'].append({'id': result['speakerId'], 'name': speaker_form['name'].strip()})
            add_item(form_data, 'speakers', result['speakerId'])
        flash('Speaker registered.', 'success')
        return True, None, blank_speaker_form()

    return False, None, speaker_form


def render_event_form(mode, form_data, lookups, error=None, speaker_form=None, event_id=None):
    return render_template(
        'events/form.html',
        mode=mode,
        event_id=event_id,
        form=form_data,
        error=error,
        speaker_form=speaker_form or blank_speaker_form(),
        choices=location_choices(lookups['locations'], form_data['city'], form_data['campus']),
        **lookups,
    )


# =============================================================================
# CATALOGUE & DETAIL
# =============================================================================

@app.route('/')
def home():
    return redirect(url_for('event_list'))


@app.route('/events')
@require_login
def event_list():
    """Event catalogue with keyword, category, campus and date filters"""
    events = [to_event_view(event) for event in api.get_all_events()]

    keyword = request.args.get('q', '')
    category = request.args.get('category', '')
    campus = request.args.get('campus', '')
    on_date = request.args.get('date', '')

    filtered = filter_catalogue(events, keyword, category, campus, on_date)
    filtered.sort(key=lambda event: event['start'].replace(tzinfo=None) if event['start'] else datetime.max)

    page, per_page = get_pagination_params(request)
    pagination = create_pagination_info(
        page, per_page, len(filtered), url_for('event_list'),
        q=keyword, category=category, campus=campus, date=on_date,
    )
    start = (pagination['page'] - 1) * pagination['per_page']

    return render_template(
        'events/list.html',
        events=filtered[start:start + pagination['per_page']],
        pagination=pagination,
        pagination_links=create_pagination_links(pagination),
        filters={'q': keyword, 'category': category, 'campus': campus, 'date': on_date},
        available_categories=sorted({e['category'] for e in events if e['category']}),
        available_campuses=sorted({e['campus'] for e in events if e['campus']}, key=text_sort_key),
    )


@app.route('/events/<event_id>')
@require_login
def event_detail(event_id):
    """Event detail with registration state and evaluations"""
    event = api.get_event(event_id)
    if event is None:
        abort(404)

    view = to_event_view(event)
    user_organizers = api.get_user_organizers()
    evaluations = api.get_event_evaluations(event_id)
    for evaluation in evaluations:
        evaluation['initial'] = reviewer_initial(evaluation.get('userName'))

    return render_template(
        'events/detail.html',
        event=view,
        state=registration_state(view, user_organizers),
        occupancy=percent(view['registered'], view['capacity']),
        evaluations=evaluations,
        summary=evaluation_summary(evaluations),
        can_evaluate=view['user_attended'] and view['status'] == 'COMPLETED',
    )


@app.route('/events/<event_id>/register', methods=['POST'])
@require_login
def register_for_event(event_id):
    result = api.register_for_event(event_id)
    if result['success']:
        flash('Registration completed successfully!', 'success')
    else:
        flash(result['error'], 'error')
    return redirect(url_for('event_detail', event_id=event_id))


@app.route('/events/<event_id>/cancel-registration', methods=['POST'])
@require_login
def cancel_event_registration(event_id):
    result = api.cancel_registration(event_id)
    if result['success']:
        flash('Registration cancelled. Your spot has been released.', 'success')
    else:
        flash(result['error'], 'error')
    return redirect(url_for('event_detail', event_id=event_id))


@app.route('/events/<event_id>/evaluate', methods=['POST'])
@require_login
def evaluate_event(event_id):
    rating = request.form.get('rating', '')
    comment = request.form.get('comment', '')

    error = check_evaluation(rating, comment)
    if error:
        flash(error, 'error')
        return redirect(url_for('event_detail', event_id=event_id))

    result = api.submit_evaluation(event_id, int(rating), comment.strip())
    if result['success']:
        flash('Evaluation sent! Thank you for your feedback.', 'success')
    else:
        flash(result['error'], 'error')
    return redirect(url_for('event_detail', event_id=event_id))


# =============================================================================
# CREATE / EDIT
# =============================================================================

@app.route('/events/new', methods=['GET', 'POST'])
@require_role(*CREATE_ROLES)
def create_event():
    """Create a new event on behalf of one of the user's organizations"""
    lookups = load_form_lookups()
    if not lookups['organizers']:
        return render_template('events/restricted.html', action='create')

    if request.method == 'GET':
        return render_event_form('create', blank_form(
            lookups['categories'], lookups['locations'], lookups['organizers']), lookups)

    form_data = form_from_request(request.form, lookups['locations'])
    action = request.form.get('action', 'save')

    handled, error, speaker_form = handle_inline_action(action, form_data, lookups, request.form)
    if handled:
        return render_event_form('create', form_data, lookups, error, speaker_form)

    error = check_event_create(form_data, lookups['locations'])
    if error:
        return render_event_form('create', form_data, lookups, error, speaker_form)

    result = api.create_event(build_create_payload(form_data))
    if not result['success']:
        return render_event_form('create', form_data, lookups, result['error'], speaker_form)

    flash('Event created successfully!', 'success')
    return redirect(url_for('event_list'))


@app.route('/events/<event_id>/edit', methods=['GET', 'POST'])
@require_role(*MANAGE_ROLES)
def edit_event(event_id):
    """Edit an existing event"""
    event = api.get_event(event_id)
    if event is None:
        flash('Could not load the event data.', 'error')
        return redirect(url_for('manage_events'))

    lookups = load_form_lookups()
    if not lookups['organizers']:
        return render_template('events/restricted.html', action='manage')

    if request.method == 'GET':
        form_data = form_from_event(event, lookups['categories'], lookups['locations'],
                                    lookups['tags'], lookups['speakers'], lookups['organizers'])
        return render_event_form('edit', form_data, lookups, event_id=event_id)

    form_data = form_from_request(request.form, lookups['locations'])
    action = request.form.get('action', 'save')

    handled, error, speaker_form = handle_inline_action(action, form_data, lookups, request.form)
    if handled:
        return render_event_form('edit', form_data, lookups, error, speaker_form, event_id)

    error = check_event_update(form_data)
    if error:
        return render_event_form('edit', form_data, lookups, error, speaker_form, event_id)

    result = api.update_event(event_id, build_patch_payload(form_data))
    if not result['success']:
        return render_event_form('edit', form_data, lookups, result['error'], speaker_form, event_id)

    flash('Event updated successfully!', 'success')
    return redirect(url_for('manage_events'))


# =============================================================================
# MANAGEMENT
# =============================================================================

@app.route('/events/manage')
@require_role(*MANAGE_ROLES)
def manage_events():
    """All events with search, status filter and actions"""
    organizers = api.get_user_organizers()
    if not organizers:
        return render_template('events/restricted.html', action='manage')

    events = api.get_all_events()
    search = request.args.get('q', '')
    status = request.args.get('status', '')
    if status not in EVENT_STATUSES:
        status = ''

    filtered = filter_rows(events, search, ('title', 'description', 'organizerName'),
                           status=status, status_field='status')

    page, per_page = get_pagination_params(request)
    pagination = create_pagination_info(page, per_page, len(filtered),
                                        url_for('manage_events'), q=search, status=status)
    start = (pagination['page'] - 1) * pagination['per_page']

    return render_template(
        'events/manage.html',
        events=filtered[start:start + pagination['per_page']],
        counts=status_counts(events),
        search=search,
        status=status,
        statuses=EVENT_STATUSES,
        pagination=pagination,
        pagination_links=create_pagination_links(pagination),
        has_events=bool(events),
    )


@app.route('/events/<event_id>/delete', methods=['GET', 'POST'])
@require_role(*MANAGE_ROLES)
def delete_event(event_id):
    """Confirmation page (GET) and deletion (POST)"""
    if not api.get_user_organizers():
        return render_template('events/restricted.html', action='manage')

    if request.method == 'GET':
        event = api.get_event(event_id)
        if event is None:
            flash('Could not load the event data.', 'error')
            return redirect(url_for('manage_events'))
        return render_template('events/delete_confirm.html', event=event)

    result = api.delete_event(event_id)
    if result['success']:
        flash('Event deleted successfully!', 'success')
    else:
        flash(result['error'], 'error')
    return redirect(url_for('manage_events'))


# =============================================================================
# INLINE LOOKUP CREATION
# =============================================================================

def _wants_json():
    return request.is_json or request.accept_mimetypes.best == 'application/json'


@app.route('/requirements', methods=['POST'])
@require_role(*LOOKUP_ROLES)
def create_requirement():
    """Create a requirement outside the event form (JSON or redirect back)"""
    description = (request.form.get('description') or
                   (request.get_json(silent=True) or {}).get('description') or '').strip()
    error = check_requirement(description)
    result = {'success': False, 'error': error} if error else api.create_requirement(description)

    if _wants_json():
        status = 201 if result['success'] else 400
        return jsonify(result), status

    if result['success']:
        flash('Requirement created.', 'success')
    else:
        flash(result['error'], 'error')
    return redirect(safe_next_url(request.form.get('next')) or url_for('create_event'))


@app.route('/speakers', methods=['POST'])
@require_role(*LOOKUP_ROLES)
def create_speaker():
    """Create a speaker outside the event form (JSON or redirect back)"""
    speaker_form = speaker_form_from_request(request.form)
    error = check_speaker(speaker_form['name'], speaker_form['email'])
    if error:
        result = {'success': False, 'error': error}
    else:
        result = api.create_speaker(
            speaker_form['name'].strip(),
            bio=speaker_form['bio'].strip(),
            email=speaker_form['email'].strip() or None,
            qualifications=clean_qualifications(speaker_form['qualifications']),
        )

    if _wants_json():
        status = 201 if result['success'] else 400
        return jsonify(result), status

    if result['success']:
        flash('Speaker registered.', 'success')
    else:
        flash(result['error'], 'error')
    return redirect(safe_next_url(request.form.get('next')) or url_for('create_event'))


# =============================================================================
# ORGANIZATION ACCESS
# =============================================================================

@app.route('/requests')
@require_role(*REQUEST_ROLES)
def request_access():
    """Organizations a user can ask to join in order to manage events"""
    organizers = sorted(api.get_organizers(), key=lambda org: text_sort_key(org.get('name')))
    return render_template('requests.html', organizers=organizers)

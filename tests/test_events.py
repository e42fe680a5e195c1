"""
Tests for the event pages and their view helpers.
"""

from datetime import datetime

import pytest

from geac_portal.events import (
    evaluation_summary,
    filter_catalogue,
    registration_state,
    reviewer_initial,
    status_counts,
    to_event_view,
)

ORGS = [{'id': 'org-1', 'name': 'PET Computação', 'contactEmail': 'pet@example.com'}]
BEFORE = datetime(2030, 1, 1)
AFTER = datetime(2031, 1, 1)


@pytest.fixture
def view(event_record):
    return to_event_view(event_record)


@pytest.fixture
def organizer_api(fake_api, locations):
    """Signed-in user who belongs to an organization, with form lookups loaded."""
    fake_api.returns('get_user_organizers', ORGS)
    fake_api.returns('get_locations', locations)
    fake_api.returns('get_categories', [{'id': 2, 'name': 'palestra'}])
    fake_api.returns('get_tags', [{'id': 1, 'name': 'Python'}, {'id': 2, 'name': 'Dados'}])
    fake_api.returns('get_speakers', [{'id': 8, 'name': 'Maria Silva'}])
    return fake_api


def _event_form(**overrides):
    data = {
        'action': 'save', 'title': 'Talk', 'description': 'About things',
        'start_time': '2030-05-10T14:00', 'end_time': '2030-05-10T16:00',
        'category_id': '2', 'organizer_id': 'org-1', 'tags': ['1'], 'speakers': ['8'],
        'workload_hours': '2', 'max_capacity': '30',
        'city': 'São Carlos', 'campus': 'Campus 1', 'location_id': '2',
        'prev_city': 'São Carlos', 'prev_campus': 'Campus 1',
    }
    data.update(overrides)
    return data


# ── View helpers ─────────────────────────────────────────────────────────────


class TestEventView:
    def test_flattens_record(self, view):
        assert view['id'] == '10'
        assert view['category'] == 'palestra'
        assert view['date'] == '2030-05-10'
        assert (view['start_time'], view['end_time']) == ('14:00', '17:00')
        assert (view['location'], view['campus']) == ('Sala 10', 'Campus 1')
        assert (view['registered'], view['capacity']) == (12, 40)

    def test_missing_location_and_times(self):
        view = to_event_view({'id': 1, 'title': 'Online'})
        assert view['location'] == '' and view['date'] == '' and view['start'] is None


class TestFilterCatalogue:
    def test_keyword_matches_tags_and_organizer(self, view):
        assert filter_catalogue([view], keyword='python') == [view]
        assert filter_catalogue([view], keyword='PET comp') == [view]
        assert filter_catalogue([view], keyword='chemistry') == []

    def test_category_campus_date(self, view):
        assert filter_catalogue([view], category='PALESTRA') == [view]
        assert filter_catalogue([view], category='workshop') == []
        assert filter_catalogue([view], campus='Campus 2') == []
        assert filter_catalogue([view], on_date='2030-05-10') == [view]
        assert filter_catalogue([view], on_date='2030-05-11') == []


class TestRegistrationState:
    def test_organizer(self, view):
        assert registration_state(view, ORGS, now=BEFORE) == 'organizer'

    def test_cancelled_and_completed(self, view):
        assert registration_state(dict(view, status='CANCELLED'), [], now=BEFORE) == 'cancelled'
        assert registration_state(dict(view, status='COMPLETED'), [], now=BEFORE) == 'completed'

    def test_closed_after_start(self, view):
        assert registration_state(view, [], now=AFTER) == 'closed'

    def test_full_unless_registered(self, view):
        full = dict(view, registered=40)
        assert registration_state(full, [], now=BEFORE) == 'full'
        assert registration_state(dict(full, is_registered=True), [], now=BEFORE) == 'registered'

    def test_open(self, view):
        assert registration_state(view, [], now=BEFORE) == 'open'


def test_evaluation_summary():
    summary = evaluation_summary([{'rating': 5}, {'rating': 4}, {'rating': 4}])
    assert summary['total'] == 3
    assert summary['average'] == '4.3'
    assert [(row['star'], row['count']) for row in summary['breakdown']] == [
        (5, 1), (4, 2), (3, 0), (2, 0), (1, 0)]
    assert evaluation_summary([]) == {'total': 0, 'average': None, 'breakdown': []}


def test_reviewer_initial_and_counts():
    assert reviewer_initial('bia') == 'B'
    assert reviewer_initial(None) == '?'
    counts = status_counts([{'status': 'ACTIVE'}, {'status': 'ACTIVE'}, {'status': 'CANCELLED'}])
    assert counts == {'total': 3, 'ACTIVE': 2, 'UPCOMING': 0, 'COMPLETED': 0, 'CANCELLED': 1}


# ── Catalogue and detail ─────────────────────────────────────────────────────


class TestCatalogue:
    def test_home_redirects(self, client):
        assert client.get('/').headers['Location'].endswith('/events')

    def test_requires_login(self, client, fake_api):
        response = client.get('/events')
        assert response.status_code == 302
        assert '/login?next=' in response.headers['Location']

    def test_lists_and_filters(self, user_client, fake_api, event_record):
        other = dict(event_record, id=11, title='Maker Fair', categoryName='Workshop')
        fake_api.returns('get_all_events', [event_record, other])
        html = user_client.get('/events?category=workshop').get_data(as_text=True)
        assert 'Maker Fair' in html
        assert 'Data Science Week' not in html

    def test_category_options_come_from_events(self, user_client, fake_api, event_record):
        fake_api.returns('get_all_events', [dict(event_record, categoryName='Minicurso')])
        html = user_client.get('/events').get_data(as_text=True)
        assert '<option value="minicurso"' in html
        assert '<option value="workshop"' not in html

    def test_empty(self, user_client, fake_api):
        assert 'No events found.' in user_client.get('/events').get_data(as_text=True)


class TestDetail:
    def test_unknown_event_is_404(self, user_client, fake_api):
        assert user_client.get('/events/999').status_code == 404

    def test_open_event_with_evaluations(self, user_client, fake_api, event_record):
        fake_api.returns('get_event', event_record)
        fake_api.returns('get_event_evaluations', [
            {'rating': 5, 'comment': 'Loved it', 'userName': 'bia', 'createdAt': '2030-05-11T10:00:00'},
        ])
        response = user_client.get('/events/10')
        html = response.get_data(as_text=True)
        assert response.status_code == 200
        assert 'action="/events/10/register"' in html
        assert '5.0' in html and 'Loved it' in html and '11/05/2030' in html

    def test_organizer_sees_edit_link(self, organizer_client, fake_api, event_record):
        fake_api.returns('get_event', event_record)
        fake_api.returns('get_user_organizers', ORGS)
        html = organizer_client.get('/events/10').get_data(as_text=True)
        assert 'You organize this event.' in html
        assert 'href="/events/10/edit"' in html
        assert 'action="/events/10/register"' not in html

    def test_register(self, user_client, fake_api):
        response = user_client.post('/events/10/register')
        assert response.headers['Location'].endswith('/events/10')
        assert fake_api.called('register_for_event')[0][1] == ('10',)
        with user_client.session_transaction() as session:
            assert ('success', 'Registration completed successfully!') in session['_flashes']

    def test_cancel_registration_failure_is_flashed(self, user_client, fake_api):
        fake_api.returns('cancel_registration', {'success': False, 'error': 'Too late.'})
        user_client.post('/events/10/cancel-registration')
        with user_client.session_transaction() as session:
            assert ('error', 'Too late.') in session['_flashes']

    def test_evaluate(self, user_client, fake_api):
        user_client.post('/events/10/evaluate', data={'rating': '5', 'comment': ' Great event '})
        assert fake_api.called('submit_evaluation')[0][1] == ('10', 5, 'Great event')

    def test_invalid_evaluation_is_not_sent(self, user_client, fake_api):
        user_client.post('/events/10/evaluate', data={'rating': '5', 'comment': 'ok'})
        assert fake_api.called('submit_evaluation') == []
        with user_client.session_transaction() as session:
            assert ('error', 'Please write a review with at least 5 characters.') in session['_flashes']


# ── Create and edit ──────────────────────────────────────────────────────────


class TestCreate:
    def test_without_organization_is_restricted(self, professor_client, fake_api):
        html = professor_client.get('/events/new').get_data(as_text=True)
        assert 'Only members of an organization can create events.' in html

    def test_blank_form(self, professor_client, organizer_api):
        response = professor_client.get('/events/new')
        assert response.status_code == 200
        assert 'name="prev_city" value="São Carlos"' in response.get_data(as_text=True)

    def test_add_tag_keeps_state(self, professor_client, organizer_api):
        response = professor_client.post('/events/new', data=_event_form(action='add:tags', tags_pick='2'))
        html = response.get_data(as_text=True)
        assert response.status_code == 200
        assert 'name="tags" value="1"' in html and 'name="tags" value="2"' in html
        assert organizer_api.called('create_event') == []

    def test_city_change_refreshes_venues(self, professor_client, organizer_api):
        response = professor_client.post('/events/new', data=_event_form(action='refresh', city='Araraquara'))
        assert 'value="4" selected' in response.get_data(as_text=True)

    def test_validation_error_is_shown(self, professor_client, organizer_api):
        html = professor_client.post('/events/new', data=_event_form(tags=[])).get_data(as_text=True)
        assert 'Select at least one tag.' in html
        assert organizer_api.called('create_event') == []

    def test_save(self, professor_client, organizer_api):
        response = professor_client.post('/events/new', data=_event_form())
        assert response.status_code == 302
        assert response.headers['Location'].endswith('/events')
        payload = organizer_api.called('create_event')[0][1][0]
        assert payload['locationId'] == 2
        assert payload['tags'] == [1] and payload['speakers'] == [8]

    def test_backend_error_rerenders_form(self, professor_client, organizer_api):
        organizer_api.returns('create_event', {'success': False, 'error': 'Venue busy.'})
        response = professor_client.post('/events/new', data=_event_form())
        assert response.status_code == 200
        assert 'Venue busy.' in response.get_data(as_text=True)

    def test_inline_requirement(self, professor_client, organizer_api):
        html = professor_client.post('/events/new', data=_event_form(
            action='create_requirement', new_requirement='Projector')).get_data(as_text=True)
        assert organizer_api.called('create_requirement')[0][1] == ('Projector',)
        assert 'name="requirement_ids" value="99"' in html

    def test_inline_speaker(self, professor_client, organizer_api):
        data = _event_form(action='create_speaker', speaker_name='João', speaker_email='',
                           qualification_title=['PhD', ''], qualification_institution=['USP', ''])
        html = professor_client.post('/events/new', data=data).get_data(as_text=True)
        call = organizer_api.called('create_speaker')[0]
        assert call[1] == ('João',)
        assert call[2]['qualifications'] == [{'title_name': 'PhD', 'institution': 'USP'}]
        assert 'name="speakers" value="50"' in html

    def test_inline_speaker_requires_name(self, professor_client, organizer_api):
        html = professor_client.post('/events/new', data=_event_form(action='create_speaker')).get_data(as_text=True)
        assert 'Speaker name is required.' in html
        assert organizer_api.called('create_speaker') == []


class TestEdit:
    def test_missing_event_redirects(self, organizer_client, organizer_api):
        response = organizer_client.get('/events/10/edit')
        assert response.headers['Location'].endswith('/events/manage')

    def test_prefilled_form(self, organizer_client, organizer_api, event_record):
        organizer_api.returns('get_event', event_record)
        html = organizer_client.get('/events/10/edit').get_data(as_text=True)
        assert 'value="Data Science Week"' in html
        assert 'name="tags" value="1"' in html

    def test_save(self, organizer_client, organizer_api, event_record):
        organizer_api.returns('get_event', event_record)
        response = organizer_client.post('/events/10/edit', data=_event_form(title='Renamed', start_time=''))
        assert response.headers['Location'].endswith('/events/manage')
        event_id, payload = organizer_api.called('update_event')[0][1]
        assert event_id == '10'
        assert payload['title'] == 'Renamed'
        assert 'startTime' not in payload


# ── Management ───────────────────────────────────────────────────────────────


class TestManage:
    def test_restricted_without_organization(self, organizer_client, fake_api):
        html = organizer_client.get('/events/manage').get_data(as_text=True)
        assert 'Only members of an organization can manage events.' in html

    def test_status_filter(self, organizer_client, organizer_api, event_record):
        old = dict(event_record, id=11, title='Old Fair', status='COMPLETED')
        organizer_api.returns('get_all_events', [event_record, old])
        html = organizer_client.get('/events/manage?status=COMPLETED').get_data(as_text=True)
        assert 'Old Fair' in html
        assert 'Data Science Week' not in html
        assert 'Total: 2' in html

    def test_delete_confirmation_and_delete(self, organizer_client, organizer_api, event_record):
        organizer_api.returns('get_event', event_record)
        assert 'Are you sure' in organizer_client.get('/events/10/delete').get_data(as_text=True)
        response = organizer_client.post('/events/10/delete')
        assert response.headers['Location'].endswith('/events/manage')
        assert organizer_api.called('delete_event')[0][1] == ('10',)

    def test_delete_without_organization_is_restricted(self, organizer_client, fake_api):
        html = organizer_client.get('/events/10/delete').get_data(as_text=True)
        assert 'Only members of an organization can manage events.' in html
        assert 'Are you sure' not in html
        organizer_client.post('/events/10/delete')
        assert fake_api.called('delete_event') == []


class TestRoleGates:
    @pytest.mark.parametrize('path', [
        '/events/new', '/events/manage', '/events/10/edit', '/events/10/delete',
    ])
    def test_student_is_forbidden(self, user_client, organizer_api, path):
        assert user_client.get(path).status_code == 403

    @pytest.mark.parametrize('path', ['/events/new', '/events/10/edit', '/events/10/delete'])
    def test_student_cannot_write(self, user_client, organizer_api, path):
        assert user_client.post(path, data=_event_form()).status_code == 403
        assert organizer_api.called('create_event') == []
        assert organizer_api.called('update_event') == []
        assert organizer_api.called('delete_event') == []

    def test_professor_cannot_manage(self, professor_client, organizer_api):
        assert professor_client.get('/events/manage').status_code == 403
        assert professor_client.post('/events/10/delete').status_code == 403
        assert organizer_api.called('delete_event') == []

    def test_organizer_cannot_create(self, organizer_client, organizer_api):
        assert organizer_client.get('/events/new').status_code == 403

    @pytest.mark.parametrize('path', ['/events/new', '/events/manage'])
    def test_admin_is_allowed(self, admin_client, organizer_api, path):
        assert admin_client.get(path).status_code == 200

    def test_student_cannot_create_lookups(self, user_client, fake_api):
        assert user_client.post('/speakers', data={'speaker_name': 'Ana'}).status_code == 403
        assert user_client.post('/requirements', json={'description': 'Laptop'}).status_code == 403
        assert fake_api.called('create_speaker') == []

    def test_admin_cannot_request_access(self, admin_client, fake_api):
        assert admin_client.get('/requests').status_code == 403

    def test_student_sees_only_permitted_links(self, user_client, fake_api):
        html = user_client.get('/events').get_data(as_text=True)
        assert 'href="/events/new"' not in html
        assert 'href="/events/manage"' not in html
        assert 'href="/requests"' in html


class TestLookupCreation:
    def test_requirement_json(self, organizer_client, fake_api):
        response = organizer_client.post('/requirements', json={'description': 'Laptop'})
        assert response.status_code == 201
        assert response.get_json()['requirement']['id'] == 99

    def test_requirement_json_validation(self, organizer_client, fake_api):
        response = organizer_client.post('/requirements', json={'description': ' '})
        assert response.status_code == 400
        assert response.get_json() == {'success': False, 'error': 'The requirement description cannot be empty.'}

    def test_speaker_redirects_to_next(self, organizer_client, fake_api):
        response = organizer_client.post('/speakers', data={'speaker_name': 'Ana', 'next': '/events/10/edit'})
        assert response.headers['Location'].endswith('/events/10/edit')

    def test_speaker_ignores_external_next(self, organizer_client, fake_api):
        response = organizer_client.post('/speakers', data={'speaker_name': 'Ana', 'next': 'https://evil.example'})
        assert response.headers['Location'].endswith('/events/new')


def test_request_access_lists_organizations(user_client, fake_api):
    fake_api.returns('get_organizers', ORGS)
    html = user_client.get('/requests').get_data(as_text=True)
    assert 'mailto:pet@example.com' in html

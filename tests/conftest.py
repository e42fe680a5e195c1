"""Shared pytest fixtures for the portal tests.

Fixture overview
----------------
app               the Flask app in testing mode
client            test client without an auth cookie
make_token        builds an unsigned JWT carrying the given claims
user_client       client signed in as a STUDENT (id 7)
professor_client  client signed in as a PROFESSOR (id 7)
organizer_client  client signed in as an ORGANIZER (id 7)
admin_client      client signed in as an ADMIN (id 1)
fake_api          replaces every backend call in geac_portal.api with a stub
                  returning empty data; tests override single functions
"""

import base64
import json

import pytest

from geac_portal import api, app as flask_app


def _b64(data):
    return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b'=').decode()


def build_token(claims):
    return f"{_b64({'alg': 'HS256', 'typ': 'JWT'})}.{_b64(claims)}.signature"


@pytest.fixture
def app():
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_token():
    return build_token


@pytest.fixture
def user_client(app):
    client = app.test_client()
    client.set_cookie('token', build_token({'id': 7, 'role': 'STUDENT', 'name': 'Ana'}))
    return client


@pytest.fixture
def professor_client(app):
    client = app.test_client()
    client.set_cookie('token', build_token({'id': 7, 'role': 'PROFESSOR', 'name': 'Ana'}))
    return client


@pytest.fixture
def organizer_client(app):
    client = app.test_client()
    client.set_cookie('token', build_token({'id': 7, 'role': 'ORGANIZER', 'name': 'Ana'}))
    return client


@pytest.fixture
def admin_client(app):
    client = app.test_client()
    client.set_cookie('token', build_token({'id': 1, 'role': 'ADMIN', 'name': 'Root'}))
    return client


# ── API stubs ────────────────────────────────────────────────────────────────

_LIST_READS = [
    'get_categories', 'get_locations', 'get_requirements', 'get_tags',
    'get_organizers', 'get_speakers', 'get_user_organizers', 'get_all_events',
    'get_event_statistics', 'get_organization_engagement', 'get_student_hours',
]


class FakeApi:
    """Records write calls and lets tests replace individual functions."""

    def __init__(self, monkeypatch):
        self.monkeypatch = monkeypatch
        self.calls = []
        for name in _LIST_READS:
            self.returns(name, [])
        self.returns('get_event', None)
        self.returns('get_event_evaluations', [])
        for name in ('create_event', 'update_event', 'delete_event',
                     'register_for_event', 'cancel_registration', 'submit_evaluation'):
            self.returns(name, {'success': True, 'data': None})
        self.returns('create_requirement', {'success': True, 'requirement': {'id': 99, 'description': 'x'}})
        self.returns('create_speaker', {'success': True, 'speakerId': 50})
        self.returns('login', {'success': True, 'token': build_token({'id': 7})})

    def returns(self, name, value):
        def stub(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return value
        self.monkeypatch.setattr(api, name, stub)

    def called(self, name):
        return [call for call in self.calls if call[0] == name]


@pytest.fixture
def fake_api(monkeypatch):
    return FakeApi(monkeypatch)


# ── Sample records ───────────────────────────────────────────────────────────


@pytest.fixture
def locations():
    return [
        {'id': 1, 'name': 'Auditório A', 'city': 'São Carlos', 'campus': 'Campus 1', 'capacity': 200},
        {'id': 2, 'name': 'Sala 10', 'city': 'São Carlos', 'campus': 'Campus 1', 'capacity': 40},
        {'id': 3, 'name': 'Ginásio', 'city': 'São Carlos', 'campus': 'Campus 2', 'capacity': 500},
        {'id': 4, 'name': 'Biblioteca', 'city': 'Araraquara', 'campus': 'Centro', 'capacity': 80},
    ]


@pytest.fixture
def event_record():
    return {
        'id': 10,
        'title': 'Data Science Week',
        'description': 'Talks about data',
        'categoryId': 2,
        'categoryName': 'Palestra',
        'startTime': '2030-05-10T14:00:00',
        'endTime': '2030-05-10T17:00:00',
        'location': {'id': 2, 'name': 'Sala 10', 'city': 'São Carlos', 'campus': 'Campus 1', 'capacity': 40},
        'speakers': ['Maria Silva'],
        'tags': ['Python', 'Dados'],
        'requirements': [{'id': 5, 'description': 'Laptop'}],
        'maxCapacity': 40,
        'registeredCount': 12,
        'organizerName': 'PET Computação',
        'organizerEmail': 'pet@example.com',
        'status': 'UPCOMING',
        'isRegistered': False,
        'workloadHours': 3,
    }

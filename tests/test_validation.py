"""
Unit tests for form validation messages.
"""

from datetime import datetime

import pytest

from geac_portal.validation import (
    check_email,
    check_evaluation,
    check_event_create,
    check_event_update,
    check_login,
    check_online_link,
    check_requirement,
    check_speaker,
    clean_qualifications,
    parse_datetime_local,
)

NOW = datetime(2030, 1, 1, 12, 0)


def _form(**overrides):
    form = {
        'title': 'Talk', 'description': 'About things', 'start_time': '2030-05-10T14:00',
        'end_time': '2030-05-10T16:00', 'category_id': '2', 'location_id': '2',
        'organizer_id': 'org-1', 'requirement_ids': [], 'tags': ['1'], 'speakers': ['8'],
        'workload_hours': '2', 'max_capacity': '30', 'online_link': '', 'is_online': False,
        'city': 'São Carlos', 'campus': 'Campus 1',
    }
    form.update(overrides)
    return form


def test_parse_datetime_local():
    assert parse_datetime_local('2030-05-10T14:00') == datetime(2030, 5, 10, 14, 0)
    assert parse_datetime_local('2030-05-10T14:00:30') == datetime(2030, 5, 10, 14, 0, 30)
    assert parse_datetime_local('10/05/2030') is None
    assert parse_datetime_local('') is None


class TestEventCreate:
    def test_valid(self, locations):
        assert check_event_create(_form(), locations, now=NOW) is None

    @pytest.mark.parametrize("overrides, message", [
        ({'title': '  '}, 'The title cannot be empty.'),
        ({'description': ''}, 'The description cannot be empty.'),
        ({'speakers': []}, 'Select at least one speaker.'),
        ({'tags': []}, 'Select at least one tag.'),
        ({'start_time': 'soon'}, 'Please enter a valid start date and time.'),
        ({'end_time': ''}, 'Please enter a valid end date and time.'),
        ({'start_time': '2029-12-31T10:00'}, 'The start date cannot be in the past.'),
        ({'end_time': '2030-05-10T14:00'}, 'The end date must be after the start date.'),
        ({'workload_hours': '0'}, 'The workload must be at least 1 hour.'),
        ({'workload_hours': 'abc'}, 'The workload must be at least 1 hour.'),
        ({'max_capacity': '0'}, 'The maximum capacity must be greater than 0.'),
        ({'is_online': True, 'online_link': ''}, 'Please enter the link for the online event.'),
        ({'is_online': True, 'online_link': 'meet.example.com'},
         'The online link must start with http:// or https://.'),
    ])
    def test_errors(self, locations, overrides, message):
        assert check_event_create(_form(**overrides), locations, now=NOW) == message

    def test_first_error_wins(self, locations):
        assert check_event_create(_form(title='', tags=[]), locations, now=NOW) == 'The title cannot be empty.'

    def test_workload_shorter_than_duration(self, locations):
        message = check_event_create(_form(end_time='2030-05-10T16:30', workload_hours='2'), locations, now=NOW)
        assert message == ('The workload entered (2h) cannot be less than the '
                           'actual duration of the event (3h).')

    def test_capacity_above_venue_limit(self, locations):
        message = check_event_create(_form(max_capacity='41'), locations, now=NOW)
        assert message == ('The capacity entered (41) exceeds the limit of the selected venue '
                           '(Sala 10 holds at most 40 people).')

    def test_online_event_skips_venue_capacity(self, locations):
        form = _form(max_capacity='1000', is_online=True, online_link='https://meet.example.com')
        assert check_event_create(form, locations, now=NOW) is None


class TestEventUpdate:
    def test_only_title_and_description_required(self):
        assert check_event_update(_form(start_time='', end_time='', tags=[], speakers=[])) is None

    def test_end_before_start(self):
        assert check_event_update(_form(end_time='2030-05-10T13:00')) == 'The end date must be after the start date.'

    def test_online_link_checked(self):
        assert check_event_update(_form(is_online=True)) == 'Please enter the link for the online event.'


def test_online_link():
    assert check_online_link('https://meet.example.com/abc') is None
    assert check_online_link('http://x.org') is None
    assert check_online_link('ftp://x.org') is not None


class TestEvaluation:
    def test_valid(self):
        assert check_evaluation('5', 'Great event') is None

    @pytest.mark.parametrize("rating", ['0', '6', '', None, 'five'])
    def test_rating_out_of_range(self, rating):
        assert check_evaluation(rating, 'Great event') == 'Please select a rating from 1 to 5 stars.'

    def test_comment_too_short(self):
        assert check_evaluation(4, '  ok   ') == 'Please write a review with at least 5 characters.'


class TestSpeaker:
    def test_name_required(self):
        assert check_speaker('  ') == 'Speaker name is required.'

    def test_email_optional(self):
        assert check_speaker('Maria', '') is None
        assert check_speaker('Maria', 'maria@example.com') is None

    def test_bad_email(self):
        assert check_email('a@@b.com') == 'Email address must contain exactly one @ symbol.'
        assert check_email('maria@example') == 'Please enter a valid email address (e.g., user@example.com).'

    def test_clean_qualifications(self):
        rows = [
            {'title_name': ' PhD ', 'institution': 'USP'},
            {'title_name': 'MSc', 'institution': ''},
            {'title_name': '', 'institution': ''},
        ]
        assert clean_qualifications(rows) == [{'title_name': 'PhD', 'institution': 'USP'}]


def test_requirement_and_login():
    assert check_requirement(' ') == 'The requirement description cannot be empty.'
    assert check_requirement('Laptop') is None
    assert check_login('', 'x') == 'Email address is required.'
    assert check_login('a@b.com', '') == 'Password is required.'
    assert check_login('a@b.com', 'secret') is None

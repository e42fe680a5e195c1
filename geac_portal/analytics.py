"""
Analytics Module
Features:
- Admin: event participation statistics
- Admin: organization engagement
- Admin: student extracurricular hours
- Search, sort and pagination over each list
- CSV / Excel export of the filtered list
"""

import csv
import logging
import math
from datetime import datetime
from io import StringIO, BytesIO
from flask import render_template, request, make_response
from openpyxl import Workbook
from openpyxl.styles import Font

from geac_portal import app, api, config
from geac_portal.auth import require_role
from geac_portal.tables import (
    TableState,
    percent,
    round_half_up,
    run_pipeline,
    sort_links,
)

logger = logging.getLogger(__name__)

TOP_N = 5
MIN_BAR_WIDTH = 4


# =============================================================================
# EVENT STATISTICS
# =============================================================================

EVENT_STATS_SORT_FIELDS = ['eventTitle', 'totalInscritos', 'totalPresentes', 'mediaAvaliacao']
EVENT_STATS_STATUSES = ['ALL', 'ACTIVE', 'COMPLETED', 'CANCELLED']
EVENT_STATS_STATUS_FILTERS = [
    ('ALL', 'All'),
    ('ACTIVE', 'Active'),
    ('COMPLETED', 'Completed'),
    ('CANCELLED', 'Cancelled'),
]


def get_event_statistics_metrics(data):
    """
    Aggregate metrics over all event statistics rows

    Returns:
        dict: total_events, active/completed/cancelled counts,
              total_registered, total_present, attendance_rate (whole %),
              avg_rating (mean over rated events, 0 when none)
    """
    total_registered = sum(row.get('totalInscritos') or 0 for row in data)
    total_present = sum(row.get('totalPresentes') or 0 for row in data)
    ratings = [row['mediaAvaliacao'] for row in data if (row.get('mediaAvaliacao') or 0) > 0]

    return {
        'total_events': len(data),
        'active_events': sum(1 for row in data if row.get('eventStatus') == 'ACTIVE'),
        'completed_events': sum(1 for row in data if row.get('eventStatus') == 'COMPLETED'),
        'cancelled_events': sum(1 for row in data if row.get('eventStatus') == 'CANCELLED'),
        'total_registered': total_registered,
        'total_present': total_present,
        'attendance_rate': percent(total_present, total_registered),
        'avg_rating': sum(ratings) / len(ratings) if ratings else 0,
    }


def get_status_distribution(data, metrics):
    total = len(data) or 1
    distribution = []
    for status, label, key in [
        ('ACTIVE', 'Active', 'active_events'),
        ('COMPLETED', 'Completed', 'completed_events'),
        ('CANCELLED', 'Cancelled', 'cancelled_events'),
    ]:
        count = metrics[key]
        distribution.append({
            'status': status,
            'label': label,
            'count': count,
            'pct': round_half_up(count / total * 100),
        })
    return distribution


def top_by(data, field, label_field, limit=TOP_N):
    """
    Top rows by a numeric field (descending) with relative bar widths.
    The largest row gets 100%; every bar is at least MIN_BAR_WIDTH wide.
    """
    ranked = sorted(data, key=lambda row: row.get(field) or 0, reverse=True)[:limit]
    peak = (ranked[0].get(field) or 0) if ranked else 0
    peak = peak or 1
    return [
        {
            'rank': idx,
            'label': row.get(label_field),
            'value': row.get(field) or 0,
            'bar_width': max((row.get(field) or 0) / peak * 100, MIN_BAR_WIDTH),
        }
        for idx, row in enumerate(ranked, 1)
    ]


def presence_rate(row):
    return percent(row.get('totalPresentes') or 0, row.get('totalInscritos') or 0)


def presence_band(rate):
    if rate >= 70:
        return 'high'
    if rate >= 40:
        return 'medium'
    return 'low'


def render_stars(rating):
    """
    Five star slots for a 0-5 rating: 'full', 'half' or 'empty'.
    A half star is shown when the fractional part is at least 0.25.
    """
    rating = rating or 0
    full = math.floor(rating)
    has_half = rating - full >= 0.25
    stars = []
    for i in range(5):
        if i < full:
            stars.append('full')
        elif i == full and has_half:
            stars.append('half')
        else:
            stars.append('empty')
    return stars


# =============================================================================
# ORGANIZATION ENGAGEMENT
# =============================================================================

ORG_SORT_FIELDS = ['organizerName', 'totalEventosRealizados', 'totalParticipantesEngajados']


def get_organization_metrics(data):
    """
    Aggregate metrics over all organizations

    Returns:
        dict: total_orgs, total_events, total_engaged, avg_events_per_org and
              avg_engaged_per_org (one decimal), active_orgs, activity_rate
              (whole %, None when there are no organizations)
    """
    total_orgs = len(data)
    total_events = sum(row.get('totalEventosRealizados') or 0 for row in data)
    total_engaged = sum(row.get('totalParticipantesEngajados') or 0 for row in data)
    active_orgs = sum(1 for row in data if (row.get('totalEventosRealizados') or 0) > 0)

    return {
        'total_orgs': total_orgs,
        'total_events': total_events,
        'total_engaged': total_engaged,
        'avg_events_per_org': round_half_up(total_events / total_orgs, 1) if total_orgs else 0,
        'avg_engaged_per_org': round_half_up(total_engaged / total_orgs, 1) if total_orgs else 0,
        'active_orgs': active_orgs,
        'activity_rate': percent(active_orgs, total_orgs) if total_orgs else None,
    }


def get_activity_distribution(data):
    """Organizations bucketed by events held: 0, 1-3, 4-10, more than 10."""
    total = len(data) or 1
    buckets = [
        ('Inactive', lambda n: n == 0),
        ('Low (1-3)', lambda n: 1 <= n <= 3),
        ('Medium (4-10)', lambda n: 4 <= n <= 10),
        ('High (10+)', lambda n: n > 10),
    ]
    distribution = []
    for label, test in buckets:
        count = sum(1 for row in data if test(row.get('totalEventosRealizados') or 0))
        distribution.append({
            'label': label,
            'count': count,
            'pct': round_half_up(count / total * 100),
        })
    return distribution


# =============================================================================
# STUDENT HOURS
# =============================================================================

STUDENT_SORT_FIELDS = ['studentName', 'totalCertificadosEmitidos', 'totalHorasAcumuladas']


def get_student_hours_metrics(data):
    total_students = len(data)
    total_hours = sum(row.get('totalHorasAcumuladas') or 0 for row in data)
    return {
        'total_students': total_students,
        'total_certificates': sum(row.get('totalCertificadosEmitidos') or 0 for row in data),
        'total_hours': total_hours,
        'avg_hours': round_half_up(total_hours / total_students) if total_students else 0,
    }


# =============================================================================
# DASHBOARD DEFINITIONS
# =============================================================================

# One entry per admin list: how to fetch, search, sort and export it
DASHBOARDS = {
    'event-statistics': {
        'fetch': lambda: api.get_event_statistics(),
        'sort_fields': EVENT_STATS_SORT_FIELDS,
        'default_sort': 'totalInscritos',
        'text_fields': ('eventTitle',),
        'search_fields': ('eventTitle',),
        'statuses': EVENT_STATS_STATUSES,
        'status_field': 'eventStatus',
        'filename': 'event_statistics',
        'columns': [
            ('Event ID', 'eventId'),
            ('Event', 'eventTitle'),
            ('Status', 'eventStatus'),
            ('Registered', 'totalInscritos'),
            ('Present', 'totalPresentes'),
            ('Average Rating', 'mediaAvaliacao'),
        ],
    },
    'org-engagement': {
        'fetch': lambda: api.get_organization_engagement(),
        'sort_fields': ORG_SORT_FIELDS,
        'default_sort': 'totalParticipantesEngajados',
        'text_fields': ('organizerName',),
        'search_fields': ('organizerName',),
        'statuses': None,
        'status_field': None,
        'filename': 'organization_engagement',
        'columns': [
            ('Organizer ID', 'organizerId'),
            ('Organization', 'organizerName'),
            ('Events Held', 'totalEventosRealizados'),
            ('Engaged Participants', 'totalParticipantesEngajados'),
        ],
    },
    'student-hours': {
        'fetch': lambda: api.get_student_hours(),
        'sort_fields': STUDENT_SORT_FIELDS,
        'default_sort': 'totalHorasAcumuladas',
        'text_fields': ('studentName',),
        'search_fields': ('studentName', 'studentEmail'),
        'statuses': None,
        'status_field': None,
        'filename': 'student_hours',
        'columns': [
            ('Student ID', 'studentId'),
            ('Student', 'studentName'),
            ('Email', 'studentEmail'),
            ('Certificates Issued', 'totalCertificadosEmitidos'),
            ('Accumulated Hours', 'totalHorasAcumuladas'),
        ],
    },
}


def build_dashboard_table(name, data, args):
    """
    Run the list pipeline for one dashboard.

    Returns:
        tuple: (state, ordered_rows, page_info, header_links)
    """
    definition = DASHBOARDS[name]
    state = TableState.from_args(
        args,
        sort_fields=definition['sort_fields'],
        default_sort=definition['default_sort'],
        statuses=definition['statuses'],
    )
    ordered, page_info = run_pipeline(
        data,
        state,
        search_fields=definition['search_fields'],
        text_fields=definition['text_fields'],
        page_size=config.DASHBOARD_PAGE_SIZE,
        status_field=definition['status_field'],
    )
    return state, ordered, page_info, sort_links(state, definition['sort_fields'])


# =============================================================================
# EXPORT
# =============================================================================

def _export_rows(name, rows):
    columns = DASHBOARDS[name]['columns']
    headers = [header for header, _ in columns]
    body = [[row.get(field, '') for _, field in columns] for row in rows]
    return headers, body


def export_csv(name, rows):
    """CSV download of the given rows (UTF-8 with BOM so Excel reads accents)."""
    headers, body = _export_rows(name, rows)
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(headers)
    writer.writerows(body)
    csv_content = "\ufeff" + output.getvalue()
    output.close()

    timestamp = datetime.now().strftime("%Y%m%d")
    filename = DASHBOARDS[name]['filename']
    response = make_response(csv_content)
    response.headers['Content-Type'] = 'text/csv; charset=utf-8'
    response.headers['Content-Disposition'] = f'attachment; filename={filename}_{timestamp}.csv'
    return response


def export_xlsx(name, rows):
    """Excel download of the given rows with a bold header row."""
    headers, body = _export_rows(name, rows)
    wb = Workbook()
    ws = wb.active
    ws.title = DASHBOARDS[name]['filename'][:31]

    for col_num, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col_num)
        cell.value = header
        cell.font = Font(bold=True)

    for row_num, values in enumerate(body, 2):
        for col_num, value in enumerate(values, 1):
            ws.cell(row=row_num, column=col_num).value = value

    output = BytesIO()
    wb.save(output)
    output.seek(0)

    timestamp = datetime.now().strftime("%Y%m%d")
    filename = DASHBOARDS[name]['filename']
    response = make_response(output.getvalue())
    response.headers['Content-Type'] = (
        'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
    )
    response.headers['Content-Disposition'] = f'attachment; filename={filename}_{timestamp}.xlsx'
    return response


# =============================================================================
# ANALYTICS ROUTES
# =============================================================================

@app.route('/admin/event-statistics')
@require_role('ADMIN')
def event_statistics():
    """Event participation dashboard"""
    data = api.get_event_statistics()
    metrics = get_event_statistics_metrics(data)
    state, ordered, page_info, headers = build_dashboard_table('event-statistics', data, request.args)

    rows = []
    for row in page_info['items']:
        rate = presence_rate(row)
        rows.append({
            **row,
            'presence_rate': rate,
            'presence_band': presence_band(rate),
            'stars': render_stars(row.get('mediaAvaliacao')),
        })

    return render_template(
        'admin/event_statistics.html',
        metrics=metrics,
        distribution=get_status_distribution(data, metrics),
        top_events=top_by(data, 'totalInscritos', 'eventTitle'),
        status_filters=EVENT_STATS_STATUS_FILTERS,
        has_data=bool(data),
        state=state,
        rows=rows,
        page_info=page_info,
        headers=headers,
    )


@app.route('/admin/org-engagement')
@require_role('ADMIN')
def organization_engagement():
    """Organization engagement dashboard"""
    data = api.get_organization_engagement()
    state, ordered, page_info, headers = build_dashboard_table('org-engagement', data, request.args)

    return render_template(
        'admin/org_engagement.html',
        metrics=get_organization_metrics(data),
        top_by_engagement=top_by(data, 'totalParticipantesEngajados', 'organizerName'),
        top_by_events=top_by(data, 'totalEventosRealizados', 'organizerName'),
        distribution=get_activity_distribution(data),
        has_data=bool(data),
        state=state,
        rows=page_info['items'],
        page_info=page_info,
        headers=headers,
    )


@app.route('/admin/student-hours')
@require_role('ADMIN')
def student_hours():
    """Student extracurricular hours dashboard"""
    data = api.get_student_hours()
    state, ordered, page_info, headers = build_dashboard_table('student-hours', data, request.args)

    return render_template(
        'admin/student_hours.html',
        metrics=get_student_hours_metrics(data),
        has_data=bool(data),
        state=state,
        rows=page_info['items'],
        page_info=page_info,
        headers=headers,
    )


@app.route('/admin/<dashboard>/export.<fmt>')
@require_role('ADMIN')
def export_dashboard(dashboard, fmt):
    """Download the filtered and sorted list of a dashboard (all pages)."""
    if dashboard not in DASHBOARDS or fmt not in ('csv', 'xlsx'):
        return render_template('errors/404.html'), 404

    data = DASHBOARDS[dashboard]['fetch']()
    _, ordered, _, _ = build_dashboard_table(dashboard, data, request.args)

    if fmt == 'csv':
        return export_csv(dashboard, ordered)
    return export_xlsx(dashboard, ordered)

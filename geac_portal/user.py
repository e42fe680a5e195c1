"""
Sign-in and sign-out

Credentials are checked by the GEAC API; the portal only stores the token it
returns in the auth cookie.
"""

import logging
from flask import render_template, request, redirect, url_for, flash, make_response

from geac_portal import app, api
from geac_portal.auth import (
    clear_token_cookie,
    get_current_user,
    is_admin,
    is_user_logged_in,
    safe_next_url,
    set_token_cookie,
)
from geac_portal.validation import check_login

logger = logging.getLogger(__name__)


@app.route('/login', methods=['GET', 'POST'])
def login():
    next_url = safe_next_url(request.values.get('next'))

    if request.method == 'GET':
        if is_user_logged_in():
            return redirect(next_url or url_for('event_list'))
        return render_template('auth/login.html', email='', next_url=next_url)

    email = request.form.get('email', '').strip()
    password = request.form.get('password', '')

    error = check_login(email, password)
    if error is None:
        result = api.login(email, password)
        if result['success']:
            response = make_response(redirect(next_url or url_for('event_list')))
            return set_token_cookie(response, result['token'])
        logger.info("Sign-in rejected for %s", email)
        error = result['error']

    flash(error, 'error')
    return render_template('auth/login.html', email=email, next_url=next_url), 401


@app.route('/logout')
def logout():
    flash('You have been logged out.', 'info')
    response = make_response(redirect(url_for('login')))
    response.headers['Cache-Control'] = 'no-cache, no-store, must-revalidate'
    response.headers['Pragma'] = 'no-cache'
    response.headers['Expires'] = '0'
    return clear_token_cookie(response)


@app.context_processor
def inject_user():
    return {
        'logged_in': is_user_logged_in(),
        'is_admin': is_admin(),
        'current_user': get_current_user(),
    }

import logging
from datetime import datetime, timezone

import sqlalchemy as sa
from flask import (Blueprint, current_app, flash, jsonify, redirect,
                   render_template, request, session, url_for)

from .auth import CODE_LENGTH, PENDING_KEY, admin_required, get_auth_system
from .exceptions import DeliveryFailed, PortfolioAdminError, ServiceUnavailable
from .models import db

logger = logging.getLogger(__name__)

site = Blueprint('site', __name__)
admin = Blueprint('admin', __name__, url_prefix='/admin')

NEXT_KEY = 'login_next'
MIN_PASSWORD_LENGTH = 8


def get_email_sender():
    return current_app.extensions['email_sender']


def _safe_next(target):
    if target and target.startswith('/') and not target.startswith('//'):
        return target
    return None


@site.route('/healthz')
def healthz():
    try:
        db.session.execute(sa.text('SELECT 1'))
        db_status = 'healthy'
    except Exception as e:
        db_status = f'unhealthy: {e}'
    return jsonify({'status': 'ok', 'database': db_status,
                    'timestamp': datetime.now(timezone.utc).isoformat()})


# -------------------
# Login
# -------------------
@admin.route('/login', methods=['GET', 'POST'])
def login():
    if request.method == 'POST':
        email = request.form.get('email', '').strip()
        password = request.form.get('password', '')
        try:
            challenge = get_auth_system().initiate_admin_login(email, password, get_email_sender())
        except PortfolioAdminError as e:
            flash(str(e), 'error')
            next_target = _safe_next(request.form.get('next') or request.args.get('next'))
            return redirect(url_for('admin.login', next=next_target))

        session[NEXT_KEY] = _safe_next(request.form.get('next') or request.args.get('next'))
        if challenge.delivered:
            flash('A verification code was sent to your email address', 'success')
        else:
            flash(DeliveryFailed.message, 'warning')
        return redirect(url_for('admin.enter_code'))

    return render_template('admin/login.html', next=request.args.get('next', ''))


@admin.route('/enter_code', methods=['GET', 'POST'])
def enter_code():
    principal_id = session.get(PENDING_KEY)
    if not principal_id:
        return redirect(url_for('admin.login'))

    if request.method == 'POST':
        code = request.form.get('code', '')
        try:
            get_auth_system().verify_code(principal_id, code)
        except PortfolioAdminError as e:
            flash(str(e), 'error')
            return redirect(url_for('admin.enter_code'))
        flash('Login successful', 'success')
        return redirect(session.pop(NEXT_KEY, None) or url_for('admin.dashboard'))

    return render_template('admin/enter_code.html',
                           code_length=CODE_LENGTH)


@admin.route('/logout', methods=['POST'])
def logout():
    get_auth_system().logout()
    session.pop(NEXT_KEY, None)
    flash('You have been logged out', 'success')
    response = redirect(url_for('admin.login'))
    response.headers['Clear-Site-Data'] = '"cache"'
    return response


# -------------------
# Protected views
# -------------------
@admin.route('/')
@admin_required
def dashboard():
    try:
        principal = get_auth_system().identity.current_principal()
    except ServiceUnavailable as e:
        flash(str(e), 'error')
        return redirect(url_for('admin.login'))
    return render_template('admin/dashboard.html', principal=principal)


# -------------------
# Password reset
# -------------------
@admin.route('/forgot_password', methods=['GET', 'POST'])
def forgot_password():
    if request.method == 'POST':
        email = request.form.get('email', '').strip()
        identity = get_auth_system().identity
        try:
            token = identity.make_reset_token(email)
        except ServiceUnavailable as e:
            flash(str(e), 'error')
            return redirect(url_for('admin.forgot_password'))
        if token:
            link = url_for('admin.reset_password', token=token, _external=True)
            try:
                get_email_sender().send_password_reset(email, link)
            except DeliveryFailed:
                flash('Password reset email could not be sent', 'error')
                return redirect(url_for('admin.forgot_password'))
        else:
            logger.info(f"Password reset requested for unknown address {email}")
        flash('If the address is registered, a reset link has been sent', 'success')
        return redirect(url_for('admin.login'))

    return render_template('admin/forgot_password.html')


@admin.route('/reset_password/<token>', methods=['GET', 'POST'])
def reset_password(token):
    if request.method == 'POST':
        password = request.form.get('password', '')
        confirm = request.form.get('confirm', '')
        if len(password) < MIN_PASSWORD_LENGTH:
            flash(f'Password must be at least {MIN_PASSWORD_LENGTH} characters', 'error')
            return redirect(url_for('admin.reset_password', token=token))
        if password != confirm:
            flash('Passwords do not match', 'error')
            return redirect(url_for('admin.reset_password', token=token))
        try:
            get_auth_system().identity.reset_password(token, password)
        except PortfolioAdminError as e:
            flash(str(e), 'error')
            return redirect(url_for('admin.forgot_password'))
        flash('Password updated, please sign in', 'success')
        return redirect(url_for('admin.login'))

    return render_template('admin/reset_password.html', token=token)

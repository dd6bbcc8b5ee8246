"""Auth module routes.

JSON login/logout, current-user info, and the "Mi Vista" / "Visión completa"
data-scope toggle.
"""
import os
import hmac
import logging

from flask import jsonify, request, session
from flask_login import login_required, login_user, logout_user, current_user

from . import auth_bp
from .models import User
from .repositories import UserRepository
from core.utils.api_helpers import (
    api_login_required, error_response, get_json_or_error, RateLimiter,
)

logger = logging.getLogger('midcar.auth.routes')

_user_repo = UserRepository()
_auth_limiter = RateLimiter()
_fullview_limiter = RateLimiter()

FULLVIEW_MAX_ATTEMPTS = 5
FULLVIEW_LOCKOUT_SECONDS = 15 * 60


# ============== AUTHENTICATION ROUTES ==============

@auth_bp.route('/api/auth/login', methods=['POST'])
def api_login():
    """Authenticate with {email, password, remember}."""
    allowed, retry_after = _auth_limiter.is_allowed(
        f'login:{request.remote_addr}', max_requests=10, window_seconds=300)
    if not allowed:
        return jsonify({'success': False,
                        'error': f'Too many login attempts. Try again in {retry_after} seconds.'}), 429

    data, error = get_json_or_error()
    if error:
        return error

    email = (data.get('email') or '').strip()
    password = data.get('password') or ''
    if not email or not password:
        return error_response('Email and password are required')

    user_data = _user_repo.authenticate(email, password)
    if not user_data:
        logger.info(f'Failed login attempt for {email}')
        return error_response('Invalid email or password', 401)

    user = User(user_data)
    login_user(user, remember=bool(data.get('remember')))
    session['view_mode'] = 'mi_vista'
    _user_repo.update_last_login(user.id)
    logger.info(f'User {email} logged in')
    return jsonify({'success': True, 'user': user.to_dict()})


@auth_bp.route('/api/auth/logout', methods=['POST'])
@login_required
def api_logout():
    logger.info(f'User {current_user.email} logged out')
    session.pop('view_mode', None)
    logout_user()
    return jsonify({'success': True})


@auth_bp.route('/api/auth/me', methods=['GET'])
@api_login_required
def api_me():
    payload = current_user.to_dict()
    payload['view_mode'] = 'completa' if current_user.is_admin else session.get('view_mode', 'mi_vista')
    return jsonify(payload)


@auth_bp.route('/api/auth/sellers', methods=['GET'])
@api_login_required
def api_sellers():
    return jsonify({'sellers': _user_repo.list_sellers()})


# ============== DATA SCOPE ==============

@auth_bp.route('/api/auth/verify-fullview', methods=['POST'])
@api_login_required
def api_verify_fullview():
    """Unlock "Visión completa" with the shared access code {code}."""
    key = f'fullview:{current_user.id}'
    if _fullview_limiter.is_blocked(key, FULLVIEW_MAX_ATTEMPTS, FULLVIEW_LOCKOUT_SECONDS):
        return jsonify({'success': False,
                        'error': 'Demasiados intentos fallidos. Espera 15 minutos.',
                        'locked': True}), 429

    data = request.get_json(silent=True) or {}
    code = data.get('code')
    if not code or not isinstance(code, str):
        return error_response('Código requerido')

    secret = os.environ.get('FULL_VIEW_ACCESS_CODE')
    if not secret:
        logger.error('FULL_VIEW_ACCESS_CODE is not configured')
        return error_response('Error de configuración del servidor', 500)

    if hmac.compare_digest(code.encode('utf-8'), secret.encode('utf-8')):
        _fullview_limiter.reset(key)
        session['view_mode'] = 'completa'
        logger.info(f'Full view unlocked by {current_user.email}')
        return jsonify({'success': True, 'message': 'Acceso concedido'})

    _fullview_limiter.record(key)
    logger.warning(f'Wrong full view code from {current_user.email}')
    return jsonify({'success': False, 'error': 'Código incorrecto',
                    'remainingAttempts': _fullview_limiter.remaining(key, FULLVIEW_MAX_ATTEMPTS)}), 401


@auth_bp.route('/api/auth/view-mode', methods=['POST'])
@api_login_required
def api_view_mode():
    """Switch back to "Mi Vista". Full view is only granted via verify-fullview."""
    data = request.get_json(silent=True) or {}
    if data.get('mode') != 'mi_vista':
        return error_response('Only mode "mi_vista" can be set directly')
    session['view_mode'] = 'mi_vista'
    return jsonify({'success': True, 'view_mode': 'mi_vista'})

"""Shared API utilities: decorators, error helpers, rate limiter, request parsing.

Every blueprint builds its JSON responses through these helpers so errors
look the same across the API: {'success': False, 'error': '...'}.
"""
import io
import csv
import time
import logging
from collections import defaultdict
from functools import wraps

from flask import jsonify, request, Response, session
from flask_login import current_user

logger = logging.getLogger('midcar.api')


# ============== Decorators ==============

def api_login_required(f):
    """Like @login_required but returns JSON 401 instead of redirect."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'success': False, 'error': 'Authentication required'}), 401
        return f(*args, **kwargs)
    return decorated


def permission_required(module, action='view'):
    """Require current_user.has_permission(module, action).

    Usage:
        @inventory_bp.route('/api/vehicles', methods=['POST'])
        @permission_required('inventory', 'edit')
        def api_vehicle_create(): ...
    """
    def wrapper(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({'success': False, 'error': 'Authentication required'}), 401
            if not current_user.has_permission(module, action):
                return jsonify({'success': False, 'error': 'Permission denied'}), 403
            return f(*args, **kwargs)
        return decorated
    return wrapper


def admin_required(f):
    """Decorator requiring authentication + admin role."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'success': False, 'error': 'Authentication required'}), 401
        if not current_user.is_admin:
            return jsonify({'success': False, 'error': 'Permission denied'}), 403
        return f(*args, **kwargs)
    return decorated


# ============== Request Helpers ==============

def get_json_or_error():
    """Get JSON from request body with null check.

    Returns (data, error_response) tuple. Caller pattern:
        data, error = get_json_or_error()
        if error:
            return error
    """
    data = request.get_json(silent=True)
    if data is None:
        return None, (jsonify({
            'success': False,
            'error': 'Invalid or missing JSON body',
        }), 400)
    return data, None


def get_pagination(default_limit=50, max_limit=500):
    """Read limit/offset query args, clamped to sane bounds."""
    limit = request.args.get('limit', default_limit, type=int)
    offset = request.args.get('offset', 0, type=int)
    limit = max(1, min(limit or default_limit, max_limit))
    return limit, max(0, offset or 0)


def get_bool_arg(name):
    """Parse a tri-state boolean query arg: True, False or None when absent."""
    raw = request.args.get(name)
    if raw is None or raw == '':
        return None
    return raw.lower() in ('1', 'true', 'yes', 'si')


def scope_owner_id():
    """Owner filter for list endpoints.

    Returns the current user's id in "mi vista" mode, None in full view.
    Admins always see everything.
    """
    if not current_user.is_authenticated:
        return None
    if getattr(current_user, 'is_admin', False):
        return None
    if session.get('view_mode') == 'completa':
        return None
    return current_user.id


# ============== Error Handling ==============

def error_response(message, status_code=400):
    """Plain JSON error response."""
    return jsonify({'success': False, 'error': message}), status_code


def safe_error_response(e, status_code=500):
    """Return error response without leaking DB internals.

    - ValueError/KeyError: returns str(e) as 400 (business validation, safe to expose)
    - Everything else: logs full exception, returns generic message
    """
    if isinstance(e, (ValueError, KeyError)):
        return jsonify({'success': False, 'error': str(e)}), 400

    logger.exception('Unhandled error in API route')
    return jsonify({'success': False, 'error': 'An internal error occurred'}), status_code


# ============== Downloads ==============

def csv_response(rows, filename, columns):
    """Stream rows as CSV download."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(columns)
    for row in rows:
        writer.writerow([row.get(c, '') for c in columns])
    return Response(
        output.getvalue(),
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )


# ============== Rate Limiter ==============

class RateLimiter:
    """Simple in-memory rate limiter.

    Per-worker state; fine for login throttling on an internal tool.
    """

    def __init__(self):
        self._requests = defaultdict(list)

    def _prune(self, key, window_seconds):
        """Drop timestamps outside the window; forget `key` once none are left."""
        window_start = time.time() - window_seconds
        recent = [ts for ts in self._requests.get(key, []) if ts > window_start]
        if recent:
            self._requests[key] = recent
        else:
            self._requests.pop(key, None)
        return recent

    def is_allowed(self, key, max_requests=10, window_seconds=60):
        """Check if request is allowed.

        Returns:
            (is_allowed: bool, retry_after: int) tuple
        """
        now = time.time()
        recent = self._prune(key, window_seconds)

        if len(recent) >= max_requests:
            retry_after = int(min(recent) + window_seconds - now) + 1
            return False, max(1, retry_after)

        self._requests[key].append(now)
        return True, 0

    def is_blocked(self, key, max_requests=10, window_seconds=60):
        """True when `key` already used up its window, without recording a request."""
        return len(self._prune(key, window_seconds)) >= max_requests

    def record(self, key):
        """Count one request (e.g. a failed attempt) against `key`."""
        self._requests[key].append(time.time())

    def remaining(self, key, max_requests=10):
        """Requests left in the current window for `key`."""
        return max(0, max_requests - len(self._requests.get(key, [])))

    def reset(self, key):
        """Forget all recorded requests for `key` (e.g. after a successful login)."""
        self._requests.pop(key, None)

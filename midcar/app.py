import sys
import os
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from datetime import timedelta
from flask import Flask, request, jsonify

# Structured logging
import logging
from core.utils.logging_config import setup_logging
logger = setup_logging(level=os.environ.get('LOG_LEVEL', 'INFO'))
app_logger = logging.getLogger('midcar.app')
app_logger.info('MidCar app module loading...')
from flask_compress import Compress
from flask_login import LoginManager
from core.auth.models import User
from core.auth.repositories import UserRepository
from database import ping_db, init_db

_user_repo = UserRepository()


app = Flask(__name__)

# Secret key: required in production, dev fallback only when FLASK_DEBUG=true
_secret_key = os.environ.get('FLASK_SECRET_KEY', os.environ.get('SECRET_KEY'))
if not _secret_key:
    if os.environ.get('FLASK_DEBUG', 'false').lower() == 'true' or os.environ.get('TESTING'):
        _secret_key = 'dev-secret-key-for-local-only'
        app_logger.warning('Using development secret key, set FLASK_SECRET_KEY for production')
    else:
        raise RuntimeError('FLASK_SECRET_KEY environment variable is required')
app.secret_key = _secret_key

compress = Compress()
compress.init_app(app)

login_manager = LoginManager()
login_manager.init_app(app)

app.config['MAX_CONTENT_LENGTH'] = int(os.environ.get('MAX_UPLOAD_MB', '16')) * 1024 * 1024

app.config['REMEMBER_COOKIE_DURATION'] = timedelta(days=30)
app.config['REMEMBER_COOKIE_HTTPONLY'] = True
app.config['REMEMBER_COOKIE_SAMESITE'] = 'Lax'

_secure_cookies = os.environ.get('SECURE_COOKIES', 'true').lower() == 'true'
app.config['REMEMBER_COOKIE_SECURE'] = _secure_cookies
app.config['SESSION_COOKIE_SECURE'] = _secure_cookies
app.config['SESSION_COOKIE_HTTPONLY'] = True
app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'

# ============== Blueprint Registrations ==============

from core.auth import auth_bp
app.register_blueprint(auth_bp)

from inventory import inventory_bp
app.register_blueprint(inventory_bp)

from crm import crm_bp
app.register_blueprint(crm_bp)

from insurance import insurance_bp
app.register_blueprint(insurance_bp)

from web_content import web_content_bp
app.register_blueprint(web_content_bp)

from blog import blog_bp
app.register_blueprint(blog_bp)

from dashboard import dashboard_bp
app.register_blueprint(dashboard_bp)

from documents import documents_bp
app.register_blueprint(documents_bp)

app_logger.info(f'MidCar startup complete, {len(app.url_map._rules)} routes registered')

# ============== Global Error Handlers ==============

@app.errorhandler(404)
def handle_404(e):
    return jsonify({'success': False, 'error': 'Not found'}), 404

@app.errorhandler(405)
def handle_405(e):
    return jsonify({'success': False, 'error': 'Method not allowed'}), 405

@app.errorhandler(413)
def handle_413(e):
    return jsonify({'success': False, 'error': 'File too large'}), 413

@app.errorhandler(500)
def handle_500(e):
    app_logger.exception('Unhandled 500 error')
    return jsonify({'success': False, 'error': 'An internal error occurred'}), 500

# ============== Startup ==============

if not os.environ.get('TESTING'):
    try:
        init_db()
    except Exception as e:
        app_logger.error(f'Database initialization failed: {e}')
        raise

    try:
        from tasks.scheduler import start_scheduler
        start_scheduler()
    except Exception as e:
        app_logger.warning(f'Failed to start background scheduler: {e}')


# ============== Flask-Login ==============

_user_cache = {}
_USER_CACHE_TTL = 60  # seconds

@login_manager.user_loader
def load_user(user_id):
    """Load user by ID for Flask-Login (cached per-worker, 60s TTL)."""
    import time
    uid = int(user_id)
    now = time.time()
    cached = _user_cache.get(uid)
    if cached and (now - cached[1]) < _USER_CACHE_TTL:
        return cached[0]

    user_data = _user_repo.get_by_id(uid)
    if user_data:
        user = User(user_data)
        _user_cache[uid] = (user, now)
        return user
    _user_cache.pop(uid, None)
    return None


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'success': False, 'error': 'Authentication required'}), 401


@app.after_request
def add_cache_headers(response):
    """No caching for health probes; ETag for JSON when the client asks."""
    if request.path == '/health':
        response.headers['Cache-Control'] = 'no-cache'
        return response

    if response.content_type and 'application/json' in response.content_type:
        if response.status_code == 200 and response.data:
            if_none_match = request.headers.get('If-None-Match')
            if if_none_match:
                import hashlib
                etag = hashlib.md5(response.data).hexdigest()
                response.headers['ETag'] = f'"{etag}"'
                if if_none_match == f'"{etag}"':
                    response.status_code = 304
                    response.data = b''
    return response


# ============== Health Check ==============

@app.route('/health')
def health_check():
    """Application health check endpoint. Only checks DB connectivity."""
    checks = {}

    try:
        checks['database'] = ping_db()
    except Exception as e:
        checks['database'] = False
        app_logger.error(f'Health check - database failed: {e}')

    status = 'healthy' if checks.get('database') else 'unhealthy'
    http_code = 200 if status == 'healthy' else 503

    return jsonify({
        'status': status,
        'database': checks['database'],
        'checks': checks,
        'service': 'midcar',
    }), http_code


if __name__ == '__main__':
    debug = os.environ.get('FLASK_DEBUG', 'false').lower() == 'true'
    port = int(os.environ.get('PORT', 5000))
    app.run(debug=debug, host='0.0.0.0', port=port)

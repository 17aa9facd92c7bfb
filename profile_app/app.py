import os
import shutil
from datetime import timedelta

from flask import Flask, flash, redirect, render_template, url_for
from werkzeug.exceptions import RequestEntityTooLarge

from .auth import auth_bp
from .models import DEFAULT_PHOTO_PATH, db
from .profile import profile_bp
from .security import DEFAULT_HASH_METHOD
from .sessions import ServerSideSessionInterface, SessionStore, current_identity
from .store import init_app as init_store

PLACEHOLDER_SOURCE = os.path.join(os.path.dirname(__file__), 'static', 'default.jpg')


def _env_flag(name, default='0'):
    return os.getenv(name, default).lower() in ('1', 'true', 'yes', 'on')


def ensure_placeholder(upload_dir):
    """Make sure the uploads directory and the shared default photo exist."""
    os.makedirs(upload_dir, exist_ok=True)
    target = os.path.join(upload_dir, os.path.basename(DEFAULT_PHOTO_PATH))
    if not os.path.exists(target):
        shutil.copyfile(PLACEHOLDER_SOURCE, target)
    return target


def create_app(config=None):
    app = Flask(__name__, instance_relative_config=True)
    app.secret_key = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
    app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv('DATABASE_URL', 'sqlite:///profile_app.db')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['UPLOAD_FOLDER'] = os.getenv('UPLOAD_FOLDER', os.path.join(app.instance_path, 'uploads'))
    app.config['MAX_CONTENT_LENGTH'] = int(os.getenv('MAX_UPLOAD_MB', '5')) * 1024 * 1024
    app.config['PASSWORD_HASH_METHOD'] = os.getenv('PASSWORD_HASH_METHOD', DEFAULT_HASH_METHOD)
    app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(
        minutes=int(os.getenv('SESSION_LIFETIME_MINUTES', str(60 * 24))))
    app.config['SESSION_COOKIE_SECURE'] = _env_flag('SESSION_COOKIE_SECURE')
    app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')
    if config:
        app.config.update(config)

    app.logger.setLevel(app.config['LOG_LEVEL'])
    os.makedirs(app.instance_path, exist_ok=True)
    ensure_placeholder(app.config['UPLOAD_FOLDER'])

    app.session_interface = ServerSideSessionInterface(
        SessionStore(lifetime=app.permanent_session_lifetime))

    db.init_app(app)
    # Raises UpstreamUnavailable; no app is handed out without a database
    init_store(app)

    @app.context_processor
    def inject_login_state():
        return {'logged_in': current_identity() is not None}

    # ---------------- Routes ----------------
    @app.route('/')
    def index():
        return render_template('home.html')

    @app.route('/contact')
    def contact():
        return render_template('contact.html')

    @app.errorhandler(RequestEntityTooLarge)
    def upload_too_large(e):
        limit_mb = app.config['MAX_CONTENT_LENGTH'] // (1024 * 1024)
        flash(f'File too large. The limit is {limit_mb} MB.', 'error')
        return redirect(url_for('profile.profile'))

    # ---------------- Blueprints ----------------
    app.register_blueprint(auth_bp)
    app.register_blueprint(profile_bp)

    app.logger.info(f"Storing uploads in {app.config['UPLOAD_FOLDER']}")
    return app


if __name__ == '__main__':
    app = create_app()
    app.run(debug=True)

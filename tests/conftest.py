import io
import os

import pytest

from profile_app import create_app
from profile_app.models import User, db


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'test.db'}",
        'UPLOAD_FOLDER': str(tmp_path / 'uploads'),
        # cheap hashes keep the suite fast
        'PASSWORD_HASH_METHOD': 'pbkdf2:sha256:1000',
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def upload_dir(app):
    return app.config['UPLOAD_FOLDER']


class AuthActions:
    def __init__(self, client):
        self._client = client

    def register(self, name='Ada Lovelace', email='ada@example.com',
                 username='ada', password='analytical-engine'):
        return self._client.post('/register', data={
            'name': name, 'email': email, 'username': username, 'password': password,
        })

    def login(self, username='ada', password='analytical-engine'):
        return self._client.post('/login', data={'username': username, 'password': password})

    def logout(self):
        return self._client.get('/logout')


@pytest.fixture
def auth(client):
    return AuthActions(client)


def get_user(app, username='ada'):
    """Fresh snapshot of a user row as a dict (None if missing)."""
    with app.app_context():
        user = User.query.filter_by(username=username).first()
        if user is None:
            return None
        return {
            'id': user.id,
            'name': user.name,
            'email': user.email,
            'username': user.username,
            'password_hash': user.password_hash,
            'profile_photo': user.profile_photo,
        }


def count_users(app):
    with app.app_context():
        return User.query.count()


def post_photo(client, data=b'\xff\xd8fake-jpeg\xff\xd9', filename='me.jpg', extra=None):
    form = {'profilePhoto': (io.BytesIO(data), filename)}
    if extra:
        form.update(extra)
    return client.post('/upload', data=form, content_type='multipart/form-data')


def photo_file(upload_dir, photo_path):
    return os.path.join(upload_dir, os.path.basename(photo_path))

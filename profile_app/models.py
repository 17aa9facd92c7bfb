import uuid
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

DEFAULT_PHOTO_PATH = '/uploads/default.jpg'


def _new_user_id():
    return uuid.uuid4().hex


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.String(32), primary_key=True, default=_new_user_id)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    # Either DEFAULT_PHOTO_PATH or /uploads/<file> owned by this user only
    profile_photo = db.Column(db.String(255), nullable=False, default=DEFAULT_PHOTO_PATH)
    created_at = db.Column(db.DateTime, nullable=False,
                           default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f'<User {self.username}>'

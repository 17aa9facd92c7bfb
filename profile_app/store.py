"""Credential store: the only place that talks to the users table.

Database failures surface as ``UpstreamUnavailable`` after the SQLAlchemy
session has been rolled back, so callers never see a half-written record.
"""
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import or_, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .errors import DuplicateCredential, UpstreamUnavailable
from .models import User, db


@contextmanager
def _upstream(action):
    try:
        yield
    except IntegrityError as e:
        db.session.rollback()
        current_app.logger.info(f"Uniqueness violation while trying to {action}: {e.orig}")
        raise DuplicateCredential() from e
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception(f"Database error while trying to {action}")
        raise UpstreamUnavailable() from e


def find_user_by_id(user_id):
    if not user_id:
        return None
    with _upstream('load a user'):
        return db.session.get(User, user_id)


def find_user_by_username(username):
    with _upstream('look up a username'):
        return User.query.filter_by(username=username).first()


def find_user_by_username_or_email(username, email):
    with _upstream('look up credentials'):
        return User.query.filter(or_(User.username == username, User.email == email)).first()


def insert_user(user):
    with _upstream('create a user'):
        db.session.add(user)
        db.session.commit()
    return user


def save_user(user):
    with _upstream('save a user'):
        db.session.add(user)
        db.session.commit()
    return user


def check_connection():
    """Raise UpstreamUnavailable unless the database answers a trivial query."""
    with _upstream('reach the database'):
        db.session.execute(text('SELECT 1'))


def init_app(app):
    """Create the users table, refusing to start without a working database."""
    with app.app_context():
        check_connection()
        with _upstream('create tables'):
            db.create_all()


def referenced_photo_paths():
    with _upstream('list photo paths'):
        return {photo for (photo,) in db.session.query(User.profile_photo)}

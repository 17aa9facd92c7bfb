from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for

from .errors import (DuplicateCredential, InvalidCredentials, ProfileAppError, SessionStoreError,
                     ValidationError)
from .models import DEFAULT_PHOTO_PATH, User
from .security import hash_password, verify_password
from .sessions import destroy, establish
from .store import find_user_by_username, find_user_by_username_or_email, insert_user

auth_bp = Blueprint('auth', __name__)


def register_user(name, email, username, password):
    """Create a user with the placeholder photo and return it.

    Raises ValidationError for blank fields and DuplicateCredential when the
    username or the email is already taken (without saying which).
    """
    name = (name or '').strip()
    email = (email or '').strip().lower()
    username = (username or '').strip()
    password = password or ''
    if not name or not email or not username or not password:
        raise ValidationError()

    if find_user_by_username_or_email(username, email):
        raise DuplicateCredential()

    user = User(
        name=name,
        email=email,
        username=username,
        password_hash=hash_password(password),
        profile_photo=DEFAULT_PHOTO_PATH,
    )
    return insert_user(user)


def authenticate(username, password):
    """Return the matching user or raise InvalidCredentials.

    Unknown usernames and wrong passwords are reported the same way.
    """
    username = (username or '').strip()
    if not username or not password:
        raise InvalidCredentials()
    user = find_user_by_username(username)
    if user is None or not verify_password(password, user.password_hash):
        raise InvalidCredentials()
    return user


@auth_bp.route('/login', methods=['GET'])
def login_form():
    return render_template('login_register.html', show='login')


@auth_bp.route('/register', methods=['GET'])
def register_form():
    return render_template('login_register.html', show='register')


@auth_bp.route('/login', methods=['POST'])
def login():
    try:
        user = authenticate(request.form.get('username'), request.form.get('password'))
        establish(user.id)
    except ProfileAppError as e:
        flash(e.message, 'loginError')
        return redirect(url_for('auth.login_form'))
    except Exception:
        current_app.logger.exception('Login failed')
        flash('An error occurred during login', 'loginError')
        return redirect(url_for('auth.login_form'))
    current_app.logger.info(f"User {user.id} logged in")
    return redirect(url_for('profile.profile'))


@auth_bp.route('/register', methods=['POST'])
def register():
    form = request.form
    try:
        user = register_user(form.get('name'), form.get('email'),
                             form.get('username'), form.get('password'))
        establish(user.id)
    except ProfileAppError as e:
        flash(e.message, 'registrationError')
        return redirect(url_for('auth.login_form'))
    except Exception:
        current_app.logger.exception('Registration failed')
        flash('An error occurred during registration. Please try again.', 'registrationError')
        return redirect(url_for('auth.login_form'))
    current_app.logger.info(f"Registered user {user.id}")
    flash('Registration successful! Welcome to your profile.', 'success')
    return redirect(url_for('profile.profile'))


@auth_bp.route('/logout')
def logout():
    try:
        destroy()
    except SessionStoreError as e:
        current_app.logger.exception('Logout error')
        flash(e.message, 'error')
        return redirect(url_for('profile.profile'))
    return redirect(url_for('auth.login_form'))

from flask import (Blueprint, current_app, flash, redirect, render_template, request,
                   send_from_directory, url_for)

from .errors import NotFoundError, ProfileAppError, UserNotFound
from .photos import replace_photo, reset_photo
from .sessions import current_identity, forget_identity, login_required
from .store import find_user_by_id
from .uploads import pick_photo, save_upload

profile_bp = Blueprint('profile', __name__)


def load_current_user():
    identity = current_identity()
    user = find_user_by_id(identity.user_id) if identity else None
    if user is None:
        raise UserNotFound()
    return user


@profile_bp.route('/profile')
@login_required
def profile():
    try:
        user = load_current_user()
    except NotFoundError:
        forget_identity()
        return redirect(url_for('auth.login_form'))
    except ProfileAppError as e:
        flash(e.message, 'loginError')
        return redirect(url_for('auth.login_form'))
    return render_template('profile.html', user=user)


@profile_bp.route('/upload', methods=['POST'])
@login_required
def upload():
    upload_dir = current_app.config['UPLOAD_FOLDER']
    # parsing happens here; oversized bodies go to the 413 handler
    files = request.files
    try:
        file = pick_photo(files)
        user = load_current_user()
        new_path = save_upload(file, user.id, upload_dir)
        replace_photo(user, new_path, upload_dir)
    except NotFoundError as e:
        forget_identity()
        flash(e.message, 'loginError')
        return redirect(url_for('auth.login_form'))
    except ProfileAppError as e:
        current_app.logger.warning(f"Photo upload rejected: {e.message}")
        flash(e.message, 'error')
        return redirect(url_for('profile.profile'))
    except Exception:
        current_app.logger.exception('Photo upload failed')
        flash('Failed to upload photo. Please try again.', 'error')
        return redirect(url_for('profile.profile'))
    current_app.logger.info(f"Uploaded file {new_path} for user {user.id}")
    flash('Profile photo updated successfully!', 'success')
    return redirect(url_for('profile.profile'))


@profile_bp.route('/delete-photo', methods=['POST'])
@login_required
def delete_photo():
    try:
        user = load_current_user()
        reset_photo(user, current_app.config['UPLOAD_FOLDER'])
    except NotFoundError as e:
        forget_identity()
        flash(e.message, 'loginError')
        return redirect(url_for('auth.login_form'))
    except ProfileAppError as e:
        flash(e.message, 'error')
        return redirect(url_for('profile.profile'))
    except Exception:
        current_app.logger.exception('Photo delete failed')
        flash('Failed to delete photo. Please try again.', 'error')
        return redirect(url_for('profile.profile'))
    flash('Profile photo deleted successfully!', 'success')
    return redirect(url_for('profile.profile'))


@profile_bp.route('/uploads/<path:filename>')
def uploaded_file(filename):
    return send_from_directory(current_app.config['UPLOAD_FOLDER'], filename)

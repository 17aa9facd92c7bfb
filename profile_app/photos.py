"""Profile photo lifecycle.

Every user points at exactly one photo: the shared placeholder or a file in
the uploads directory that belongs to that user alone. Changing the photo
always runs in the same order:

    1. the new file is already on disk (see ``uploads.save_upload``)
    2. the user record is updated and committed
    3. the previous file, if the user owned one, is removed

so an interruption at any point leaves the record pointing at a file that
exists. Step 3 is best-effort: a failure there is logged and leaves an
orphaned file behind, nothing more.

Two requests for the same user running at the same time can still interleave
and orphan one of the uploads. There is no per-user lock;
``scripts/prune_uploads.py`` sweeps such leftovers.
"""
import os
import time
from dataclasses import dataclass
from typing import Optional

from flask import current_app
from werkzeug.security import safe_join

from .models import DEFAULT_PHOTO_PATH
from .store import save_user
from .uploads import UPLOADS_URL_PREFIX

# seconds an unreferenced upload is left alone before it counts as orphaned
ORPHAN_MIN_AGE = 15 * 60


@dataclass
class CleanupResult:
    path: str
    removed: bool
    error: Optional[BaseException] = None


def is_owned_photo(photo_path):
    return bool(photo_path) and photo_path != DEFAULT_PHOTO_PATH


def resolve_photo_path(photo_path, upload_dir=None):
    """Map ``/uploads/<name>`` to a filesystem path, or None if it would
    land outside the uploads directory."""
    if not photo_path or not photo_path.startswith(UPLOADS_URL_PREFIX):
        return None
    upload_dir = upload_dir or current_app.config['UPLOAD_FOLDER']
    return safe_join(upload_dir, photo_path[len(UPLOADS_URL_PREFIX):])


def discard_photo_file(photo_path, upload_dir=None) -> CleanupResult:
    """Best-effort removal of a photo file. Never raises."""
    if not is_owned_photo(photo_path):
        return CleanupResult(photo_path, removed=False)

    target = resolve_photo_path(photo_path, upload_dir)
    if target is None:
        current_app.logger.warning(f"Refusing to delete photo outside uploads: {photo_path!r}")
        return CleanupResult(photo_path, removed=False)

    try:
        os.remove(target)
    except OSError as e:
        current_app.logger.warning(f"Failed to delete photo {photo_path}: {e}")
        return CleanupResult(photo_path, removed=False, error=e)

    current_app.logger.info(f"Deleted photo {photo_path}")
    return CleanupResult(photo_path, removed=True)


def _swap_photo(user, new_photo_path, upload_dir):
    previous = user.profile_photo
    user.profile_photo = new_photo_path
    try:
        save_user(user)
    except Exception:
        user.profile_photo = previous
        if new_photo_path != previous:
            discard_photo_file(new_photo_path, upload_dir)
        raise

    if previous != new_photo_path:
        discard_photo_file(previous, upload_dir)
    return previous


def replace_photo(user, new_photo_path, upload_dir=None):
    """Point ``user`` at an already-written upload and drop the old photo.

    If the record cannot be saved the new file is removed again and the
    error propagates; the user keeps the previous photo.
    """
    return _swap_photo(user, new_photo_path, upload_dir)


def reset_photo(user, upload_dir=None):
    """Go back to the placeholder. No filesystem change if already there."""
    return _swap_photo(user, DEFAULT_PHOTO_PATH, upload_dir)


def find_orphan_photos(upload_dir, referenced, min_age=ORPHAN_MIN_AGE, now=None):
    """Photo paths of files in ``upload_dir`` that no user record points at.

    Files younger than ``min_age`` seconds are skipped: an upload is written
    before the record pointing at it is committed, so a fresh unreferenced
    file may belong to a request that is still running.
    """
    now = time.time() if now is None else now
    orphans = []
    for name in sorted(os.listdir(upload_dir)):
        photo_path = UPLOADS_URL_PREFIX + name
        target = os.path.join(upload_dir, name)
        if not os.path.isfile(target):
            continue
        if now - os.path.getmtime(target) < min_age:
            continue
        if is_owned_photo(photo_path) and photo_path not in referenced:
            orphans.append(photo_path)
    return orphans


def prune_orphan_photos(upload_dir, referenced, dry_run=False, min_age=ORPHAN_MIN_AGE):
    """Delete orphaned uploads; returns (orphans found, number removed)."""
    orphans = find_orphan_photos(upload_dir, referenced, min_age=min_age)
    removed = 0
    if dry_run:
        return orphans, removed
    for photo_path in orphans:
        if discard_photo_file(photo_path, upload_dir).removed:
            removed += 1
    return orphans, removed

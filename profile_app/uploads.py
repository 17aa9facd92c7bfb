import os
import time

from werkzeug.utils import secure_filename

from .errors import NoFileProvided, StorageIOError

PHOTO_FIELD = 'profilePhoto'
UPLOADS_URL_PREFIX = '/uploads/'
MAX_NAME_ATTEMPTS = 50


def _now_millis():
    return int(time.time() * 1000)


def photo_filename(user_id, original_filename, millis):
    safe_name = secure_filename(original_filename or '') or 'photo'
    return f"{user_id}-{millis}-{safe_name}"


def pick_photo(files):
    """Return the uploaded photo from ``request.files`` or raise NoFileProvided.

    Only the ``profilePhoto`` field is looked at; any other file fields in the
    request are ignored.
    """
    file = files.get(PHOTO_FIELD)
    if file is None or not file.filename:
        raise NoFileProvided()
    return file


def save_upload(file, user_id, upload_dir, clock=_now_millis):
    """Write ``file`` into ``upload_dir`` and return its relative photo path.

    The name is ``<user_id>-<unix millis>-<original name>``. The file is
    created exclusively; if the name is taken the timestamp is bumped until a
    free one is found. A failed write removes whatever was partially written.
    """
    if file is None or not file.filename:
        raise NoFileProvided()

    millis = clock()
    for _ in range(MAX_NAME_ATTEMPTS):
        filename = photo_filename(user_id, file.filename, millis)
        target = os.path.join(upload_dir, filename)
        try:
            fh = open(target, 'xb')
        except FileExistsError:
            millis += 1
            continue
        except OSError as e:
            raise StorageIOError() from e
        try:
            with fh:
                file.save(fh)
        except OSError as e:
            try:
                os.remove(target)
            except OSError:
                pass
            raise StorageIOError() from e
        return UPLOADS_URL_PREFIX + filename
    raise StorageIOError('Could not pick a free file name. Please try again.')

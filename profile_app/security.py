from flask import current_app, has_app_context
from werkzeug.security import check_password_hash, generate_password_hash

DEFAULT_HASH_METHOD = 'scrypt'


def hash_password(password):
    """Return a salted, self-describing digest for ``password``.

    The method string (algorithm and cost) is embedded in the digest, so
    digests made with an older setting still verify after it changes.
    """
    method = DEFAULT_HASH_METHOD
    if has_app_context():
        method = current_app.config.get('PASSWORD_HASH_METHOD', DEFAULT_HASH_METHOD)
    return generate_password_hash(password, method=method)


def verify_password(password, pw_hash):
    if not isinstance(password, str) or not isinstance(pw_hash, str) or not pw_hash:
        return False
    try:
        return check_password_hash(pw_hash, password)
    except ValueError:
        # unknown or malformed method segment
        return False

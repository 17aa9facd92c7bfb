class ProfileAppError(Exception):
    """Base class for errors that route handlers turn into a flash + redirect."""

    message = 'Something went wrong. Please try again.'

    def __init__(self, message=None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(ProfileAppError):
    message = 'All fields are required.'


class DuplicateCredential(ValidationError):
    message = 'Username or email already exists'


class InvalidCredentials(ValidationError):
    message = 'Invalid username or password'


class NoFileProvided(ValidationError):
    message = 'No file uploaded. Please try again.'


class AuthError(ProfileAppError):
    message = 'Please log in first.'


class NotFoundError(ProfileAppError):
    message = 'Record not found.'


class UserNotFound(NotFoundError):
    message = 'Your session has expired. Please log in again.'


class StorageIOError(ProfileAppError):
    message = 'Failed to store the file. Please try again.'


class UpstreamUnavailable(ProfileAppError):
    message = 'The service is temporarily unavailable. Please try again.'


class SessionStoreError(ProfileAppError):
    message = 'Could not end your session. Please try again.'

"""Error taxonomy shared by services and the HTTP layer."""


class ReviewError(Exception):
    """Base exception; ``status_code`` is what the API answers with."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class NotFoundError(ReviewError):
    status_code = 404


class UnauthorizedError(ReviewError):
    status_code = 401


class ForbiddenError(ReviewError):
    status_code = 403


class ValidationError(ReviewError):
    status_code = 400


class ConflictError(ReviewError):
    """Duplicate user, or a transcode already running for a path."""

    status_code = 409


class StorageError(ReviewError):
    """Filesystem or subprocess failure."""

    status_code = 500


class TranscodeError(StorageError):
    """The encoder exited unsuccessfully or produced nothing usable."""

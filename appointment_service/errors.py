"""Error taxonomy surfaced by the scheduling service.

Every error carries the HTTP status the API layer answers with, so the
service itself stays free of any transport concerns.
"""


class SchedulingError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(SchedulingError):
    """A required caller-supplied field is missing or malformed."""
    status_code = 400


class NotFound(SchedulingError):
    """A referenced party or appointment does not exist."""
    status_code = 404


class Conflict(SchedulingError):
    """The provider already holds an active appointment at that time."""
    status_code = 409


class DirectoryError(SchedulingError):
    """The party directory could not be queried."""
    status_code = 502


class StoreError(SchedulingError):
    """The underlying appointment store failed."""
    status_code = 503

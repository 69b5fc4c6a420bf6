class ReviewError(Exception):
    """Base exception for the review client."""
    pass


class AuthError(ReviewError):
    """Raised when the API token is missing or rejected by the server."""
    pass


class FetchError(ReviewError):
    """Raised when loading data from the API fails."""
    pass


class ReportingError(ReviewError):
    """Raised when a review result could not be submitted to the API."""
    pass


class UnresolvedSubjectError(ReviewError, KeyError):
    """Raised when a subject id has no loaded subject record."""
    pass


class SessionStateError(ReviewError):
    """Raised when a session operation is not allowed in the current state."""
    pass


class EmptyAnswerError(ReviewError, ValueError):
    """Raised when a blank answer is submitted."""
    pass

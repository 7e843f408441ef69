"""Domain errors raised by the commission services.

Each error carries the HTTP status the API layer renders it with, so
services never import FastAPI.
"""


class CommissionError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(CommissionError):
    """Rule (or other tenant-scoped record) does not exist for the tenant."""
    status_code = 404


class ValidationError(CommissionError):
    """Malformed rule / bonus / cap payload."""
    status_code = 400


class ForbiddenError(CommissionError):
    status_code = 403


class UnavailableError(CommissionError):
    """Rule store or cap table could not be reached."""
    status_code = 503

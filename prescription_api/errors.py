"""
Error taxonomy for the API. Each error carries the HTTP status it maps to.
"""


class ApiError(Exception):
    """Base class for errors answered directly to the client."""
    status_code = 500
    message = "Internal server error"

    def __init__(self, message=None):
        super().__init__(message or self.message)
        self.message = message or self.message


class Unauthenticated(ApiError):
    status_code = 401
    message = "Unauthorized"


class MalformedCredentials(ApiError):
    status_code = 401
    message = "authorization failed"


class InvalidCredentials(ApiError):
    status_code = 401
    message = "invalid username or password"


class NotFoundOrNotOwned(ApiError):
    status_code = 404
    message = "could not retrieve record"


class DecodeError(ApiError):
    status_code = 500
    message = "Error parsing body of request"


class StoreFailure(ApiError):
    status_code = 500
    message = "Error accessing the database"

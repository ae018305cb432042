"""
Errors raised by the services and auth guard.

Each carries the HTTP status it maps to; main.py turns them into the
`{success: false, message}` envelope.
"""


class ApiError(Exception):
    status_code = 500
    default_message = "Internal Server Error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(ApiError):
    status_code = 400
    default_message = "Please provide all required fields"


class Conflict(ApiError):
    status_code = 400
    default_message = "User already exists with that email or username"


class InvalidCredentials(ApiError):
    status_code = 401
    default_message = "Invalid credentials"


class Unauthenticated(ApiError):
    status_code = 401
    default_message = "Not authorized"


class Forbidden(ApiError):
    status_code = 403
    default_message = "Not authorized to perform this action"


class NotFound(ApiError):
    status_code = 404
    default_message = "Resource not found"

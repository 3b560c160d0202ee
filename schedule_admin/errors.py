"""
Failure taxonomy for calls through the request pipeline.
"""

DEFAULT_NETWORK_MESSAGE = "Could not connect to the server"
SESSION_EXPIRED_MESSAGE = "Your session has expired. Please log in again."
INVALID_CREDENTIALS_MESSAGE = "Invalid credentials. Please check your email and password."
LOGIN_FAILED_MESSAGE = "Login failed. Please try again."


class ApiError(Exception):
    """Base for every failure raised by the pipeline."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthExpired(ApiError):
    """Refresh absent/failed or retried call still unauthorized. The request's session is gone."""

    def __init__(self, message: str = SESSION_EXPIRED_MESSAGE):
        super().__init__(message, status_code=401)


class RequestFailed(ApiError):
    """Non-2xx response other than a recoverable 401."""

    def __init__(self, status_code: int, message: str | None = None):
        super().__init__(message or f"Request failed ({status_code})", status_code=status_code)


class MalformedResponse(RequestFailed):
    """2xx response whose body is not what the caller needs (bad JSON, missing field)."""

    def __init__(self, message: str, status_code: int = 200):
        super().__init__(status_code, message)


class NetworkError(ApiError):
    """No response received (connection refused, DNS, timeout)."""

    def __init__(self, message: str = DEFAULT_NETWORK_MESSAGE):
        super().__init__(message)


class LoginFailed(ApiError):
    """Login orchestration failed; message is the user-facing text, cause the pipeline error."""

    def __init__(self, message: str, cause: ApiError | None = None):
        super().__init__(message, status_code=cause.status_code if cause else None)
        self.cause = cause


class SessionChanged(Exception):
    """
    A refresh finished after the session it was started for was logged out or replaced.
    Not a failure of the current session, so it must not end it.
    """

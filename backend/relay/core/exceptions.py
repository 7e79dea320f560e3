from fastapi import HTTPException, status


class RelayError(Exception):
    """Base class for relay-side failures that never reach an HTTP response."""


class AdmissionRejected(RelayError):
    """The connection attempt is refused; the client must retry on its own."""

    def __init__(self, reason: str, rule: str = ""):
        super().__init__(reason)
        self.reason = reason
        self.rule = rule


class InvalidCredential(RelayError):
    """The identity backend answered, but the token does not map to a user."""


class ValidatorUnavailable(RelayError):
    """The identity backend could not be reached or answered with garbage."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ControlRequestInvalid(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class ControlRequestUnauthorized(HTTPException):
    def __init__(self):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

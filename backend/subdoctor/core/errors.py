"""Failure types raised by the troubleshooter.

Every failure is a ``TroubleshooterError`` carrying a human-readable
message. The subclasses only exist so callers and tests can tell the
taxonomy apart; the HTTP boundary renders all of them the same way.
"""


class TroubleshooterError(Exception):
    """A request failed; ``message`` is safe to show to the operator."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(TroubleshooterError):
    pass


class ValidationError(TroubleshooterError):
    pass


class AuthorizationError(TroubleshooterError):
    pass


class RateLimitError(TroubleshooterError):
    pass


class UnsupportedFormatError(ValidationError):
    pass

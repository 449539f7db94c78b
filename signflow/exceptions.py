"""
Signing Client Exceptions

Error taxonomy for the signing client. Every error raised by the
client derives from SigningError so callers can catch the whole family.
"""

from typing import Optional


class SigningError(Exception):
    """Base exception for all signing client errors."""
    pass


class ConfigurationError(SigningError):
    """
    Raised when client configuration is invalid.

    This includes malformed environment values and package
    definition files that fail schema or reference checks.
    """
    pass


class AuthError(SigningError):
    """
    Raised when no credential is configured, or the platform rejects it.

    Not retryable: the caller has to supply a valid token.
    """
    pass


class ValidationError(SigningError):
    """
    Raised when a signature package fails local validation.

    Identifies the first offending role or field.
    """
    def __init__(self, message: str, role_id: Optional[str] = None, field: Optional[str] = None):
        self.role_id = role_id
        self.field = field
        super().__init__(message)


class NotFound(SigningError):
    """Raised when no mailbox or envelope matches."""
    pass


class PreconditionError(SigningError):
    """Raised when an operation is invoked in the wrong lifecycle state."""
    pass


class TransientError(SigningError):
    """
    Raised when an idempotent read keeps failing on network errors.

    Safe to retry later with backoff.
    """
    pass


class UnknownOutcomeError(SigningError):
    """
    Raised when a submission may or may not have reached the platform.

    Never retry blindly: list recent envelopes for the mailbox and look
    for a match first, otherwise signers get duplicate notifications.
    """
    def __init__(self, message: str, mailbox_id: Optional[str] = None, subject: Optional[str] = None):
        self.mailbox_id = mailbox_id
        self.subject = subject
        super().__init__(message)


class PollTimeout(SigningError):
    """
    Raised when an envelope has not reached a terminal status by the deadline.

    The envelope may still be pending; this is not a remote decision.
    """
    def __init__(self, message: str, envelope_id: Optional[str] = None, last_status=None):
        self.envelope_id = envelope_id
        self.last_status = last_status
        super().__init__(message)


class SigningAPIError(SigningError):
    """
    Raised when a platform API call fails for any other reason.

    Wraps the underlying HTTP error with context.
    """
    def __init__(self, message: str, status_code: Optional[int] = None, response_body: Optional[str] = None):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)

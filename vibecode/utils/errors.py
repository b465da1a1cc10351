"""Custom exception classes for the VibeCode enhancer."""

from typing import Optional


class VibeCodeError(Exception):
    """Base exception for all application errors."""
    pass


class ConfigurationError(VibeCodeError):
    """Configuration or initialization errors."""
    pass


class AuthError(VibeCodeError):
    """The identity provider rejected a sign-in or sign-out."""
    pass


class PersistenceError(VibeCodeError):
    """A document store read, subscription, or write failed."""
    pass


class ValidationError(VibeCodeError):
    """A submission is missing its identity, image, or prompt."""
    pass


class SubmissionRejectedError(VibeCodeError):
    """A submission arrived while another request is still active."""
    pass


class ImageProcessingError(VibeCodeError):
    """Error reading an uploaded image file."""
    pass


class RemoteInvocationError(VibeCodeError):
    """Generation service call failed; retryable under the retry policy."""
    
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        if status_code is not None:
            message = f"{message} (status {status_code})"
        super().__init__(message)

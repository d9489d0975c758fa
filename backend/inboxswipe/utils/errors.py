"""
Custom error classes for the application.
"""
from typing import Optional

from fastapi import HTTPException


class AppError(Exception):
    """Base application error."""
    
    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        status_code: int = 500,
        details: Optional[dict] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)
    
    def to_dict(self) -> dict:
        """Convert error to dictionary for response."""
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class AuthError(AppError):
    """Authentication related errors."""
    
    def __init__(self, message: str, code: str = "AUTH_ERROR"):
        super().__init__(message, code, status_code=401)


class GmailError(AppError):
    """Gmail API related errors."""
    
    def __init__(self, message: str = "Couldn't reach Gmail. Please try again."):
        super().__init__(message, "GMAIL_ERROR", status_code=503)


class AIError(AppError):
    """AI service related errors."""
    
    def __init__(self, message: str = "AI processing failed. Please try again."):
        super().__init__(message, "AI_ERROR", status_code=503)


class AINotConfiguredError(AppError):
    """No Gemini API key available."""

    def __init__(self):
        super().__init__("Gemini API key not configured", "AI_NOT_CONFIGURED", status_code=500)


class InvalidRequestError(AppError):
    """Invalid request format."""
    
    def __init__(self, message: str = "Invalid request format."):
        super().__init__(message, "INVALID_REQUEST", status_code=400)


class InvalidTransitionError(AppError):
    """Triage action not allowed in the current state."""

    def __init__(self, action: str, state: str):
        super().__init__(
            f"Can't {action} while triage is {state}.",
            "INVALID_TRANSITION",
            status_code=409,
            details={"action": action, "state": state},
        )


class RateLimitError(AppError):
    """Rate limit exceeded."""
    
    def __init__(self):
        super().__init__(
            "Too many requests. Please wait a moment.",
            "RATE_LIMITED",
            status_code=429
        )


def to_http_exception(error: AppError) -> HTTPException:
    """Translate an application error into a FastAPI HTTPException."""
    return HTTPException(status_code=error.status_code, detail=error.to_dict())


INTERNAL_ERROR = {
    "error": True,
    "code": "INTERNAL_ERROR",
    "message": "Something went wrong. Please try again.",
}

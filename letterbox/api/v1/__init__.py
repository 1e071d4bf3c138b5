"""API v1 endpoints."""

from letterbox.api.v1 import letters, health
from letterbox.api.v1.models import (
    LetterResponse,
    ComposeResponse,
    LetterListResponse,
    HealthResponse,
    ErrorResponse,
)

__all__ = [
    "letters",
    "health",
    "LetterResponse",
    "ComposeResponse",
    "LetterListResponse",
    "HealthResponse",
    "ErrorResponse",
]

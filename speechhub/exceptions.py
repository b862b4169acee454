"""
Custom exception hierarchy for SpeechHub.
"""

from typing import Dict, Any


class SpeechHubException(Exception):
    """Base exception for SpeechHub."""
    def __init__(self, message: str, context: Dict[str, Any] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ConfigurationError(SpeechHubException):
    """Raised when there are configuration issues."""
    pass

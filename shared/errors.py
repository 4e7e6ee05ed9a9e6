"""
Shared error handling for the token cache harness.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import run_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    run_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class TokenCacheHarnessException(Exception):
    """Base exception for the token cache harness."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            run_id=run_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class HarnessSetupError(TokenCacheHarnessException):
    """Harness misconfiguration: client construction or token injection failed."""

    def __init__(self, message: str = "Harness setup failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("HARNESS_SETUP_ERROR", message, details)


class CacheAccessorError(TokenCacheHarnessException):
    """Errors raised at the cache accessor boundary."""


class CacheExportError(CacheAccessorError):
    """Marshaling or storing a cache partition failed; the entry was not persisted."""

    def __init__(self, message: str = "Cache export failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_EXPORT_ERROR", message, details)


class CacheContractError(CacheAccessorError):
    """A stored value could not be converted to bytes."""

    def __init__(self, message: str = "Stored value is not a byte sequence", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_CONTRACT_ERROR", message, details)


class CacheUnmarshalError(CacheAccessorError):
    """A stored blob could not be loaded into the client cache."""

    def __init__(self, message: str = "Cache unmarshal failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_UNMARSHAL_ERROR", message, details)


class StoreError(TokenCacheHarnessException):
    """External key-value store errors."""

    def __init__(self, backend: str, message: str = "Store error", details: Optional[Dict[str, Any]] = None):
        super().__init__("STORE_ERROR", f"{backend}: {message}", details)


class TokenNotFoundError(TokenCacheHarnessException):
    """Silent acquisition found no usable token in the cache."""

    def __init__(self, message: str = "No cached token matches the request", details: Optional[Dict[str, Any]] = None):
        super().__init__("TOKEN_NOT_FOUND", message, details)


class ValidationError(TokenCacheHarnessException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class StatisticsError(TokenCacheHarnessException):
    """Statistics requested over degenerate input."""

    def __init__(self, message: str = "Cannot compute statistics", details: Optional[Dict[str, Any]] = None):
        super().__init__("STATISTICS_ERROR", message, details)

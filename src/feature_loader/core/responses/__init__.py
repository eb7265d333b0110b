"""
Standard response envelopes for feature-loader operations.

Sub-modules:
    types           - ErrorCode, ErrorType, ResponseEnvelope, build_meta
    builders        - success_response, error_response
"""

from feature_loader.core.responses.builders import (
    error_response,
    success_response,
)
from feature_loader.core.responses.types import (
    ErrorCode,
    ErrorType,
    ResponseEnvelope,
)

__all__ = [
    "ErrorCode",
    "ErrorType",
    "ResponseEnvelope",
    "error_response",
    "success_response",
]

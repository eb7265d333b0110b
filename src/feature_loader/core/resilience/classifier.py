"""Heuristic classification of module load failures.

Maps an arbitrary exception onto the closed ``ErrorKind`` set using its type
and message. Unrecognized failures are treated as non-retryable module errors
so genuine bugs are never hidden behind retries.
"""

import asyncio
import re

from feature_loader.core.resilience.models import ErrorClassification, ErrorKind

_CHUNK_MESSAGE = re.compile(r"loading (css )?chunk \S+ failed|loading css chunk|chunk ?load")
_TIMEOUT_TERMS = ("timeout", "timed out")
_NETWORK_TERMS = (
    "failed to fetch",
    "network",
    "err_network",
    "err_internet_disconnected",
    "connection",
    "econnreset",
    "econnrefused",
)
_PERMISSION_TERMS = ("permission denied", "forbidden", "unauthorized")
_MODULE_TERMS = ("syntax", "unexpected token")


def classify_error(error: BaseException) -> ErrorClassification:
    """Classify a load failure for retry decisions.

    Checks run in a fixed order (chunk, code defect, timeout, network,
    permission) so that messages such as "Loading chunk 3 failed" are not
    mistaken for generic network failures.

    Args:
        error: The exception raised by a load function

    Returns:
        ErrorClassification with the kind and its retryable flag
    """
    message = str(error).lower()
    type_name = type(error).__name__.lower()

    if "chunkloaderror" in type_name or _CHUNK_MESSAGE.search(message):
        return _classified(ErrorKind.CHUNK_LOAD_ERROR)

    # Broken or missing code; checked before message heuristics so a module
    # path containing e.g. "network" is not taken for a connectivity failure
    if isinstance(error, (SyntaxError, ImportError)) or type_name == "syntaxerror":
        return _classified(ErrorKind.MODULE_ERROR)

    if (
        isinstance(error, (TimeoutError, asyncio.TimeoutError))
        or "timeout" in type_name
        or any(term in message for term in _TIMEOUT_TERMS)
    ):
        return _classified(ErrorKind.TIMEOUT)

    if (
        isinstance(error, ConnectionError)
        or type_name == "networkerror"
        or any(term in message for term in _NETWORK_TERMS)
    ):
        return _classified(ErrorKind.NETWORK_ERROR)

    if (
        isinstance(error, PermissionError)
        or "permission" in type_name
        or any(term in message for term in _PERMISSION_TERMS)
    ):
        return _classified(ErrorKind.PERMISSION_DENIED)

    if any(term in message for term in _MODULE_TERMS):
        return _classified(ErrorKind.MODULE_ERROR)

    # Default: not retryable
    return _classified(ErrorKind.MODULE_ERROR)


def _classified(kind: ErrorKind) -> ErrorClassification:
    return ErrorClassification(kind=kind, retryable=kind.retryable)

"""
Connection Health - Error Classifier.

============================================================
FAILURE TAXONOMY
============================================================

Maps the text of a failure onto one ErrorCategory by scanning
an ordered table of substrings against the lower-cased text.
First match wins. No match means UNCATEGORIZED.

The canonical substrings are shared with existing operational
dashboards and must not change. Driver-specific aliases come
after them and always map to one of the same categories.

A growing UNCATEGORIZED count means this table needs review.
Probe code never inspects failure text directly.

============================================================
"""

import asyncio
from typing import Optional, Set, Tuple

from sqlalchemy.exc import DBAPIError

from .models import ErrorCategory


DEADLINE_EXCEEDED_MESSAGE = "context deadline exceeded"


# =============================================================
# RULE TABLE
# =============================================================


CANONICAL_RULES: Tuple[Tuple[str, ErrorCategory], ...] = (
    ("connection refused", ErrorCategory.REFUSED),
    ("i/o timeout", ErrorCategory.TIMEOUT),
    ("deadline exceeded", ErrorCategory.DEADLINE_EXCEEDED),
    ("unexpected eof", ErrorCategory.UNEXPECTED_EOF),
    ("reset by peer", ErrorCategory.CONNECTION_RESET),
    ("invalid connection", ErrorCategory.INVALID_CONNECTION),
    ("slow operation", ErrorCategory.SLOW_OPERATION),
)

# Wording used by asyncio and the MySQL drivers for the same failures.
DRIVER_ALIASES: Tuple[Tuple[str, ErrorCategory], ...] = (
    ("errno 111", ErrorCategory.REFUSED),
    ("timed out", ErrorCategory.TIMEOUT),
    ("connection reset", ErrorCategory.CONNECTION_RESET),
    ("lost connection", ErrorCategory.UNEXPECTED_EOF),
)

CLASSIFICATION_RULES: Tuple[Tuple[str, ErrorCategory], ...] = CANONICAL_RULES + DRIVER_ALIASES


# =============================================================
# CLASSIFICATION
# =============================================================


def classify(description: Optional[str]) -> ErrorCategory:
    """
    Classify a failure description.

    Never raises. Empty or missing text is UNCATEGORIZED.
    """
    if not description:
        return ErrorCategory.UNCATEGORIZED

    text = description.lower()
    for substring, category in CLASSIFICATION_RULES:
        if substring in text:
            return category
    return ErrorCategory.UNCATEGORIZED


def describe_error(error: BaseException) -> str:
    """
    Text of a raised exception, as fed to classify().

    - expired asyncio deadline -> "context deadline exceeded"
    - SQLAlchemy DBAPIError    -> the driver exception it wraps
    - anything else            -> "<Type>: <message>"

    An explicit cause (raise ... from e) is appended, since drivers
    often wrap the socket error in a generic "can't connect".
    Each exception in the chain is described at most once.
    """
    return _describe(error, set())


def _describe(error: BaseException, seen: Set[int]) -> str:
    seen.add(id(error))
    if isinstance(error, DBAPIError) and error.orig is not None and id(error.orig) not in seen:
        return _describe(error.orig, seen)

    message = str(error)
    if not message and isinstance(error, asyncio.TimeoutError):
        return DEADLINE_EXCEEDED_MESSAGE

    name = error.__class__.__name__
    description = f"{name}: {message}" if message else name

    cause = error.__cause__
    if cause is not None and id(cause) not in seen:
        description = f"{description}: {_describe(cause, seen)}"
    return description

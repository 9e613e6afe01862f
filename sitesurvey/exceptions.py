"""Error types raised by the survey model, ledger and loaders.

Recoverable conditions (bad input, stale addresses, unknown ids) derive from
the builtin exception a caller would naturally catch (``ValueError`` or
``KeyError``). ``InvalidParentError`` marks a programming error and is never
caught inside the package.
"""

from __future__ import annotations

from typing import Any, Optional


class SurveyError(Exception):
    """Base class for all sitesurvey errors."""


class ValidationError(SurveyError, ValueError):
    """A required field is missing or a value is out of range.

    Attributes:
        field: Name of the offending field, when known.
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class NotFoundError(SurveyError, KeyError):
    """An address or equipment id does not resolve.

    Attributes:
        target: The address or id that failed to resolve.
    """

    def __init__(self, target: Any, message: Optional[str] = None) -> None:
        super().__init__(message or f"Not found: {target}")
        self.target = target

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message instead.
        return str(self.args[0])


class InvalidParentError(SurveyError, TypeError):
    """A structural insert targeted a container of the wrong kind."""


class DuplicateIdError(SurveyError, ValueError):
    """Two equipment items share an id where uniqueness was required."""

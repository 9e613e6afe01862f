"""Utility helpers used across sitesurvey.

This package contains small, self-contained utilities that do not depend on
project internals. Keep modules minimal and focused.
"""

from sitesurvey.utils.ids import new_id, new_item_id

__all__ = [
    "new_id",
    "new_item_id",
]

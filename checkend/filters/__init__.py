"""
Filters applied before a notice is built or sent.

- ``SanitizeFilter``: scrubs sensitive keys and oversized strings
- ``IgnoreFilter``: drops errors matching configured ignore rules
"""

from .ignore import ErrorIdentity, IgnoreFilter
from .sanitize import SanitizeFilter

__all__ = ["ErrorIdentity", "IgnoreFilter", "SanitizeFilter"]

"""
Parcel submission: authoritative validation and idempotent persistence.
"""

from .commit import commit_parcels, insert_parcels
from .validation import ParcelValidationError, ValidationCodes, ValidationIssue

__all__ = [
    "commit_parcels",
    "insert_parcels",
    "ParcelValidationError",
    "ValidationCodes",
    "ValidationIssue",
]

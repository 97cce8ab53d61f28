"""
Error taxonomy for the growth pipeline.

- InvalidSubmissionError: malformed identifiers or stats, rejected before
  any computation runs
- NotFoundError: the referenced player or match does not exist
- PersistenceError: the recalculation could not be committed; every write
  of that submission has been rolled back

Enrichment (AI) failures never surface as exceptions; they are logged
and replaced by fallback values.
"""

from typing import Optional


class GrowthError(Exception):
    """Base class for errors raised by the growth pipeline."""
    pass


class InvalidSubmissionError(GrowthError):
    """Raised when a stat submission fails validation."""

    def __init__(self, message: str, field_errors: Optional[list[dict]] = None):
        super().__init__(message)
        self.field_errors = field_errors or []


class NotFoundError(GrowthError):
    """Raised when a referenced player or match does not exist."""

    def __init__(self, entity: str, entity_id: object):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class PersistenceError(GrowthError):
    """Raised when a recalculation is aborted and rolled back."""
    pass

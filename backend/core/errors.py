"""
errors.py — Typed errors raised by the gradebook core.

Pure calculators never raise; pipeline, merge and store code raises one of
these so the API layer can turn it into a proper HTTP response.
"""


class GradebookError(Exception):
    """Base class for every error the core surfaces to callers."""

    status_code = 400
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(GradebookError, ValueError):
    """Ill-formed input: bad period weights, out-of-range grades, mixed batches."""

    status_code = 422
    kind = "validation_error"


class NotFoundError(GradebookError, LookupError):
    """A course, grade level or student could not be resolved."""

    status_code = 404
    kind = "not_found"


class ConflictError(GradebookError):
    """The store refused an upsert because of a conflicting write."""

    status_code = 409
    kind = "conflict"


class DecodeError(GradebookError):
    """An uploaded file could not be decoded at all. Nothing was written."""

    status_code = 400
    kind = "decode_error"


class StoreError(GradebookError):
    """Generic I/O failure from the record store."""

    status_code = 502
    kind = "store_error"

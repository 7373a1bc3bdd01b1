"""
shopdesk/errors.py
------------------
Named failures raised by the core and turned into JSON by the handlers
registered in create_app().

    ValidationFailure   → 400  structural problem, nothing was written
    NotFound            → 404
    Conflict            → 409  duplicate key, record in use, not enough stock
    PersistenceFailure  → 500  the save call failed, state was rolled back
"""


class ShopdeskError(Exception):
    """Base class for shopdesk failures."""
    status_code = 400
    code        = 'error'

    def to_dict(self) -> dict:
        return {'error': self.code, 'message': str(self)}


class ValidationFailure(ShopdeskError):
    """
    One or more fields failed validation.

    `errors` maps field name → message, the same shape the form
    validators return.
    """
    status_code = 400
    code        = 'validation_failed'

    def __init__(self, errors: dict, message: str = 'Validation failed.'):
        super().__init__(message)
        self.errors = dict(errors)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data['errors'] = self.errors
        return data


class NotFound(ShopdeskError):
    status_code = 404
    code        = 'not_found'


class PersistenceFailure(ShopdeskError):
    """The external save call failed; in-memory state is unchanged."""
    status_code = 500
    code        = 'persistence_failed'


class Conflict(ShopdeskError):
    """The request clashes with current data (duplicate key, record in use, short stock)."""
    status_code = 409
    code        = 'conflict'

"""
Typed failures raised by the lineage engine, the stores and the request
schemas. Each class carries the HTTP status the API answers with and a short
'kind' string so clients can tell rejections apart without parsing messages.
"""


class PorciTrackError(Exception):
    """Base class for every expected failure in the application."""
    status_code = 500
    kind = 'error'

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.message, 'kind': self.kind}


# --- Lookups ---

class NotFound(PorciTrackError):
    status_code = 404
    kind = 'not_found'


class PigNotFound(NotFound):
    """A referenced pig does not exist. 'role' says which reference failed."""
    kind = 'pig_not_found'

    def __init__(self, identifier, role='pig'):
        self.identifier = identifier
        self.role = role
        label = {'child': 'Child pig', 'parent': 'Parent pig'}.get(role, 'Pig')
        super().__init__(f"{label} '{identifier}' not found.")


# --- Breeding relationship rejections ---

class InvalidRelationship(PorciTrackError):
    status_code = 400
    kind = 'invalid_relationship'


class SelfBreeding(InvalidRelationship):
    kind = 'self_breeding'

    def __init__(self, pig_id):
        self.pig_id = pig_id
        super().__init__('A pig cannot be recorded as its own parent.')


class BreedingBeforeBirth(InvalidRelationship):
    kind = 'date_precedes_birth'

    def __init__(self, breeding_date, birth_date):
        self.breeding_date = breeding_date
        self.birth_date = birth_date
        super().__init__(
            f'Breeding date {breeding_date.isoformat()} cannot be before the child '
            f'pig birth date {birth_date.isoformat()}.'
        )


class SexMismatch(InvalidRelationship):
    kind = 'sex_mismatch'

    def __init__(self, relationship_type, required_sex, actual_sex):
        self.relationship_type = relationship_type
        self.required_sex = required_sex
        self.actual_sex = actual_sex
        super().__init__(
            f"A {relationship_type} must be {required_sex}; the parent pig is {actual_sex}."
        )


class DuplicateParent(InvalidRelationship):
    kind = 'duplicate_parent'

    def __init__(self, child_tag, relationship_type):
        self.relationship_type = relationship_type
        super().__init__(f"Pig '{child_tag}' already has a recorded {relationship_type}.")


class CycleDetected(PorciTrackError):
    """The new edge would make a pig its own ancestor, or re-use an ancestor as a parent."""
    status_code = 409
    kind = 'cycle_detected'


# --- Registry rejections ---

class DuplicatePig(PorciTrackError):
    status_code = 409
    kind = 'duplicate_pig'


class InvalidTransition(PorciTrackError):
    status_code = 409
    kind = 'invalid_transition'


class ValidationFailed(PorciTrackError):
    """A request payload failed boundary validation."""
    status_code = 400
    kind = 'validation_failed'

    def __init__(self, message, field=None):
        self.field = field
        super().__init__(message)

    def to_dict(self):
        payload = super().to_dict()
        if self.field:
            payload['field'] = self.field
        return payload


# --- Storage ---

class StoreFailure(PorciTrackError):
    """The storage layer failed. Never retried here; the caller decides."""
    status_code = 500
    kind = 'store_failure'

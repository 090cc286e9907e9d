"""Engine exception hierarchy.

Services raise these internally. Public store, verification and report
operations catch them at their boundary and hand back result values.
"""

from typing import Optional


class PropertySnapError(Exception):
    """Base error for the inspection engine."""

    code = "error"

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class IntegrityDegradation(PropertySnapError):
    """EXIF, GPS or file problems that lower a photo's tier. Never fatal."""

    code = "integrity_degradation"


class PreconditionViolation(PropertySnapError):
    """The operation is not legal in the current state."""

    code = "precondition_violation"


class AccessDenied(PreconditionViolation):
    """The acting user's role or property access forbids the operation."""

    code = "access_denied"


class NotFound(PropertySnapError):
    """A property, inspection, checkpoint or member id does not exist."""

    code = "not_found"

    def __init__(self, kind: str, identifier: str):
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class PhotoRejected(PropertySnapError):
    """The photo cannot enter the evidence chain (content hash failed)."""

    code = "photo_rejected"


class CollaboratorError(PropertySnapError):
    """An external collaborator (store, renderer, sink, geocoder) failed."""

    code = "collaborator_error"


class ReportGenerationError(CollaboratorError):
    """Report compilation or PDF rendering failed."""

    code = "report_failed"

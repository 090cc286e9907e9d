"""Result values returned across the engine boundary.

Public operations never raise; they hand back one of these.
"""

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from propertysnap.core.exceptions import IntegrityDegradation, PropertySnapError
from propertysnap.schemas.photo import VerifiedPhotoData

T = TypeVar("T")

EXPORT_FAILED_MESSAGE = "Export Failed. Unable to generate the PDF report. Please try again."
NO_INSPECTIONS_MESSAGE = "No inspections to export"


@dataclass(frozen=True)
class StoreResult(Generic[T]):
    """Outcome of a store operation."""

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def success(cls, value: Any = None) -> "StoreResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, exc: PropertySnapError) -> "StoreResult":
        return cls(ok=False, error=exc.message, error_code=exc.code)

    @property
    def not_found(self) -> bool:
        return self.error_code == "not_found"


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of turning a capture into a verified photo.

    ``degradations`` lists what lowered the photo's tier without rejecting it.
    """

    success: bool
    photo: Optional[VerifiedPhotoData] = None
    error: Optional[str] = None
    degradations: tuple[IntegrityDegradation, ...] = ()


@dataclass(frozen=True)
class ReportResult:
    """Outcome of compiling and rendering a report."""

    success: bool
    uri: Optional[str] = None
    filename: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, message: str = EXPORT_FAILED_MESSAGE) -> "ReportResult":
        return cls(success=False, error=message)

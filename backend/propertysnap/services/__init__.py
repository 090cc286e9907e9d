"""Services for PropertySnap."""

from propertysnap.services.store import InspectionStore, SignatureInput
from propertysnap.services.audit import AuditService, StoreEvent
from propertysnap.services.photo_verification import PhotoVerificationService
from propertysnap.services.notifications import NotificationScheduler
from propertysnap.services.persistence import MemoryKeyValueStore, SqlKeyValueStore, StatePersister
from propertysnap.services.report_compiler import ReportCompiler
from propertysnap.services.pdf_generator import PDFGenerator, get_pdf_generator
from propertysnap.services.evidence_bundle import EvidenceBundleService
from propertysnap.services.geocoder import NominatimGeocoder
from propertysnap.services.capture import CaptureService
from propertysnap.services.engine import PropertySnapEngine

__all__ = [
    "InspectionStore",
    "SignatureInput",
    "AuditService",
    "StoreEvent",
    "PhotoVerificationService",
    "NotificationScheduler",
    "MemoryKeyValueStore",
    "SqlKeyValueStore",
    "StatePersister",
    "ReportCompiler",
    "PDFGenerator",
    "get_pdf_generator",
    "EvidenceBundleService",
    "NominatimGeocoder",
    "CaptureService",
    "PropertySnapEngine",
]

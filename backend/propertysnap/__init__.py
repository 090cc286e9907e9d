"""PropertySnap - forensic photo and report engine for tenancy inspections."""

__version__ = "0.1.0"

"""
Evidence bundle service.

Packages one inspection as a ZIP:
- manifest.json: the canonical manifest, its hash, and the evidence index
- certificate.pdf: the Evidence Integrity Certificate
- report.pdf: the rendered inspection report, when one is supplied
- evidence/: every referenced photo, re-hashed as it is packed
- README.txt
"""

import asyncio
import io
import json
import logging
import zipfile
from datetime import datetime
from typing import Any, Callable, Optional

from propertysnap.models.enums import PHOTO_SLOT_ORDER
from propertysnap.schemas.base import utcnow
from propertysnap.schemas.inspection import Inspection
from propertysnap.schemas.property import Property
from propertysnap.schemas.team import Branding
from propertysnap.services import files
from propertysnap.services.canonical import compute_manifest_hash
from propertysnap.services.formatting import format_timestamp, iso_day
from propertysnap.services.pdf_generator import PDFGenerator, get_pdf_generator
from propertysnap.services.report_compiler import address_slug

logger = logging.getLogger(__name__)

EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
}


class EvidenceBundleService:
    """Builds evidence ZIPs for inspections."""

    def __init__(
        self,
        pdf_generator: Optional[PDFGenerator] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.pdf_generator = pdf_generator or get_pdf_generator()
        self.clock = clock

    async def build(
        self,
        prop: Property,
        inspection: Inspection,
        report_pdf_uri: Optional[str] = None,
        branding: Optional[Branding] = None,
    ) -> tuple[bytes, str]:
        """
        Build the bundle.

        Returns:
            Tuple of (zip_bytes, filename)
        """
        generated_at = self.clock()
        payload, canonical_json, manifest_hash = compute_manifest_hash(prop, inspection)
        certificate = await asyncio.to_thread(
            self.pdf_generator.generate_integrity_certificate,
            prop,
            inspection,
            manifest_hash,
            branding,
            generated_at,
        )

        evidence = await self._collect_evidence(inspection)
        report_pdf = None
        if report_pdf_uri:
            try:
                report_pdf = await files.read_bytes(report_pdf_uri)
            except OSError as e:
                logger.warning("Report PDF unreadable, bundling without it: %s", e)

        manifest = {
            "generated_at": generated_at.isoformat(),
            "manifest_hash": manifest_hash,
            "manifest": payload,
            "evidence": [
                {k: v for k, v in entry.items() if k != "content"} for entry in evidence
            ],
        }

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            zf.writestr("manifest.json", json.dumps(manifest, indent=2, sort_keys=True))
            zf.writestr("manifest.canonical.json", canonical_json)
            zf.writestr("certificate.pdf", certificate)
            if report_pdf is not None:
                zf.writestr("report.pdf", report_pdf)
            for entry in evidence:
                if entry.get("content") is not None:
                    zf.writestr(entry["file"], entry["content"])
            zf.writestr("README.txt", self._generate_readme(prop, inspection, manifest_hash, evidence, generated_at))

        buffer.seek(0)
        filename = f"evidence_{address_slug(prop.address)}_{inspection.type.value}_{iso_day(generated_at)}.zip"
        logger.info(
            "Built evidence bundle with %d files",
            len(evidence),
            extra={"inspection_id": inspection.id, "property_id": prop.id},
        )
        return buffer.read(), filename

    async def _collect_evidence(self, inspection: Inspection) -> list[dict[str, Any]]:
        """Read every photo once and record its current hash against the stored one."""
        entries = []
        for checkpoint in inspection.checkpoints:
            for slot in PHOTO_SLOT_ORDER:
                photo = checkpoint.photo_data_for(slot)
                if photo is None:
                    continue
                ext = EXTENSIONS.get(files.mime_type_for(photo.uri), ".bin")
                name = f"evidence/{checkpoint.id}_{slot.value}{ext}"
                entry: dict[str, Any] = {
                    "file": name,
                    "checkpoint_id": checkpoint.id,
                    "room": checkpoint.room_name,
                    "slot": slot.value,
                    "recorded_hash": photo.photo_hash,
                }
                try:
                    content = await files.read_bytes(photo.uri)
                except (OSError, ValueError) as e:
                    logger.warning("Evidence file missing: %s", photo.uri)
                    entry.update(file=f"{name}_MISSING", error=str(e), hash_matches=False)
                    entries.append(entry)
                    continue
                current = files.compute_file_hash(content)
                entry.update(
                    content=content,
                    current_hash=current,
                    hash_matches=current == photo.photo_hash,
                )
                entries.append(entry)
        return entries

    def _generate_readme(
        self,
        prop: Property,
        inspection: Inspection,
        manifest_hash: str,
        evidence: list[dict[str, Any]],
        generated_at: datetime,
    ) -> str:
        """Generate the human-readable README for the bundle."""
        mismatched = [e for e in evidence if not e.get("hash_matches")]
        lines = [
            "=" * 60,
            "PROPERTYSNAP - INSPECTION EVIDENCE BUNDLE",
            "=" * 60,
            "",
            f"Generated: {format_timestamp(generated_at)}",
            f"Property:  {prop.address}",
            f"Inspection: {inspection.type.label} ({inspection.status.value})",
            f"Inspection ID: {inspection.id}",
            "",
            "INTEGRITY",
            "-" * 40,
            f"Manifest SHA-256: {manifest_hash}",
            f"Evidence files:   {len(evidence)}",
            f"Hash mismatches or missing files: {len(mismatched)}",
            "",
            "FILES IN THIS BUNDLE",
            "-" * 40,
            "- manifest.json - Manifest, manifest hash and evidence index",
            "- manifest.canonical.json - Exact bytes the manifest hash covers",
            "- certificate.pdf - Evidence Integrity Certificate",
            "- report.pdf - Inspection report (if included)",
            "- evidence/ - Original photos",
            "",
            "To verify, recompute SHA-256 over manifest.canonical.json and over",
            "each file in evidence/, and compare with the values in manifest.json.",
            "=" * 60,
        ]
        return "\n".join(lines)

"""
Evidence Integrity Certificate generator.

A compact ReportLab PDF that lists every photo of an inspection with its
slot, verification tier, timestamp, GPS distance and SHA-256, together with
the manifest hash and the signatures. It travels alongside the full report
in an evidence bundle.
"""

import io
from datetime import datetime
from typing import Any, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import (
    HRFlowable,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from propertysnap.models.enums import PHOTO_SLOT_ORDER, SignatureParty
from propertysnap.schemas.inspection import Inspection
from propertysnap.schemas.property import Property
from propertysnap.schemas.team import Branding
from propertysnap.services.formatting import format_timestamp
from propertysnap.services.location import format_distance

BRAND_COLOR = "#2D5C3F"


class PDFGenerator:
    """Generates integrity certificates for inspections."""

    def __init__(self):
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        """Add custom paragraph styles."""
        self.styles.add(ParagraphStyle(
            name='CertTitle',
            parent=self.styles['Heading1'],
            fontSize=20,
            spaceAfter=12,
            alignment=TA_CENTER,
            textColor=colors.HexColor(BRAND_COLOR),
        ))
        self.styles.add(ParagraphStyle(
            name='CertSubtitle',
            parent=self.styles['Normal'],
            fontSize=11,
            spaceAfter=16,
            alignment=TA_CENTER,
            textColor=colors.HexColor('#666666'),
        ))
        self.styles.add(ParagraphStyle(
            name='SectionHeader',
            parent=self.styles['Heading2'],
            fontSize=12,
            spaceBefore=14,
            spaceAfter=6,
            textColor=colors.HexColor('#1A1A1A'),
        ))
        self.styles.add(ParagraphStyle(
            name='Cell',
            parent=self.styles['Normal'],
            fontSize=8,
            leading=10,
        ))
        self.styles.add(ParagraphStyle(
            name='HashCode',
            parent=self.styles['Normal'],
            fontSize=6.5,
            leading=8,
            fontName='Courier',
            textColor=colors.HexColor('#444444'),
        ))
        self.styles.add(ParagraphStyle(
            name='Disclaimer',
            parent=self.styles['Normal'],
            fontSize=7.5,
            textColor=colors.HexColor('#888888'),
            alignment=TA_CENTER,
            spaceBefore=12,
        ))

    def _cell(self, text: Any, style: str = 'Cell') -> Paragraph:
        return Paragraph(escape(str(text)), self.styles[style])

    def _details_table(self, rows: list[list[str]]) -> Table:
        table = Table(rows, colWidths=[40 * mm, 110 * mm])
        table.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('TEXTCOLOR', (0, 0), (0, -1), colors.HexColor('#666666')),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
        ]))
        return table

    def _photo_rows(self, inspection: Inspection) -> list[list[Any]]:
        rows: list[list[Any]] = [[
            self._cell("Room / Checkpoint"),
            self._cell("Slot"),
            self._cell("Tier"),
            self._cell("Timestamp"),
            self._cell("Distance"),
            self._cell("SHA-256"),
        ]]
        for checkpoint in inspection.checkpoints:
            for slot in PHOTO_SLOT_ORDER:
                photo = checkpoint.photo_data_for(slot)
                if photo is None:
                    continue
                if photo.is_exif_available and photo.capture_date:
                    stamp = f"{format_timestamp(photo.capture_date)} (capture)"
                else:
                    stamp = f"{format_timestamp(photo.upload_date)} (upload)"
                rows.append([
                    self._cell(f"{checkpoint.room_name} / {checkpoint.title}"),
                    self._cell(slot.value),
                    self._cell(f"{photo.tier.glyph} {photo.tier.label}"),
                    self._cell(stamp),
                    self._cell(format_distance(photo.distance_m) if photo.distance_m is not None else "N/A"),
                    self._cell(photo.photo_hash, 'HashCode'),
                ])
        return rows

    def generate_integrity_certificate(
        self,
        prop: Property,
        inspection: Inspection,
        manifest_hash: str,
        branding: Optional[Branding] = None,
        generated_at: Optional[datetime] = None,
    ) -> bytes:
        """
        Generate the integrity certificate for one inspection.

        Args:
            prop: Property the inspection belongs to
            inspection: The inspection being certified
            manifest_hash: SHA-256 of the canonical manifest

        Returns:
            PDF bytes
        """
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=20 * mm,
            leftMargin=20 * mm,
            topMargin=20 * mm,
            bottomMargin=20 * mm,
            title="Evidence Integrity Certificate",
            invariant=1,
        )
        brand = branding.company_name if branding and branding.company_name else "PropertySnap"

        story = []

        # Header
        story.append(Paragraph(escape(brand), self.styles['CertTitle']))
        story.append(Paragraph("Evidence Integrity Certificate", self.styles['CertSubtitle']))

        # Inspection
        story.append(Paragraph("INSPECTION", self.styles['SectionHeader']))
        story.append(HRFlowable(width="100%", thickness=1, color=colors.HexColor('#e0e0e0')))
        story.append(self._details_table([
            ["Address:", prop.address],
            ["Inspection ID:", inspection.id],
            ["Type:", inspection.type.label],
            ["Status:", inspection.status.value.capitalize()],
            ["Created:", format_timestamp(inspection.created_at)],
            ["Completed:", format_timestamp(inspection.completed_at) or "N/A"],
        ]))
        story.append(Spacer(1, 4 * mm))

        # Photos
        story.append(Paragraph("PHOTO EVIDENCE", self.styles['SectionHeader']))
        story.append(HRFlowable(width="100%", thickness=1, color=colors.HexColor('#e0e0e0')))
        rows = self._photo_rows(inspection)
        if len(rows) > 1:
            photo_table = Table(
                rows,
                colWidths=[38 * mm, 16 * mm, 22 * mm, 30 * mm, 16 * mm, 48 * mm],
                repeatRows=1,
            )
            photo_table.setStyle(TableStyle([
                ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor(BRAND_COLOR)),
                ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
                ('VALIGN', (0, 0), (-1, -1), 'TOP'),
                ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#e0e0e0')),
                ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#f9f9f9')]),
            ]))
            story.append(photo_table)
        else:
            story.append(Paragraph("No verified photos recorded.", self.styles['Normal']))

        # Signatures
        story.append(Paragraph("SIGNATURES", self.styles['SectionHeader']))
        story.append(HRFlowable(width="100%", thickness=1, color=colors.HexColor('#e0e0e0')))
        signature_rows = []
        for party in SignatureParty:
            block = inspection.signature_for(party)
            signed = (
                f"{block.printed_name or 'Unnamed'} on {format_timestamp(block.signed_at)}"
                if block else "Not signed"
            )
            signature_rows.append([f"{party.value.capitalize()}:", signed])
        story.append(self._details_table(signature_rows))

        # Manifest
        story.append(Paragraph("MANIFEST HASH", self.styles['SectionHeader']))
        story.append(HRFlowable(width="100%", thickness=1, color=colors.HexColor('#e0e0e0')))
        story.append(Paragraph(escape(manifest_hash), self.styles['HashCode']))

        # Disclaimer
        story.append(Spacer(1, 8 * mm))
        story.append(HRFlowable(width="100%", thickness=1, color=colors.HexColor('#e0e0e0')))
        story.append(Paragraph(
            "Each photo is identified by the SHA-256 digest of its file content. "
            "Recompute the digests and the manifest hash to verify this record.",
            self.styles['Disclaimer'],
        ))
        if generated_at is not None:
            story.append(Paragraph(
                f"Generated by {escape(brand)} on {format_timestamp(generated_at)}",
                self.styles['Disclaimer'],
            ))

        doc.build(story)
        buffer.seek(0)
        return buffer.read()


def get_pdf_generator() -> PDFGenerator:
    """Get PDF generator instance."""
    return PDFGenerator()

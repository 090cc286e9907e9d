"""HTML composition for inspection and history reports.

Pure functions from a materialised report model to an HTML document. Every
interpolated value is escaped; only the glyph tables in the enums are used
for icons, so no font beyond the renderer's defaults is needed.
"""

from datetime import datetime
from html import escape
from typing import Optional

from propertysnap.models.enums import InspectionStatus, InspectionType
from propertysnap.schemas.report import (
    EmbeddedImage,
    HistoryReportModel,
    InspectionReportModel,
    PropertySummary,
    ReportCheckpoint,
    ReportRoom,
    ReportSignature,
    TimestampSource,
)
from propertysnap.schemas.team import Branding
from propertysnap.services.formatting import format_long_date, format_timestamp
from propertysnap.services.location import format_distance
from propertysnap.services.watermark import WATERMARK_CSS, watermark_overlay

BRAND_NAME = "PropertySnap"
TAGLINE = "Protect your bond, every time"
BLANK = "___________________"
NOT_INSPECTED = "(Not Inspected)"
NO_PHOTO = "No photo provided"
NO_NOTES = "No information provided"

LEGAL_NOTICE = (
    "This inspection report constitutes an official record of the property's condition "
    "at the time of inspection. By signing above, both parties acknowledge that the "
    "photographs, condition assessments, and notes contained herein accurately represent "
    "the state of the property. Any discrepancies or disputes must be reported in writing "
    "within seven (7) days of receiving this document. This report may be used as evidence "
    "in bond disputes or legal proceedings."
)

VERIFICATION_NOTICE = (
    "Photo verification: [OK+GPS] captured in app within 100m of the property; "
    "[OK] captured in app or carrying an original EXIF timestamp; "
    "[!] imported without verifiable capture data. Each photo is identified by the "
    "SHA-256 digest of its file content."
)

TIMESTAMP_PREFIX = {
    TimestampSource.CAPTURE: "Captured",
    TimestampSource.UPLOAD: "Uploaded",
    TimestampSource.LEGACY: "Inspected",
}

STATUS_GLYPHS = {
    InspectionStatus.PENDING: "[ ]",
    InspectionStatus.COMPLETED: "[x]",
    InspectionStatus.ARCHIVED: "[x]",
}

CONDITION_COLORS = {
    "pass": "#2D5C3F",
    "pass-attention": "#D97706",
    "fail": "#991B1B",
}

BASE_CSS = """
@page { size: A4; margin: 25mm 30mm; }
body { font-family: Helvetica, Arial, sans-serif; color: #1A1A1A; font-size: 11px; margin: 0; }
h1, h2, h3, h4 { margin: 0 0 8px 0; }
.cover-page { text-align: center; padding-top: 80px; page-break-after: always; }
.cover-logo { display: inline-block; width: 72px; height: 72px; line-height: 72px;
  border-radius: 16px; background: #2D5C3F; color: #FFFFFF; font-size: 28px; font-weight: 700; }
.brand-logo { max-width: 180px; max-height: 72px; }
.brand-name { font-size: 14px; font-weight: 600; margin-top: 8px; }
.cover-title { font-size: 28px; margin-top: 24px; }
.cover-subtitle { color: #6B6B6B; }
.cover-photo { max-width: 100%; max-height: 280px; margin: 24px 0; border-radius: 8px; }
.cover-property-address { font-size: 18px; font-weight: 600; }
.cover-inspection-type { display: inline-block; margin-top: 16px; padding: 6px 16px;
  border: 1px solid #2D5C3F; border-radius: 16px; color: #2D5C3F; }
.cover-date { color: #6B6B6B; margin-top: 24px; }
.property-summary { border: 1px solid #E5E5E5; border-radius: 8px; padding: 16px; margin-bottom: 24px; }
.property-details-grid { display: flex; flex-wrap: wrap; }
.property-detail { width: 50%; margin-bottom: 8px; }
.property-detail-label { display: block; color: #6B6B6B; font-size: 9px; text-transform: uppercase; }
.property-detail-value { font-weight: 600; }
.room-section { margin-bottom: 24px; page-break-inside: avoid; }
.room-title { font-size: 18px; border-bottom: 2px solid #2D5C3F; padding-bottom: 4px; }
.room-status { font-size: 14px; color: #6B6B6B; font-weight: normal; }
.checkpoints-grid { display: flex; flex-wrap: wrap; }
.checkpoint-card { width: 48%; margin: 0 2% 16px 0; border: 1px solid #E5E5E5;
  border-radius: 8px; overflow: hidden; page-break-inside: avoid; }
.checkpoint-photo { width: 100%; display: block; }
.photo-placeholder { height: 140px; background: #F5F5F5; text-align: center; line-height: 140px; }
.placeholder-text { color: #6B6B6B; }
.checkpoint-details { padding: 8px 10px; }
.checkpoint-label { font-size: 9px; color: #6B6B6B; text-transform: uppercase; }
.checkpoint-title { font-size: 12px; }
.tier-badge { display: inline-block; padding: 2px 6px; border-radius: 3px; color: #FFFFFF; font-size: 9px; }
.condition-line { margin: 6px 0; font-weight: 600; }
.checkpoint-notes { color: #333333; }
.no-info { color: #9B9B9B; font-style: italic; }
.checkpoint-timestamp, .checkpoint-hash { color: #6B6B6B; font-size: 9px; margin: 4px 0 0 0; }
.checkpoint-hash { font-family: Courier, monospace; word-break: break-all; }
.signature-section { page-break-inside: avoid; margin-top: 24px; }
.signatures-grid { display: flex; }
.signature-box { width: 50%; padding-right: 16px; }
.signature-line { height: 60px; border-bottom: 1px solid #1A1A1A; margin-bottom: 8px; }
.signature-image { max-height: 60px; }
.disclaimer { margin-top: 24px; padding: 12px; background: #F9F9F9; border-radius: 8px; font-size: 9px; }
.report-footer { margin-top: 24px; text-align: center; color: #6B6B6B; font-size: 9px; }
.history-stats { display: flex; justify-content: center; margin: 24px 0; }
.history-stat { margin: 0 12px; }
.toc { text-align: left; margin: 24px auto; width: 80%; }
.toc-entry { border-bottom: 1px dotted #CCCCCC; padding: 4px 0; }
.inspection-divider { page-break-before: always; border-top: 4px solid #2D5C3F; padding-top: 12px; margin-bottom: 16px; }
"""


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def _document(title: str, body: list[str]) -> str:
    return "\n".join([
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        '<meta charset="utf-8">',
        f"<title>{escape(title)}</title>",
        f"<style>{BASE_CSS}{WATERMARK_CSS}</style>",
        "</head>",
        "<body>",
        *body,
        "</body>",
        "</html>",
    ])


def _brand_block(branding: Optional[Branding]) -> str:
    if branding is None:
        return '<div class="cover-logo">PS</div>'
    parts = []
    if branding.company_logo:
        parts.append(f'<img class="brand-logo" src="{escape(branding.company_logo)}" alt="Company logo" />')
    else:
        parts.append('<div class="cover-logo">PS</div>')
    if branding.company_name:
        parts.append(f'<div class="brand-name">{escape(branding.company_name)}</div>')
    return "".join(parts)


def _summary_line(summary: PropertySummary) -> str:
    return " | ".join([
        summary.property_type.value.capitalize(),
        _plural(summary.bedrooms, "Bedroom"),
        _plural(summary.bathrooms, "Bathroom"),
    ])


def _cover(
    summary: PropertySummary,
    branding: Optional[Branding],
    cover_photo: Optional[EmbeddedImage],
    title: str,
    badge: str,
    generated_at: datetime,
    extra: Optional[list[str]] = None,
) -> list[str]:
    parts = [
        '<div class="cover-page">',
        _brand_block(branding),
        f'<h1 class="cover-title">{escape(title)}</h1>',
        f'<p class="cover-subtitle">{escape(TAGLINE)}</p>',
    ]
    # Profile photo only, never an inspection photo
    if cover_photo is not None and cover_photo.available:
        parts.append(f'<img class="cover-photo" src="{escape(cover_photo.data_uri)}" alt="Property" />')
    parts += [
        '<div class="cover-property">',
        f'<p class="cover-property-address">{escape(summary.address)}</p>',
        f'<p class="cover-property-details">{escape(_summary_line(summary))}</p>',
        "</div>",
        f'<div class="cover-inspection-type">{escape(badge)}</div>',
        *(extra or []),
        f'<p class="cover-date">Generated on {escape(format_long_date(generated_at))}</p>',
        "</div>",
    ]
    return parts


def _detail(label: str, value: object) -> str:
    return (
        '<div class="property-detail">'
        f'<span class="property-detail-label">{escape(label)}</span>'
        f'<span class="property-detail-value">{escape(str(value))}</span>'
        "</div>"
    )


def property_card(summary: PropertySummary, model: Optional[InspectionReportModel] = None) -> str:
    details = [
        _detail("Address", summary.address),
        _detail("Property Type", summary.property_type.value.capitalize()),
        _detail("Bedrooms", summary.bedrooms),
        _detail("Bathrooms", summary.bathrooms),
    ]
    if summary.tenant_name:
        details.append(_detail("Tenant", summary.tenant_name))
    if model is not None:
        details.append(_detail("Inspection Date", format_long_date(model.created_at)))
        if model.completed_at:
            details.append(_detail("Completed", format_long_date(model.completed_at)))
        if model.inspector_name:
            details.append(_detail("Inspector", model.inspector_name))
        details.append(_detail("Checkpoints Inspected", f"{model.inspected_count} of {model.checkpoint_count}"))
        counts = model.tier_counts()
        details.append(_detail(
            "Photo Verification",
            ", ".join(
                f"{counts[tier]} {tier.label}"
                for tier in sorted(counts, key=lambda t: t.rank, reverse=True)
            ),
        ))
    return (
        '<div class="property-summary">'
        "<h2>Property Details</h2>"
        f'<div class="property-details-grid">{"".join(details)}</div>'
        "</div>"
    )


def checkpoint_card(checkpoint: ReportCheckpoint, address: str) -> str:
    if checkpoint.image is not None and checkpoint.image.available:
        photo = (
            '<div class="photo-container photo-with-watermark">'
            f'<img src="{escape(checkpoint.image.data_uri)}" alt="{escape(checkpoint.title)}" class="checkpoint-photo" />'
            f"{watermark_overlay(address, checkpoint.tier, checkpoint.timestamp)}"
            "</div>"
        )
        badge = (
            f'<span class="tier-badge" style="background-color: {checkpoint.tier.color};">'
            f"{escape(checkpoint.tier.glyph)} {escape(checkpoint.tier.label)}</span>"
        )
    else:
        photo = f'<div class="photo-placeholder"><span class="placeholder-text">{NO_PHOTO}</span></div>'
        badge = ""

    parts = [
        '<div class="checkpoint-card">',
        photo,
        '<div class="checkpoint-details">',
        f'<p class="checkpoint-label">{escape(checkpoint.label)}</p>',
        f'<h3 class="checkpoint-title">{escape(checkpoint.title)}</h3>',
        badge,
    ]
    if checkpoint.condition is not None:
        color = CONDITION_COLORS[checkpoint.condition.value]
        parts.append(
            f'<p class="condition-line" style="color: {color};">'
            f"{escape(checkpoint.condition.glyph)} {escape(checkpoint.condition.label)}</p>"
        )
    notes = escape(checkpoint.notes) if checkpoint.notes else f'<span class="no-info">{NO_NOTES}</span>'
    parts.append(f'<div class="checkpoint-notes">{notes}</div>')
    if checkpoint.timestamp is not None and checkpoint.timestamp_source is not None:
        parts.append(
            f'<p class="checkpoint-timestamp">{TIMESTAMP_PREFIX[checkpoint.timestamp_source]}: '
            f"{escape(format_timestamp(checkpoint.timestamp))}</p>"
        )
    if checkpoint.distance_m is not None:
        parts.append(
            f'<p class="checkpoint-timestamp">Distance from property: {escape(format_distance(checkpoint.distance_m))}</p>'
        )
    if checkpoint.photo_hash:
        parts.append(f'<p class="checkpoint-hash">SHA-256: {escape(checkpoint.photo_hash)}</p>')
    parts += ["</div>", "</div>"]
    return "".join(parts)


def room_section(room: ReportRoom, address: str) -> str:
    status = f' <span class="room-status">{NOT_INSPECTED}</span>' if room.not_inspected else ""
    cards = "".join(checkpoint_card(checkpoint, address) for checkpoint in room.checkpoints)
    return (
        '<div class="room-section">'
        f'<h2 class="room-title">{escape(room.name)}{status}</h2>'
        f'<div class="checkpoints-grid">{cards}</div>'
        "</div>"
    )


def _signature_box(signature: ReportSignature) -> str:
    image = ""
    if signature.image is not None and signature.image.available:
        image = (
            f'<img src="{escape(signature.image.data_uri)}" class="signature-image" '
            f'alt="{escape(signature.label)} signature" />'
        )
    signed = format_timestamp(signature.signed_at) if signature.signed_at else BLANK
    return (
        '<div class="signature-box">'
        f"<h3>{escape(signature.label)}</h3>"
        f'<div class="signature-line">{image}</div>'
        f'<p class="signature-name">{escape(signature.printed_name or BLANK)}</p>'
        f'<p class="signature-date">Date: {escape(signed)}</p>'
        "</div>"
    )


def signature_section(signatures: tuple[ReportSignature, ...]) -> str:
    return (
        '<div class="signature-section">'
        "<h2>Signatures &amp; Acknowledgment</h2>"
        f'<div class="signatures-grid">{"".join(_signature_box(s) for s in signatures)}</div>'
        '<div class="disclaimer">'
        "<h4>Legal Notice</h4>"
        f"<p>{escape(LEGAL_NOTICE)}</p>"
        f"<p>{escape(VERIFICATION_NOTICE)}</p>"
        "</div>"
        "</div>"
    )


def _footer(report_id: str, inspection_ids: list[str], generated_at: datetime, branding: Optional[Branding]) -> str:
    brand = branding.company_name if branding and branding.company_name else BRAND_NAME
    lines = [
        f'<p>Generated by <span class="brand">{escape(brand)}</span> | {escape(TAGLINE)}</p>',
        f"<p>Report ID: {escape(report_id)}</p>",
    ]
    lines += [f"<p>Inspection ID: {escape(i)}</p>" for i in inspection_ids]
    lines.append(f"<p>Generated: {escape(format_timestamp(generated_at))}</p>")
    return f'<div class="report-footer">{"".join(lines)}</div>'


def inspection_body(model: InspectionReportModel) -> list[str]:
    """Property card, rooms and signatures of one inspection."""
    address = model.summary.address
    return [
        '<div class="report-content">',
        property_card(model.summary, model),
        *(room_section(room, address) for room in model.rooms),
        signature_section(model.signatures),
        "</div>",
    ]


def _type_title(inspection_type: InspectionType) -> str:
    return f"{inspection_type.label} Inspection"


def render_inspection_html(model: InspectionReportModel) -> str:
    body = _cover(
        model.summary,
        model.branding,
        model.cover_photo,
        "Property Inspection Report",
        _type_title(model.inspection_type),
        model.generated_at,
    )
    body += inspection_body(model)
    body.append(_footer(model.report_id, [model.inspection_id], model.generated_at, model.branding))
    return _document("Property Inspection Report", body)


def _history_preface(model: HistoryReportModel) -> list[str]:
    by_type = model.counts_by_type()
    by_status = model.counts_by_status()
    stats = [
        ("Total", len(model.sections)),
        *((kind.label, by_type[kind]) for kind in InspectionType),
        *((status.value.capitalize(), by_status[status]) for status in InspectionStatus),
    ]
    parts = ['<div class="history-stats">']
    parts += [
        f'<div class="history-stat"><strong>{count}</strong> {escape(label)}</div>'
        for label, count in stats
    ]
    parts.append("</div>")

    first, last = model.date_range
    parts.append(
        f'<p class="history-range">{escape(format_long_date(first))} to {escape(format_long_date(last))}</p>'
    )
    parts.append('<div class="toc"><h2>Contents</h2>')
    for position, section in enumerate(model.sections, start=1):
        parts.append(
            '<div class="toc-entry">'
            f"{position}. {STATUS_GLYPHS[section.status]} {escape(_type_title(section.inspection_type))}"
            f" - {escape(format_long_date(section.created_at))}"
            "</div>"
        )
    parts.append("</div>")
    return parts


def render_history_html(model: HistoryReportModel) -> str:
    body = _cover(
        model.summary,
        model.branding,
        model.cover_photo,
        "Inspection History Report",
        _plural(len(model.sections), "Inspection"),
        model.generated_at,
        extra=_history_preface(model),
    )
    for position, section in enumerate(model.sections, start=1):
        body.append(
            '<div class="inspection-divider">'
            f"<h1>{position}. {escape(_type_title(section.inspection_type))}</h1>"
            f"<p>{escape(format_long_date(section.created_at))} | {escape(section.status.value.capitalize())}</p>"
            "</div>"
        )
        body += inspection_body(section)
    body.append(_footer(
        model.report_id,
        [section.inspection_id for section in model.sections],
        model.generated_at,
        model.branding,
    ))
    return _document("Inspection History Report", body)

"""Watermark overlay burnt over each photo in the report."""

from datetime import datetime
from html import escape
from typing import Optional

from propertysnap.models.enums import VerificationTier
from propertysnap.services.formatting import format_timestamp

MAX_ADDRESS_LENGTH = 45


def truncate_address(address: str) -> str:
    if len(address) <= MAX_ADDRESS_LENGTH:
        return address
    return address[: MAX_ADDRESS_LENGTH - 3] + "..."


def watermark_text(tier: VerificationTier, timestamp: Optional[datetime]) -> str:
    """``[OK+GPS] 15 Mar 2024, 10:20 - VERIFIED + GPS``."""
    stamp = format_timestamp(timestamp) or "No timestamp"
    return f"{tier.glyph} {stamp} - {tier.label.upper()}"


def watermark_overlay(address: str, tier: VerificationTier, timestamp: Optional[datetime]) -> str:
    return (
        '<div class="watermark-overlay">'
        '<div class="watermark-top">'
        f'<span class="watermark-address">{escape(truncate_address(address))}</span>'
        "</div>"
        '<div class="watermark-bottom">'
        f'<span class="watermark-timestamp" style="background-color: {tier.color};">'
        f"{escape(watermark_text(tier, timestamp))}"
        "</span>"
        "</div>"
        "</div>"
    )


WATERMARK_CSS = """
.photo-with-watermark { position: relative; overflow: hidden; }
.watermark-overlay {
  position: absolute; top: 0; left: 0; right: 0; bottom: 0;
  display: flex; flex-direction: column; justify-content: space-between;
}
.watermark-top {
  background: linear-gradient(180deg, rgba(0,0,0,0.7) 0%, rgba(0,0,0,0) 100%);
  padding: 8px 10px;
}
.watermark-address {
  font-size: 9px; color: #FFFFFF; font-weight: 600; letter-spacing: 0.3px;
}
.watermark-bottom {
  background: linear-gradient(0deg, rgba(0,0,0,0.7) 0%, rgba(0,0,0,0) 100%);
  padding: 8px 10px; display: flex; justify-content: flex-end;
}
.watermark-timestamp {
  font-size: 8px; color: #FFFFFF; font-weight: 600;
  padding: 3px 8px; border-radius: 3px;
}
"""

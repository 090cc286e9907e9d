"""Tenant invitation and inspection-request messages with SMS/email links."""

import re
from datetime import datetime
from typing import Optional
from urllib.parse import quote

from propertysnap.models.enums import InspectionType, Platform
from propertysnap.services.formatting import format_long_date

# Characters left unescaped by JavaScript's encodeURIComponent
_URI_COMPONENT_SAFE = "-_.!~*'()"


def encode_component(text: str) -> str:
    return quote(text, safe=_URI_COMPONENT_SAFE)


def type_label(inspection_type: InspectionType) -> str:
    return inspection_type.label


def has_contact_info(email: Optional[str] = None, phone: Optional[str] = None) -> bool:
    return bool((email or "").strip() or (phone or "").strip())


def clean_phone(phone: str) -> str:
    return re.sub(r"[\s-]", "", phone)


def sms_url(phone: str, body: str, platform: Platform = Platform.IOS) -> str:
    separator = "&" if platform == Platform.IOS else "?"
    return f"sms:{clean_phone(phone)}{separator}body={encode_component(body)}"


def mailto_url(email: str, subject: str, body: str) -> str:
    return (
        f"mailto:{email.strip()}"
        f"?subject={encode_component(subject)}&body={encode_component(body)}"
    )


def inspection_request_message(
    tenant_name: Optional[str],
    address: str,
    inspection_type: Optional[InspectionType] = None,
    due_date: Optional[datetime] = None,
) -> str:
    """Ask the tenant to complete an inspection in the app."""
    kind = f"{inspection_type.label.lower()} " if inspection_type else ""
    message = (
        f"Hey {tenant_name or 'Tenant'}, your landlord has requested you to complete "
        f"a {kind}property inspection for {address}."
    )
    if due_date is not None:
        message += f" It is due by {format_long_date(due_date)}."
    return message + " Please open the PropertySnap app to get started."


def tenant_invitation_message(tenant_name: Optional[str], address: str) -> str:
    return (
        f"Hi {tenant_name or 'there'}!\n"
        "\n"
        f"You've been added as a tenant at {address}.\n"
        "\n"
        "Your landlord uses PropertySnap to manage property inspections. "
        "Please download the app to:\n"
        "- Complete move-in/move-out inspections\n"
        "- Document property condition with timestamped photos\n"
        "- Sign inspection reports digitally\n"
        "\n"
        "Download PropertySnap from the App Store or Google Play to get started.\n"
        "\n"
        "Welcome to your new home!"
    )


def tenant_invitation_subject(address: str) -> str:
    return f"Welcome to {address} - PropertySnap Setup"

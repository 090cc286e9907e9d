"""Tests for tenant messaging helpers."""

from datetime import datetime, timezone

from propertysnap.models.enums import InspectionType, Platform
from propertysnap.services.messaging import (
    clean_phone,
    encode_component,
    has_contact_info,
    inspection_request_message,
    mailto_url,
    sms_url,
    tenant_invitation_message,
    tenant_invitation_subject,
    type_label,
)


class TestUrls:
    def test_encode_component(self):
        assert encode_component("a b&c=d/e") == "a%20b%26c%3Dd%2Fe"
        assert encode_component("it's (fine)!") == "it's%20(fine)!"

    def test_clean_phone(self):
        assert clean_phone("0400 123-456") == "0400123456"

    def test_sms_url_ios(self):
        assert sms_url("0400 123 456", "Hi there") == "sms:0400123456&body=Hi%20there"

    def test_sms_url_android(self):
        assert sms_url("0400 123 456", "Hi", Platform.ANDROID) == "sms:0400123456?body=Hi"

    def test_mailto_url(self):
        url = mailto_url(" tara@example.com ", "Welcome to 12 High St", "Line one\nLine two")
        assert url == (
            "mailto:tara@example.com"
            "?subject=Welcome%20to%2012%20High%20St"
            "&body=Line%20one%0ALine%20two"
        )

    def test_has_contact_info(self):
        assert has_contact_info("a@b.c")
        assert has_contact_info(None, "0400")
        assert not has_contact_info("  ", None)


class TestMessages:
    def test_request_with_due_date(self):
        message = inspection_request_message(
            "Tara",
            "12 High St",
            InspectionType.MOVE_IN,
            datetime(2024, 3, 25, 12, 0, tzinfo=timezone.utc),
        )
        assert message == (
            "Hey Tara, your landlord has requested you to complete a move-in property "
            "inspection for 12 High St. It is due by 25 March 2024. "
            "Please open the PropertySnap app to get started."
        )

    def test_request_without_details(self):
        message = inspection_request_message(None, "12 High St")
        assert message.startswith("Hey Tenant, your landlord has requested you to complete a property inspection")
        assert "due by" not in message

    def test_invitation(self):
        message = tenant_invitation_message("Tara", "12 High St")
        assert message.startswith("Hi Tara!\n\nYou've been added as a tenant at 12 High St.")
        assert message.endswith("Welcome to your new home!")
        assert tenant_invitation_subject("12 High St") == "Welcome to 12 High St - PropertySnap Setup"

    def test_type_labels(self):
        assert [type_label(t) for t in InspectionType] == ["Move-In", "Move-Out", "Routine"]

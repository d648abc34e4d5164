"""Tests for pipeline data models and errors."""

import logging

import pytest
from pydantic import ValidationError

from mailersend_relay.errors import DeliveryError, MappingError, ParseError, RelayError, StorageError
from mailersend_relay.logger import configure_logging, get_logger
from mailersend_relay.models import NO_SUBJECT, Address, Recipient, SendAttachment, SendRequest


class TestAddress:
    def test_empty_email_rejected(self):
        with pytest.raises(ValueError):
            Address(email="")

    def test_str(self):
        assert str(Address(email="a@x.com")) == "a@x.com"
        assert str(Address(email="a@x.com", name="Alice")) == "Alice <a@x.com>"


class TestSendRequest:
    """Tests for the outbound request model."""

    def test_accepts_from_alias(self):
        request = SendRequest.model_validate({"from": {"email": "a@x.com"}, "to": [{"email": "b@y.com"}]})

        assert request.sender.email == "a@x.com"
        assert request.subject == NO_SUBJECT

    def test_payload_uses_alias(self):
        request = SendRequest(sender=Recipient(email="a@x.com", name="A"), to=[])

        assert request.to_payload() == {
            "from": {"email": "a@x.com", "name": "A"},
            "to": [],
            "subject": NO_SUBJECT,
        }

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            SendRequest.model_validate(
                {"from": {"email": "a@x.com"}, "to": [], "template_id": "abc"}
            )

    def test_attachment_disposition_default(self):
        attachment = SendAttachment(content="YWJj", filename="note.txt")

        assert attachment.disposition == "attachment"

    def test_attachment_disposition_validated(self):
        with pytest.raises(ValidationError):
            SendAttachment(content="YWJj", filename="note.txt", disposition="detached")


class TestErrors:
    """Tests for the error hierarchy."""

    def test_stages(self):
        assert ParseError("x").stage == "parsing"
        assert StorageError("x").stage == "storage"
        assert MappingError("x").stage == "mapping"
        assert DeliveryError("x").stage == "delivery"
        assert all(
            issubclass(cls, RelayError) for cls in (ParseError, StorageError, MappingError, DeliveryError)
        )

    def test_delivery_error_str(self):
        assert str(DeliveryError("unreachable")) == "unreachable"
        assert str(DeliveryError("rejected", status=422)) == "rejected (status=422)"


class TestLogger:
    def test_get_logger_name(self):
        assert get_logger().name == "MailerSendRelay"
        assert get_logger("MessageMapper").name == "MessageMapper"

    def test_configure_logging_level(self):
        root = logging.getLogger()
        previous_level, previous_handlers = root.level, root.handlers[:]
        try:
            configure_logging("debug")
            assert root.level == logging.DEBUG

            configure_logging("nonsense")
            assert root.level == logging.INFO
        finally:
            root.handlers[:] = previous_handlers
            root.setLevel(previous_level)

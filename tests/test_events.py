"""Tests for storage keys and upload notifications."""

import pytest

from chatbot_rag.models.document import StorageRef
from chatbot_rag.models.event import StorageObjectEvent


class TestStorageRef:
    def test_canonical_key_round_trip(self):
        key = StorageRef.build_key("t-1", "bot-1", "doc-1", "faq.txt")
        ref = StorageRef.parse(key)

        assert key == "tenants/t-1/chatbots/bot-1/documents/doc-1/faq.txt"
        assert (ref.tenant_id, ref.chatbot_id, ref.document_id, ref.filename) == (
            "t-1", "bot-1", "doc-1", "faq.txt")

    @pytest.mark.parametrize("key,chatbot_id,document_id,filename", [
        ("chatbots/bot-1/context/doc-2/manual.pdf", "bot-1", "doc-2", "manual.pdf"),
        ("chatbots/bot-1/doc-3/notes.txt", "bot-1", "doc-3", "notes.txt"),
    ])
    def test_legacy_layouts(self, key, chatbot_id, document_id, filename):
        ref = StorageRef.parse(key)
        assert ref.tenant_id is None
        assert (ref.chatbot_id, ref.document_id, ref.filename) == (chatbot_id, document_id, filename)

    def test_url_encoded_key(self):
        ref = StorageRef.parse("tenants/t-1/chatbots/bot-1/documents/doc-1/price+list%282024%29.csv")
        assert ref.filename == "price list(2024).csv"
        assert ref.key == "tenants/t-1/chatbots/bot-1/documents/doc-1/price list(2024).csv"

    @pytest.mark.parametrize("key", [
        "exports/report.txt",
        "chatbots/bot-1/readme.txt",
        "tenants/t-1/chatbots/bot-1/documents/doc-1/",
    ])
    def test_non_document_keys(self, key):
        assert StorageRef.parse(key) is None


class TestStorageObjectEvent:
    def test_s3_notification(self):
        payload = {
            "Records": [
                {
                    "eventName": "ObjectCreated:Put",
                    "s3": {
                        "bucket": {"name": "uploads"},
                        "object": {"key": "chatbots/bot-1/doc-1/a.txt", "size": 12},
                    },
                },
                {"eventName": "ObjectCreated:Put", "s3": {"object": {}}},
            ]
        }

        events = StorageObjectEvent.from_payload(payload)

        assert len(events) == 1
        assert events[0].bucket == "uploads"
        assert events[0].size == 12
        assert events[0].is_created

    def test_bare_payload(self):
        events = StorageObjectEvent.from_payload(
            {"key": "chatbots/bot-1/doc-1/a.pdf", "content_type": "application/pdf"})
        assert events[0].content_type == "application/pdf"
        assert events[0].is_created

    def test_removal_is_not_created(self):
        event = StorageObjectEvent(event_name="ObjectRemoved:Delete", key="k")
        assert not event.is_created

    def test_empty_payload(self):
        assert StorageObjectEvent.from_payload({}) == []

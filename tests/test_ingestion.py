"""Tests for the document ingestion pipeline."""

import pytest

from chatbot_rag.core.exceptions import BlobStoreError
from chatbot_rag.models.document import DocumentStatus, StorageRef
from chatbot_rag.models.event import StorageObjectEvent
from chatbot_rag.services.ingestion import IngestionStage
from tests.conftest import FakeBlobStore, FakeEmbeddingService

KEY = "tenants/tenant-1/chatbots/bot-1/documents/doc-1/faq.txt"

THREE_PARAGRAPHS = (
    "Shipping takes two business days.\n\n"
    "Refunds are issued within a week.\n\n"
    "The widget warranty lasts two years."
)


def _ref(key=KEY):
    return StorageRef.parse(key)


class TestHappyPath:
    @pytest.mark.asyncio
    async def test_small_document_becomes_one_chunk(self, make_pipeline, database, vector_db):
        text = (
            "Welcome to the widget store.\n\n"
            "Shipping takes two business days and is free over fifty dollars.\n\n"
            "Returns are accepted within thirty days; contact support for a refund."
        )
        pipeline = make_pipeline(FakeBlobStore({KEY: text.encode()}))

        result = await pipeline.ingest(_ref(), content_type="text/plain")

        assert result.status == DocumentStatus.COMPLETE
        assert result.chunk_count == 1
        record = await database.get_document("bot-1", "doc-1")
        assert record.status == DocumentStatus.COMPLETE
        assert record.tenant_id == "tenant-1"
        assert record.chunk_count == 1
        assert database.status_history == [DocumentStatus.PROCESSING, DocumentStatus.COMPLETE]
        stored = await vector_db.get_chunk("bot-1", KEY, 0)
        assert stored["content"] == text

    @pytest.mark.asyncio
    async def test_rerun_overwrites_instead_of_duplicating(self, make_pipeline, vector_db):
        pipeline = make_pipeline(FakeBlobStore({KEY: THREE_PARAGRAPHS.encode()}), max_chunk_chars=60)

        await pipeline.ingest(_ref())
        first = await vector_db.get_chunk("bot-1", KEY, 2)
        await pipeline.ingest(_ref())

        assert await vector_db.count_document_chunks("bot-1", "doc-1") == 3
        second = await vector_db.get_chunk("bot-1", KEY, 2)
        assert second["content"] == first["content"]

    @pytest.mark.asyncio
    async def test_shrinking_document_drops_stale_chunks(self, make_pipeline, vector_db, database):
        blob_store = FakeBlobStore({KEY: THREE_PARAGRAPHS.encode()})
        pipeline = make_pipeline(blob_store, max_chunk_chars=60)
        await pipeline.ingest(_ref())

        blob_store.objects[KEY] = b"Shipping takes two business days."
        await pipeline.ingest(_ref())

        assert await vector_db.count_document_chunks("bot-1", "doc-1") == 1
        assert (await database.get_document("bot-1", "doc-1")).chunk_count == 1

    @pytest.mark.asyncio
    async def test_empty_document_completes_without_index(self, make_pipeline, vector_db, database):
        pipeline = make_pipeline(FakeBlobStore({KEY: b"  \n\n \n"}))

        result = await pipeline.ingest(_ref())

        assert result.status == DocumentStatus.COMPLETE
        assert result.chunk_count == 0
        assert not await vector_db.index_exists("bot-1")

    @pytest.mark.asyncio
    async def test_process_event(self, make_pipeline, vector_db):
        pipeline = make_pipeline(FakeBlobStore({KEY: b"Support hours are nine to five."}))
        event = StorageObjectEvent(event_name="ObjectCreated:Put", key=KEY, content_type="text/plain")

        result = await pipeline.process_event(event)

        assert result.status == DocumentStatus.COMPLETE
        assert await vector_db.count_document_chunks("bot-1", "doc-1") == 1


class TestEventFiltering:
    @pytest.mark.asyncio
    async def test_removal_events_are_ignored(self, make_pipeline):
        blob_store = FakeBlobStore({KEY: b"text"})
        pipeline = make_pipeline(blob_store)

        assert await pipeline.process_event(
            StorageObjectEvent(event_name="ObjectRemoved:Delete", key=KEY)) is None
        assert blob_store.reads == []

    @pytest.mark.asyncio
    async def test_non_chatbot_keys_are_ignored(self, make_pipeline, database):
        pipeline = make_pipeline(FakeBlobStore({"exports/report.txt": b"text"}))

        assert await pipeline.process_event(StorageObjectEvent(key="exports/report.txt")) is None
        assert database.documents == {}

    @pytest.mark.asyncio
    async def test_legacy_key_resolves_tenant_from_chatbot(self, make_pipeline, database):
        key = "chatbots/bot-1/context/doc-9/notes.txt"
        pipeline = make_pipeline(FakeBlobStore({key: b"Widget price list."}))

        result = await pipeline.ingest(_ref(key))

        assert result.status == DocumentStatus.COMPLETE
        assert (await database.get_document("bot-1", "doc-9")).tenant_id == "tenant-1"

    @pytest.mark.asyncio
    async def test_unknown_chatbot_is_skipped(self, make_pipeline, database):
        key = "chatbots/ghost/doc-1/a.txt"
        blob_store = FakeBlobStore({key: b"text"})
        pipeline = make_pipeline(blob_store)

        assert await pipeline.ingest(_ref(key)) is None
        assert database.documents == {}
        assert blob_store.reads == []


class TestDownload:
    @pytest.mark.asyncio
    async def test_not_yet_readable_object_is_retried(self, make_pipeline):
        blob_store = FakeBlobStore({KEY: b"Refund policy."}, not_found_times=2)
        pipeline = make_pipeline(blob_store, download_attempts=3)

        result = await pipeline.ingest(_ref())

        assert result.status == DocumentStatus.COMPLETE
        assert len(blob_store.reads) == 3

    @pytest.mark.asyncio
    async def test_missing_object_fails_after_retries(self, make_pipeline, database):
        blob_store = FakeBlobStore({}, not_found_times=10)
        pipeline = make_pipeline(blob_store, download_attempts=3)

        result = await pipeline.ingest(_ref())

        assert result.status == DocumentStatus.FAILED
        assert result.stage == IngestionStage.DOWNLOADING
        assert len(blob_store.reads) == 3
        record = await database.get_document("bot-1", "doc-1")
        assert record.error.startswith("downloading:")

    @pytest.mark.asyncio
    async def test_other_read_errors_are_not_retried(self, make_pipeline):
        blob_store = FakeBlobStore({KEY: b"x"}, error=BlobStoreError("AccessDenied"))
        pipeline = make_pipeline(blob_store, download_attempts=3)

        result = await pipeline.ingest(_ref())

        assert result.status == DocumentStatus.FAILED
        assert len(blob_store.reads) == 1


class TestFailures:
    @pytest.mark.asyncio
    async def test_corrupt_pdf_fails_without_indexing(self, make_pipeline, database, vector_db):
        key = "tenants/tenant-1/chatbots/bot-1/documents/doc-2/manual.pdf"
        pipeline = make_pipeline(FakeBlobStore({key: b"%PDF-garbage"}))

        result = await pipeline.ingest(_ref(key), content_type="application/pdf")

        assert result.status == DocumentStatus.FAILED
        assert result.stage == IngestionStage.EXTRACTING
        record = await database.get_document("bot-1", "doc-2")
        assert record.status == DocumentStatus.FAILED
        assert record.chunk_count == 0
        assert not await vector_db.index_exists("bot-1")

    @pytest.mark.asyncio
    async def test_unsupported_format_fails(self, make_pipeline):
        key = "tenants/tenant-1/chatbots/bot-1/documents/doc-3/logo.png"
        pipeline = make_pipeline(FakeBlobStore({key: b"\x89PNG"}))

        result = await pipeline.ingest(_ref(key), content_type="image/png")

        assert result.status == DocumentStatus.FAILED
        assert result.error.startswith("extracting:")

    @pytest.mark.asyncio
    async def test_failed_chunk_rolls_back_document(self, make_pipeline, database, vector_db):
        embedder = FakeEmbeddingService(fail_containing="warranty")
        pipeline = make_pipeline(
            FakeBlobStore({KEY: THREE_PARAGRAPHS.encode()}), embedder=embedder,
            max_chunk_chars=60, chunk_attempts=3,
        )

        result = await pipeline.ingest(_ref())

        assert result.status == DocumentStatus.FAILED
        assert result.stage == IngestionStage.INDEXING
        assert await vector_db.count_document_chunks("bot-1", "doc-1") == 0
        assert embedder.calls.count("The widget warranty lasts two years.") == 3
        assert (await database.get_document("bot-1", "doc-1")).status == DocumentStatus.FAILED

    @pytest.mark.asyncio
    async def test_transient_chunk_failure_recovers(self, make_pipeline, vector_db):
        embedder = FakeEmbeddingService(fail_containing="warranty", failures_per_text=1)
        pipeline = make_pipeline(
            FakeBlobStore({KEY: THREE_PARAGRAPHS.encode()}), embedder=embedder,
            max_chunk_chars=60, chunk_attempts=3,
        )

        result = await pipeline.ingest(_ref())

        assert result.status == DocumentStatus.COMPLETE
        assert await vector_db.count_document_chunks("bot-1", "doc-1") == 3

    @pytest.mark.asyncio
    async def test_dimension_mismatch_fails_document(self, make_pipeline, vector_db):
        await vector_db.ensure_index("bot-1", 4)
        pipeline = make_pipeline(FakeBlobStore({KEY: b"Shipping info."}))

        result = await pipeline.ingest(_ref())

        assert result.status == DocumentStatus.FAILED
        assert "dimension" in result.error

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_recorded_and_raised(self, make_pipeline, database):
        class BrokenEmbedder(FakeEmbeddingService):
            async def embed(self, text):
                raise RuntimeError("bug")

        pipeline = make_pipeline(FakeBlobStore({KEY: b"Shipping info."}), embedder=BrokenEmbedder())

        with pytest.raises(RuntimeError):
            await pipeline.ingest(_ref())
        assert (await database.get_document("bot-1", "doc-1")).status == DocumentStatus.FAILED


class TestRemoveDocument:
    @pytest.mark.asyncio
    async def test_removes_chunks_blob_and_record(self, make_pipeline, database, vector_db):
        blob_store = FakeBlobStore({KEY: THREE_PARAGRAPHS.encode()})
        pipeline = make_pipeline(blob_store, max_chunk_chars=60)
        await pipeline.ingest(_ref())
        record = await database.get_document("bot-1", "doc-1")

        await pipeline.remove_document(record)

        assert await vector_db.count_document_chunks("bot-1", "doc-1") == 0
        assert KEY not in blob_store.objects
        assert await database.get_document("bot-1", "doc-1") is None

    @pytest.mark.asyncio
    async def test_missing_blob_does_not_block_removal(self, make_pipeline, database):
        blob_store = FakeBlobStore({KEY: b"Hours."})
        pipeline = make_pipeline(blob_store)
        await pipeline.ingest(_ref())
        record = await database.get_document("bot-1", "doc-1")
        del blob_store.objects[KEY]

        await pipeline.remove_document(record)

        assert await database.get_document("bot-1", "doc-1") is None

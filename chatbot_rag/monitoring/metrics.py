"""Prometheus metrics for monitoring."""

from prometheus_client import Counter, Histogram

chat_requests_total = Counter("rag_chat_requests_total",
                              "Total number of chat turns processed")
chat_fallbacks_total = Counter(
    "rag_chat_fallbacks_total", "Chat turns answered with the fallback message")
chat_degraded_retrievals_total = Counter(
    "rag_chat_degraded_retrievals_total", "Chat turns answered without context after a retrieval failure")
chat_latency_seconds = Histogram(
    "rag_chat_latency_seconds", "Chat turn latency in seconds", buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0])

documents_ingested_total = Counter("rag_documents_ingested_total",
                                   "Documents indexed successfully")
document_failures_total = Counter(
    "rag_document_failures_total", "Documents whose ingestion failed")
chunks_indexed_total = Counter(
    "rag_chunks_indexed_total", "Chunks embedded and written to an index")
ingestion_duration_seconds = Histogram(
    "rag_ingestion_duration_seconds", "Document ingestion duration", buckets=[0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 300.0])

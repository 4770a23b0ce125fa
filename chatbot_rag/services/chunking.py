"""Document chunking service."""

import re
from typing import List, Optional

from chatbot_rag.core.config import settings
from chatbot_rag.models.document import Chunk

PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n\s*")
LINE_ENDINGS = re.compile(r"\r\n?")
SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")

PARAGRAPH_JOINER = "\n\n"
LINE_JOINER = "\n"
SENTENCE_JOINER = " "


class ChunkingService:
    """Splits extracted text into size-bounded chunks on paragraph, line and sentence boundaries."""

    def __init__(
        self, max_chunk_chars: Optional[int] = None, overlap_chars: Optional[int] = None
    ) -> None:
        """
        Initialize the chunking service.

        Args:
            max_chunk_chars: Character budget per chunk.
            overlap_chars: Characters carried over from the previous chunk.
        """
        self.max_chunk_chars = max_chunk_chars or settings.max_chunk_chars
        self.overlap_chars = (
            settings.chunk_overlap if overlap_chars is None else overlap_chars
        )

    def chunk(
        self,
        text: str,
        max_chunk_chars: Optional[int] = None,
        overlap_chars: Optional[int] = None,
    ) -> List[str]:
        """
        Split text into ordered chunks.

        Paragraphs are accumulated until the next one would overflow the budget.
        A paragraph that alone overflows it is split into lines, and a line that
        alone overflows it into sentences, packed the same way. A single sentence
        longer than the budget is emitted whole. CRLF and CR line endings are
        read as LF.

        Args:
            text: Extracted document text.
            max_chunk_chars: Character budget per chunk.
            overlap_chars: Characters carried over from the previous chunk.

        Returns:
            List of non-empty chunk strings.
        """
        limit = max_chunk_chars or self.max_chunk_chars
        overlap = self.overlap_chars if overlap_chars is None else overlap_chars
        if limit <= 0:
            raise ValueError("max_chunk_chars must be positive")

        chunks: List[str] = []
        buffer = ""
        # Characters of the buffer that were carried over, not new content
        carried = 0

        def flush() -> None:
            nonlocal buffer, carried
            if len(buffer) > carried and buffer.strip():
                chunks.append(buffer.strip())
            buffer = self._overlap_tail(chunks[-1], overlap) if overlap and chunks else ""
            carried = len(buffer)

        def add(piece: str, joiner: str) -> None:
            nonlocal buffer, carried
            candidate = f"{buffer}{joiner}{piece}" if buffer else piece
            if len(candidate) <= limit:
                buffer = candidate
                return
            flush()
            candidate = f"{buffer}{joiner}{piece}" if buffer else piece
            if len(candidate) <= limit:
                buffer = candidate
            else:
                buffer, carried = piece, 0

        text = LINE_ENDINGS.sub(LINE_JOINER, text)
        for paragraph in PARAGRAPH_BREAK.split(text):
            paragraph = paragraph.strip()
            if not paragraph:
                continue

            if len(paragraph) <= limit:
                add(paragraph, PARAGRAPH_JOINER)
                continue

            joiner = PARAGRAPH_JOINER
            for line in paragraph.split(LINE_JOINER):
                line = line.strip()
                if not line:
                    continue

                if len(line) <= limit:
                    add(line, joiner)
                    joiner = LINE_JOINER
                    continue

                for sentence in SENTENCE_BREAK.split(line):
                    sentence = sentence.strip()
                    if not sentence:
                        continue
                    add(sentence, joiner)
                    joiner = SENTENCE_JOINER
                joiner = LINE_JOINER

        flush()
        return chunks

    def _overlap_tail(self, chunk: str, overlap: int) -> str:
        """Return the last ``overlap`` characters of a chunk, starting on a word boundary."""
        if len(chunk) <= overlap:
            return chunk
        tail = chunk[-overlap:]
        space = tail.find(" ")
        if 0 <= space < len(tail) - 1:
            tail = tail[space + 1:]
        return tail.strip()

    def build_chunks(
        self,
        text: str,
        document_id: str,
        chatbot_id: str,
        source_ref: str,
        tenant_id: Optional[str] = None,
    ) -> List[Chunk]:
        """
        Chunk a document into sequenced chunk objects.

        Args:
            text: Extracted document text.
            document_id: ID of the source document.
            chatbot_id: Owning chatbot.
            source_ref: Storage key of the source document.
            tenant_id: Owning tenant.

        Returns:
            Chunks in strictly increasing sequence order.
        """
        return [
            Chunk(
                document_id=document_id,
                chatbot_id=chatbot_id,
                tenant_id=tenant_id,
                chunk_index=idx,
                content=content,
                source_ref=source_ref,
            )
            for idx, content in enumerate(self.chunk(text))
        ]

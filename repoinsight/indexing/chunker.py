"""Text chunking for repository documents."""

from repoinsight.indexing.models import ChunkerConfig, TextChunk


class CharacterChunker:
    """Chunk text by character count with overlap.

    Splits at character boundaries, preferring the last whitespace inside
    the window.
    """

    def __init__(self, config: ChunkerConfig | None = None) -> None:
        """Initialize chunker with configuration.

        Args:
            config: Chunking configuration. Uses defaults if not provided.
        """
        self.config = config or ChunkerConfig()

    def chunk(self, text: str) -> list[TextChunk]:
        """Split text into overlapping chunks.

        Args:
            text: Text to chunk.

        Returns:
            Non-empty chunks in order.
        """
        if not text.strip():
            return []

        chunks: list[TextChunk] = []
        start = 0

        while start < len(text):
            end = min(start + self.config.chunk_size, len(text))

            # Try to break at whitespace if not at end of text
            if end < len(text):
                last_space = max(text.rfind(" ", start, end), text.rfind("\n", start, end))
                if last_space > start + self.config.min_chunk_size:
                    end = last_space + 1

            content = text[start:end].strip()
            if content:
                chunks.append(
                    TextChunk(content=content, index=len(chunks), start_char=start, end_char=end)
                )

            if end >= len(text):
                break
            # Always advance, even when the overlap would step back past start
            start = max(end - self.config.chunk_overlap, start + 1)

        return chunks

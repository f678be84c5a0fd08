from typing import List, Optional
from docsearch.exceptions import ConfigurationError

class TextChunker:
    """
    Splits extracted text into bounded, word-boundary-respecting chunks.
    - Walks the text in windows of max_chunk_size characters.
    - Cuts at the last whitespace inside a window instead of mid-word.
    - A window with no whitespace is cut at the raw boundary.
    - Chunks are stripped; whitespace-only windows produce nothing.
    """

    def __init__(self, max_chunk_size: Optional[int] = None):
        if max_chunk_size is None:
            from docsearch.config.settings import settings
            max_chunk_size = settings.chunking.chunk_size
        if max_chunk_size <= 0:
            raise ConfigurationError(f"max_chunk_size must be positive, got {max_chunk_size}")
        self.max_chunk_size = max_chunk_size

    def split(self, text: Optional[str]) -> List[str]:
        chunks = []
        if not text:
            return chunks

        length = len(text)
        start = 0
        while start < length:
            end = min(start + self.max_chunk_size, length)
            if end < length:
                end = self._find_cut(text, start, end)

            chunk = text[start:end].strip()
            if chunk:
                chunks.append(chunk)
            start = end

        return chunks

    def _find_cut(self, text: str, start: int, end: int) -> int:
        """Nearest whitespace at or before the window edge, strictly after start."""
        for pos in range(end, start, -1):
            if text[pos].isspace():
                return pos
        return end


def split_into_chunks(text: Optional[str], max_chunk_size: int) -> List[str]:
    return TextChunker(max_chunk_size).split(text)

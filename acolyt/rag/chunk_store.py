"""
Knowledge Store: the note log and the chunk-embedding file.

The note log is the append-only source of truth. The chunk-embedding file is a
JSON list of ``{"content", "embedding"}`` records, wholly rewritten on every
refresh. The in-memory chunk set is an immutable tuple that is swapped by a
single reference assignment, so readers always see a complete snapshot
without taking a lock.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from .. import config
from ..errors import StoreUnavailable
from .chunker import Note, preview_block, split_blocks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KnowledgeChunk:
    content: str
    embedding: Tuple[float, ...]

    @property
    def dimensions(self) -> int:
        return len(self.embedding)

    def to_record(self) -> dict:
        return {"content": self.content, "embedding": list(self.embedding)}


def _chunk_from_record(record: Any, index: int) -> KnowledgeChunk:
    if not isinstance(record, dict):
        raise StoreUnavailable(f"Record {index} is not an object")
    content = record.get("content")
    embedding = record.get("embedding")
    if not isinstance(content, str):
        raise StoreUnavailable(f"Record {index} has no text content")
    if not isinstance(embedding, list) or not embedding:
        raise StoreUnavailable(f"Record {index} has no embedding")
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in embedding):
        raise StoreUnavailable(f"Record {index} has a non-numeric embedding")
    return KnowledgeChunk(content=content, embedding=tuple(float(v) for v in embedding))


def _check_dimensions(chunks: Sequence[KnowledgeChunk]) -> None:
    dims = {c.dimensions for c in chunks}
    if len(dims) > 1:
        raise ValueError(f"Chunks have mixed embedding dimensions: {sorted(dims)}")


def _atomic_write(path: str, text: str) -> None:
    """Write text to path through a temp file in the same directory and os.replace."""
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-", suffix=".json")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


class NoteLog:
    """Append-only UTF-8 note log, entries separated by blank lines."""

    def __init__(self, path: str = None):
        self.path = path or config.NOTES_PATH

    def append(self, author: str, body: str, timestamp: datetime = None) -> Note:
        """Append a note to the log. The loaded chunk set is left untouched."""
        note = Note(
            author=author,
            timestamp=timestamp or datetime.now(timezone.utc),
            body=body.strip(),
        )
        os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(note.render())
        logger.info(f"[NOTES] Captured training note from {author} ({len(note.body)} chars)")
        return note

    def read_text(self) -> str:
        """Whole log content, or an empty string when nothing was written yet."""
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return ""

    def latest_previews(self, count: int = 3) -> List[str]:
        """Previews of the most recent blocks, oldest first."""
        blocks = split_blocks(self.read_text())
        if count <= 0:
            return []
        return [preview_block(b) for b in blocks[-count:]]


class KnowledgeStore:
    """Holds the current chunk set and persists it to the chunk-embedding file."""

    def __init__(self, embeddings_path: str = None, notes: Optional[NoteLog] = None):
        self.embeddings_path = embeddings_path or config.EMBEDDINGS_PATH
        self.notes = notes or NoteLog()
        self._chunks: Tuple[KnowledgeChunk, ...] = ()
        self.last_update: Optional[datetime] = None

    def snapshot(self) -> Tuple[KnowledgeChunk, ...]:
        """Current chunk set. The tuple is never mutated, only replaced."""
        return self._chunks

    @property
    def count(self) -> int:
        return len(self._chunks)

    def load(self) -> Tuple[KnowledgeChunk, ...]:
        """Read the chunk-embedding file.

        Raises:
            StoreUnavailable: If the file is missing, unreadable or malformed.
        """
        try:
            with open(self.embeddings_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError as e:
            raise StoreUnavailable(f"Embeddings file not found: {self.embeddings_path}") from e
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StoreUnavailable(f"Embeddings file unreadable: {e}") from e

        if not isinstance(raw, list):
            raise StoreUnavailable("Embeddings file must hold a list of records")

        chunks = tuple(_chunk_from_record(r, i) for i, r in enumerate(raw))
        try:
            _check_dimensions(chunks)
        except ValueError as e:
            raise StoreUnavailable(str(e)) from e
        return chunks

    def reload(self) -> int:
        """Load the persisted chunks and install them, degrading to an empty set."""
        try:
            chunks = self.load()
        except StoreUnavailable as e:
            logger.warning(f"[CHUNK_STORE] Knowledge store unavailable, serving without context: {e}")
            chunks = ()
        self.replace(chunks)
        return len(chunks)

    def replace(self, chunks: Iterable[KnowledgeChunk]) -> None:
        """Atomically swap the in-memory chunk set."""
        new_chunks = tuple(chunks)
        _check_dimensions(new_chunks)
        self._chunks = new_chunks
        self.last_update = datetime.now(timezone.utc)
        logger.info(f"[CHUNK_STORE] Installed {len(new_chunks)} chunks")

    def save(self, chunks: Sequence[KnowledgeChunk]) -> None:
        """Rewrite the chunk-embedding file as a whole."""
        _check_dimensions(chunks)
        payload = json.dumps([c.to_record() for c in chunks], ensure_ascii=False, indent=2)
        _atomic_write(self.embeddings_path, payload)
        logger.info(f"[CHUNK_STORE] Wrote {len(chunks)} chunks to {self.embeddings_path}")

    def append(self, author: str, body: str, timestamp: datetime = None) -> Note:
        """Append a note to the log; reconciled into chunks by the next refresh."""
        return self.notes.append(author, body, timestamp=timestamp)

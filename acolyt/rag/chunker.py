"""
Chunker module for splitting the training note log into retrievable chunks.

The note log is plain UTF-8 text where entries are separated by blank lines.
Every block between blank lines becomes one chunk, so a note whose body holds
paragraphs contributes one chunk per paragraph.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

logger = logging.getLogger(__name__)

BLOCK_SEPARATOR = re.compile(r"\n{2,}")
NOTE_HEADER = re.compile(r"^# From (?P<author>.+) \((?P<timestamp>[^)]+)\)$")

PREVIEW_CHARS = 80


@dataclass(frozen=True)
class Note:
    """A single entry of the note log."""
    author: str
    timestamp: datetime
    body: str

    def render(self) -> str:
        """Render the note exactly as it is appended to the log."""
        return f"# From {self.author} ({self.timestamp.isoformat()})\n{self.body}\n\n"


def split_blocks(text: str) -> List[str]:
    """Split raw text on blank-line boundaries, trimming and dropping empty blocks."""
    return [block.strip() for block in BLOCK_SEPARATOR.split(text) if block.strip()]


def chunk_notes(text: str) -> List[str]:
    """Turn the raw note log into the list of chunk contents to embed.

    Args:
        text: Whole content of the note log.

    Returns:
        Chunk contents in log order.
    """
    chunks = split_blocks(text)
    logger.info(f"[CHUNKER] Created {len(chunks)} chunks from {len(text):,} chars of notes")
    return chunks


def parse_note(block: str) -> Optional[Note]:
    """Parse a block that starts with a note header. Returns None for other blocks."""
    header, _, body = block.partition("\n")
    match = NOTE_HEADER.match(header.strip())
    if not match:
        return None
    try:
        timestamp = datetime.fromisoformat(match.group("timestamp"))
    except ValueError:
        logger.debug(f"[CHUNKER] Unparseable note timestamp: {match.group('timestamp')!r}")
        return None
    return Note(author=match.group("author"), timestamp=timestamp, body=body.strip())


def preview_block(block: str, max_chars: int = PREVIEW_CHARS) -> str:
    """Short preview of a block: the first body line after a note header."""
    lines = block.split("\n")
    if len(lines) > 1 and NOTE_HEADER.match(lines[0].strip()):
        line = lines[1]
    elif lines and not NOTE_HEADER.match(lines[0].strip()):
        line = lines[0]
    else:
        line = ""
    line = line.strip()[:max_chars]
    return f"{line}..." if line else "(empty)"

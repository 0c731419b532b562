"""
Tests for the note log, the chunker and the chunk-embedding file
"""
import json
import struct
from datetime import datetime, timezone

import pytest

from acolyt.errors import StoreUnavailable
from acolyt.rag.chunk_store import KnowledgeChunk, KnowledgeStore
from acolyt.rag.chunker import chunk_notes, parse_note, preview_block


def test_chunk_notes_splits_on_blank_lines():
    text = "first block\nsecond line\n\n\n  second block  \n\n\n\nthird\n\n"
    assert chunk_notes(text) == ["first block\nsecond line", "second block", "third"]
    assert chunk_notes("") == []


def test_load_missing_file_is_unavailable(store):
    with pytest.raises(StoreUnavailable):
        store.load()


def test_reload_degrades_to_empty(store, tmp_path):
    with open(store.embeddings_path, "w", encoding="utf-8") as f:
        f.write("{not json")
    assert store.reload() == 0
    assert store.snapshot() == ()


@pytest.mark.parametrize("payload", [
    {"content": "x", "embedding": [1.0]},
    [{"content": "x"}],
    [{"content": 3, "embedding": [1.0]}],
    [{"content": "x", "embedding": ["a"]}],
    [{"content": "a", "embedding": [1.0, 0.0]}, {"content": "b", "embedding": [1.0]}],
])
def test_malformed_records_are_unavailable(store, payload):
    with open(store.embeddings_path, "w", encoding="utf-8") as f:
        json.dump(payload, f)
    with pytest.raises(StoreUnavailable):
        store.load()


def test_persisted_vectors_reload_bit_for_bit(store):
    values = (0.1, 1 / 3, 1e-300, -2.5e10, 0.30000000000000004, 5e-324)
    chunks = [
        KnowledgeChunk("precision", values),
        KnowledgeChunk("ints become floats", (1.0, 0.0, -1.0, 2.0, 3.0, 4.0)),
    ]
    store.save(chunks)

    loaded = store.load()

    assert loaded == tuple(chunks)
    assert struct.pack("6d", *loaded[0].embedding) == struct.pack("6d", *values)


def test_save_rewrites_whole_file(store):
    store.save([KnowledgeChunk("a", (1.0,)), KnowledgeChunk("b", (2.0,))])
    store.save([KnowledgeChunk("c", (3.0,))])
    assert [c.content for c in store.load()] == ["c"]


def test_replace_rejects_mixed_dimensions(store):
    store.replace([KnowledgeChunk("a", (1.0, 0.0))])
    with pytest.raises(ValueError):
        store.replace([KnowledgeChunk("a", (1.0, 0.0)), KnowledgeChunk("b", (1.0,))])
    assert [c.content for c in store.snapshot()] == ["a"]


def test_append_note_leaves_loaded_chunks_alone(store):
    store.replace([KnowledgeChunk("existing", (1.0, 0.0))])
    ts = datetime(2025, 5, 10, 12, 30, tzinfo=timezone.utc)

    note = store.append("alice", "Staking opens on Friday.\n", timestamp=ts)

    assert store.count == 1
    assert note.body == "Staking opens on Friday."
    assert store.notes.read_text() == (
        "# From alice (2025-05-10T12:30:00+00:00)\nStaking opens on Friday.\n\n"
    )


def test_notes_round_trip_through_parser(store):
    ts = datetime(2025, 5, 10, 12, 30, tzinfo=timezone.utc)
    store.append("bob", "Tiers are ranked weekly.", timestamp=ts)

    [block] = chunk_notes(store.notes.read_text())
    note = parse_note(block)

    assert note.author == "bob"
    assert note.timestamp == ts
    assert note.body == "Tiers are ranked weekly."
    assert parse_note("plain paragraph") is None


def test_latest_previews(store):
    for i in range(5):
        store.append("carol", f"note number {i}")

    assert store.notes.latest_previews(3) == [
        "note number 2...",
        "note number 3...",
        "note number 4...",
    ]


def test_preview_block_truncates_and_handles_empty_body():
    assert preview_block("# From dan (2025-01-01T00:00:00)\n" + "x" * 100) == "x" * 80 + "..."
    assert preview_block("# From dan (2025-01-01T00:00:00)") == "(empty)"
    assert preview_block("just a paragraph") == "just a paragraph..."


def test_latest_previews_without_log(store):
    assert store.notes.latest_previews() == []

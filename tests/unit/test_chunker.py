from chat_agent.config import ChunkingConfig
from chat_agent.documents.chunker import AdaptiveChunker, head_overlap, tail_overlap
from chat_agent.types import ChunkKind


def _paragraph(seed: int, sentences: int = 8) -> str:
    return " ".join(
        f"Paragraph {seed} sentence {i} explains retention rules for customer records." for i in range(sentences)
    )


def _shared_prefix(previous: str, current: str, width: int = 40) -> bool:
    return current[:width] in previous


def test_short_text_is_a_single_section_chunk() -> None:
    chunks = AdaptiveChunker().chunk("A short memo.\n\nWith two paragraphs.")

    assert len(chunks) == 1
    assert chunks[0].kind is ChunkKind.SECTION
    assert chunks[0].index == 0


def test_paragraph_packing_bounds_and_overlap() -> None:
    config = ChunkingConfig(max_chunk_chars=2000, overlap_ratio=0.15, min_chunk_chars=500)
    text = "\n\n".join(_paragraph(i) for i in range(12))

    chunks = AdaptiveChunker(config).chunk(text)

    assert len(chunks) >= 2
    assert all(chunk.kind is ChunkKind.PARAGRAPH for chunk in chunks)
    assert [chunk.index for chunk in chunks] == list(range(len(chunks)))
    for previous, current in zip(chunks, chunks[1:]):
        assert _shared_prefix(previous.content, current.content)


def test_long_unbroken_text_uses_sliding_windows() -> None:
    config = ChunkingConfig(max_chunk_chars=1000, overlap_ratio=0.2, min_chunk_chars=300)
    text = "x" * 3500

    chunks = AdaptiveChunker(config).chunk(text)

    assert all(chunk.kind is ChunkKind.HYBRID for chunk in chunks)
    assert all(len(chunk.content) <= 1000 for chunk in chunks)
    stride = 1000 - config.overlap_chars
    for previous, current in zip(chunks, chunks[1:]):
        assert previous.content[stride:] == current.content[: len(previous.content) - stride]
    covered = stride * (len(chunks) - 1) + len(chunks[-1].content)
    assert covered == len(text)


def test_analysis_type_adjusts_window_size() -> None:
    text = "y" * 9000

    general = AdaptiveChunker().chunk(text)
    summary = AdaptiveChunker().chunk(text, "summary")
    extraction = AdaptiveChunker().chunk(text, "extraction")

    assert len(summary) == 1
    assert len(general) == 2
    assert all(len(chunk.content) <= 6000 for chunk in extraction)


def test_overlap_helpers_cut_at_sentence_boundaries() -> None:
    text = "First sentence here. Second sentence follows. Third one ends."

    assert head_overlap(text, 30) == "First sentence here."
    assert tail_overlap(text, 30) == "Third one ends."
    assert head_overlap(text, 0) == ""


def test_oversized_paragraph_is_split_before_packing() -> None:
    config = ChunkingConfig(max_chunk_chars=2000, overlap_ratio=0.15, min_chunk_chars=500)
    paragraphs = [_paragraph(i) for i in range(10)]
    paragraphs.insert(5, "Clause text repeats in this appendix. " * 240)
    text = "\n\n".join(paragraphs)

    chunks = AdaptiveChunker(config).chunk(text)

    assert all(chunk.kind is ChunkKind.PARAGRAPH for chunk in chunks)
    assert max(len(chunk.content) for chunk in chunks) <= config.max_chunk_chars + config.overlap_chars + 2
    assert sum("Clause text repeats" in chunk.content for chunk in chunks) >= 4

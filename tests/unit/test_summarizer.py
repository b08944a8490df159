import pytest

from chat_agent.documents.summarizer import (
    ChunkSummarizer,
    build_chunk_prompt,
    extractive_summary,
    output_token_budget,
)
from chat_agent.types import Chunk, ChunkKind, ChunkSummary, DocumentMetadata, Generation, ProcessingStrategy


class ScriptedModel:
    model_name = "scripted"

    def __init__(self, *outputs: object) -> None:
        self.outputs = list(outputs)
        self.calls: list[dict] = []

    async def generate(self, prompt, *, system=None, tools=None, max_output_tokens=None, temperature=None):
        self.calls.append({"prompt": prompt, "max_output_tokens": max_output_tokens, "temperature": temperature})
        item = self.outputs.pop(0) if len(self.outputs) > 1 else self.outputs[0]
        if isinstance(item, BaseException):
            raise item
        return Generation(text=str(item), model=self.model_name)


def _chunks(count: int, size: int = 400) -> list[Chunk]:
    return [Chunk(content=f"Section {i}. " + "word " * (size // 5), index=i, kind=ChunkKind.HYBRID) for i in range(count)]


def test_output_budget_scales_with_length_and_chunk_count() -> None:
    assert output_token_budget(8000, 1) == 720
    assert output_token_budget(20000, 1) == 1080
    assert output_token_budget(4000, 10) == 200


def test_extractive_summary_keeps_short_content_verbatim() -> None:
    assert extractive_summary("Tiny note.") == "Tiny note."


def test_extractive_summary_is_bounded_with_note() -> None:
    content = "This sentence carries some meaning. " * 100

    summary = extractive_summary(content)

    assert summary.startswith("This sentence carries some meaning.")
    assert "extractive summary" in summary
    assert len(summary.split("\n\nNote:")[0]) <= 1000


def test_chunk_prompt_mentions_position_and_questions() -> None:
    chunk = Chunk(content="body", index=1, kind=ChunkKind.PARAGRAPH)

    prompt = build_chunk_prompt(
        chunk, total_chunks=3, file_name="a.pdf", analysis_type="legal", questions=["Who signs?"]
    )

    assert prompt.startswith('Analyzing paragraph 2/3 from "a.pdf"')
    assert "Legal analysis" in prompt
    assert "Who signs?" in prompt
    assert prompt.endswith("Content:\nbody")


@pytest.mark.asyncio
async def test_model_failure_falls_back_to_extractive() -> None:
    model = ScriptedModel(ValueError("invalid request"))
    summarizer = ChunkSummarizer(model)

    results = await summarizer.summarize_chunks(_chunks(1), file_name="a.txt", analysis_type="general")

    assert len(model.calls) == 1
    assert results[0].summary.startswith("Section 0.")


@pytest.mark.asyncio
async def test_small_combined_summaries_are_returned_directly() -> None:
    summarizer = ChunkSummarizer(ScriptedModel("unused"))
    summaries = [ChunkSummary(index=1, summary="second", tokens=2), ChunkSummary(index=0, summary="first", tokens=2)]

    summary, strategy = await summarizer.combine(
        summaries, file_name="r.csv", analysis_type="general", metadata=DocumentMetadata(file_type=".csv")
    )

    assert strategy is ProcessingStrategy.COMBINED_DIRECT
    assert summary.startswith('Analysis of "r.csv" (CSV)\n=')
    assert "Processed 2 sections" in summary
    assert summary.index("first") < summary.index("second")
    assert "first\n\n---\n\nsecond" in summary


@pytest.mark.asyncio
async def test_large_combined_summaries_get_a_meta_summary() -> None:
    model = ScriptedModel("unified overview")
    summarizer = ChunkSummarizer(model)
    summaries = [ChunkSummary(index=i, summary="s" * 2400, tokens=600) for i in range(2)]

    summary, strategy = await summarizer.combine(
        summaries, file_name="big.pdf", analysis_type="summary", metadata=DocumentMetadata(file_type=".pdf")
    )

    assert strategy is ProcessingStrategy.PROGRESSIVE_META
    assert summary == "unified overview"
    assert model.calls[0]["temperature"] == 0.2
    assert model.calls[0]["max_output_tokens"] == 720


@pytest.mark.asyncio
async def test_meta_summary_failure_keeps_combined_sections() -> None:
    summarizer = ChunkSummarizer(ScriptedModel(RuntimeError("boom")))
    summaries = [ChunkSummary(index=i, summary=f"part {i}", tokens=800) for i in range(2)]

    summary, strategy = await summarizer.combine(
        summaries, file_name="big.pdf", analysis_type="general", metadata=DocumentMetadata(file_type=".pdf")
    )

    assert strategy is ProcessingStrategy.COMBINED_DIRECT
    assert "part 0" in summary and "part 1" in summary

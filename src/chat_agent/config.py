"""Configuration models for the chat orchestration service."""

from __future__ import annotations

import os

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RetryPolicy(BaseModel):
    """Exponential backoff parameters for one call site. Delays are seconds."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=5, ge=1)
    initial_delay: float = Field(default=1.0, ge=0.0)
    max_delay: float = Field(default=30.0, ge=0.0)
    multiplier: float = Field(default=2.0, ge=1.0)
    jitter: bool = True


# Best-effort auxiliary calls.
FAST_POLICY = RetryPolicy(max_attempts=3, initial_delay=0.5, max_delay=5.0, multiplier=2.0)
STANDARD_POLICY = RetryPolicy(max_attempts=5, initial_delay=1.0, max_delay=30.0, multiplier=2.0)
# Upstream model provider: back off for an extended period when it reports overload.
PATIENT_POLICY = RetryPolicy(max_attempts=6, initial_delay=2.0, max_delay=60.0, multiplier=2.5)
AGGRESSIVE_POLICY = RetryPolicy(max_attempts=8, initial_delay=1.0, max_delay=120.0, multiplier=2.0)


class ChunkingConfig(BaseModel):
    """Configures semantic + sliding-window chunking behavior (sizes in characters)."""

    max_chunk_chars: int = Field(default=8000, ge=200)
    overlap_ratio: float = Field(default=0.15, ge=0.0, lt=0.5)
    min_chunk_chars: int = Field(default=1000, ge=1)
    semantic_paragraph_ratio: float = Field(default=0.8, gt=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "ChunkingConfig":
        if self.min_chunk_chars >= self.max_chunk_chars:
            raise ValueError("min_chunk_chars must be less than max_chunk_chars")
        return self

    @property
    def overlap_chars(self) -> int:
        return int(self.max_chunk_chars * self.overlap_ratio)

    def for_analysis(self, analysis_type: str) -> "ChunkingConfig":
        """Return the variant tuned for an analysis type.

        Extraction wants smaller chunks with more overlap so entities stay
        consistent across boundaries; summaries want larger chunks with less
        overlap to cut redundancy.
        """
        if analysis_type == "extraction":
            return self.model_copy(update={"max_chunk_chars": 6000, "overlap_ratio": 0.2})
        if analysis_type == "summary":
            return self.model_copy(update={"max_chunk_chars": 10000, "overlap_ratio": 0.1})
        return self


class CacheConfig(BaseModel):
    """TTL tiers for the prompt cache, in seconds."""

    static_ttl_seconds: float = Field(default=24 * 60 * 60, ge=0.0)
    temporal_ttl_seconds: float = Field(default=60 * 60, ge=0.0)
    dynamic_ttl_seconds: float = Field(default=5 * 60, ge=0.0)
    sweep_interval_seconds: float = Field(default=30 * 60, gt=0.0)
    static_categories: tuple[str, ...] = (
        "BASE_SYSTEM",
        "TOOL_GUIDELINES",
        "CONVERSATION_PATTERNS",
        "EXAMPLES",
    )
    temporal_categories: tuple[str, ...] = ("TEMPORAL_CONTEXT",)


class AnalysisConfig(BaseModel):
    """Configures the document analysis pipeline."""

    timeout_seconds: float = Field(default=20.0, gt=0.0)
    preview_chars: int = Field(default=5000, ge=100)
    min_document_bytes: int = Field(default=16, ge=0)
    # None keeps results for the process lifetime.
    result_ttl_seconds: float | None = Field(default=None, ge=0.0)
    combined_direct_token_limit: int = Field(default=1000, ge=1)
    meta_summary_max_tokens: int = Field(default=1200, ge=1)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)


class AgentConfig(BaseModel):
    """Configures request orchestration and degradation behavior."""

    model_name: str = "gpt-4o-mini"
    enable_mock_mode: bool = False
    overload_threshold: int = Field(default=3, ge=1)
    overload_window_seconds: float = Field(default=300.0, gt=0.0)
    max_tool_iterations: int = Field(default=6, ge=1)
    max_parallel_documents: int = Field(default=3, ge=1)
    document_excerpt_chars: int = Field(default=5000, ge=100)
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    target_latency_seconds: float = Field(default=8.0, gt=0.0)


class Settings(BaseModel):
    """Process-wide settings assembled from the environment."""

    openai_api_key: str | None = None
    agent: AgentConfig = Field(default_factory=AgentConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    @classmethod
    def from_env(cls) -> "Settings":
        agent = AgentConfig(
            model_name=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            enable_mock_mode=_env_flag("ENABLE_MOCK_MODE"),
        )
        analysis = AnalysisConfig(
            timeout_seconds=float(os.getenv("ANALYSIS_TIMEOUT_SECONDS", "20")),
        )
        cache = CacheConfig(
            sweep_interval_seconds=float(os.getenv("CACHE_SWEEP_INTERVAL_SECONDS", "1800")),
        )
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            agent=agent,
            analysis=analysis,
            cache=cache,
        )


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}

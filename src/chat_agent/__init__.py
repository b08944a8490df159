"""Chat agent orchestration package."""

from .config import AgentConfig, AnalysisConfig, CacheConfig, ChunkingConfig, Settings

__all__ = ["AgentConfig", "AnalysisConfig", "CacheConfig", "ChunkingConfig", "Settings"]

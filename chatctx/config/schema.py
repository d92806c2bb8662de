"""Configuration schema using Pydantic."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from chatctx.context.window import DEFAULT_SUMMARIZE_OVERSHOOT, ContextWindow
from chatctx.entities.accumulation import EntityMergeContext
from chatctx.entities.aggregate import AccumulatedEntities
from chatctx.entities.normalize import NormalizationConfig
from chatctx.entities.types import DEFAULT_CONFIDENCE, DEFAULT_CONFIDENCE_THRESHOLD
from chatctx.logging import setup_logging


class Base(BaseModel):
    """Accept both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NormalizationSettings(Base):
    trim: bool = True
    lowercase: bool = True
    strip_punctuation: bool = True

    def to_config(self) -> NormalizationConfig:
        return NormalizationConfig(
            trim=self.trim,
            lowercase=self.lowercase,
            strip_punctuation=self.strip_punctuation,
        )


class EntitySettings(Base):
    default_confidence: float = Field(default=DEFAULT_CONFIDENCE, ge=0.0, le=1.0)
    confidence_threshold: float = Field(default=DEFAULT_CONFIDENCE_THRESHOLD, ge=0.0, le=1.0)
    normalization: NormalizationSettings = Field(default_factory=NormalizationSettings)

    def merge_context(self, message_id: str) -> EntityMergeContext:
        return EntityMergeContext(
            message_id=message_id,
            default_confidence=self.default_confidence,
            confidence_threshold=self.confidence_threshold,
            normalization=self.normalization.to_config(),
        )

    def empty_aggregate(self) -> AccumulatedEntities:
        return AccumulatedEntities.create(normalization=self.normalization.to_config())


class ContextWindowSettings(Base):
    max_tokens: int = Field(default=16_000, ge=0)
    system_prompt_tokens: int = Field(default=800, ge=0)
    response_reserved_tokens: int = Field(default=3_500, ge=0)
    summary_tokens: int = Field(default=300, ge=0)
    summarize_overshoot: float = Field(default=DEFAULT_SUMMARIZE_OVERSHOOT, ge=1.0)

    @model_validator(mode="after")
    def _reserved_within_max(self) -> ContextWindowSettings:
        reserved = self.system_prompt_tokens + self.response_reserved_tokens + self.summary_tokens
        if reserved > self.max_tokens:
            raise ValueError("Reserved tokens exceed maximum token budget")
        return self

    def to_window(self) -> ContextWindow:
        return ContextWindow(
            max_tokens=self.max_tokens,
            system_prompt_tokens=self.system_prompt_tokens,
            response_reserved_tokens=self.response_reserved_tokens,
            summary_tokens=self.summary_tokens,
            summarize_overshoot=self.summarize_overshoot,
        )


class LoggingSettings(Base):
    json_output: bool = True
    level: str = "INFO"

    def apply(self) -> None:
        setup_logging(json_output=self.json_output, level=self.level)


class Config(Base):
    """Root configuration for chatctx."""

    entities: EntitySettings = Field(default_factory=EntitySettings)
    context_window: ContextWindowSettings = Field(default_factory=ContextWindowSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from studio_export.constants import (
    BOTTOM_DETECTION_TOLERANCE_PX,
    FINAL_COLLECTION_DELAY_MS,
    INITIAL_NUDGE_DELAY_MS,
    INITIAL_NUDGE_PX,
    MAX_SCROLL_ATTEMPTS,
    MIN_SCROLL_DISTANCE_PX,
    PRELOAD_ATTEMPTS,
    PROGRESS_LOG_EVERY,
    SCROLL_DELAY_MS,
    SCROLL_INCREMENT_PX,
    THOUGHT_EXPAND_DELAY_MS,
    THOUGHT_MIN_LENGTH,
    UPWARD_SCROLL_DELAY_MS,
)
from studio_export.core.models import RenderOptions


class ScrollTuning(BaseModel):
    """Delays and thresholds for driving a virtualized view."""

    model_config = ConfigDict(extra="allow")
    scroll_increment_px: float = Field(default=SCROLL_INCREMENT_PX, gt=0)
    scroll_delay_ms: int = Field(default=SCROLL_DELAY_MS, ge=0)
    initial_nudge_px: float = Field(default=INITIAL_NUDGE_PX, ge=0)
    initial_nudge_delay_ms: int = Field(default=INITIAL_NUDGE_DELAY_MS, ge=0)
    preload_attempts: int = Field(default=PRELOAD_ATTEMPTS, ge=0)
    upward_scroll_delay_ms: int = Field(default=UPWARD_SCROLL_DELAY_MS, ge=0)
    bottom_tolerance_px: float = Field(default=BOTTOM_DETECTION_TOLERANCE_PX, ge=0)
    min_scroll_distance_px: float = Field(default=MIN_SCROLL_DISTANCE_PX, ge=0)
    max_scroll_attempts: int = Field(default=MAX_SCROLL_ATTEMPTS, ge=1)
    final_collection_delay_ms: int = Field(default=FINAL_COLLECTION_DELAY_MS, ge=0)
    thought_expand_delay_ms: int = Field(default=THOUGHT_EXPAND_DELAY_MS, ge=0)
    thought_min_length: int = Field(default=THOUGHT_MIN_LENGTH, ge=0)
    progress_log_every: int = Field(default=PROGRESS_LOG_EVERY, ge=1)


class ExportConfig(BaseModel):
    """Persisted user options."""

    model_config = ConfigDict(extra="allow")
    extraction_mode: Literal["xhr", "dom"] = "xhr"
    include_user: bool = True
    include_model: bool = True
    include_thinking: bool = True
    collapsible_thinking: bool = True
    hint_dismissed: bool = False
    scroll: ScrollTuning = Field(default_factory=ScrollTuning)

    @field_validator("extraction_mode", mode="before")
    @classmethod
    def coerce_extraction_mode(cls, v: Any) -> str:
        """Anything other than "dom" falls back to the wire payload mode."""
        return "dom" if isinstance(v, str) and v.strip().lower() == "dom" else "xhr"

    @model_validator(mode="after")
    def normalize_dependent_flags(self) -> "ExportConfig":
        # Thinking needs model output; collapsing needs thinking.
        if not self.include_model:
            self.include_thinking = False
        if not self.include_thinking:
            self.collapsible_thinking = False
        return self

    def render_options(self) -> RenderOptions:
        return RenderOptions(
            include_user=self.include_user,
            include_model=self.include_model,
            include_thinking=self.include_thinking,
            collapsible_thinking=self.collapsible_thinking,
        )

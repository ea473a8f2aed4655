from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "citelens"
    api_prefix: str = "/v1"
    max_upload_mb: int = 20
    document_ttl_minutes: int = 120
    cleanup_interval_sec: float = 30.0

    # Overlay rendering. The y offset is calibrated against sample documents.
    render_scale: float = Field(default=1.5, gt=0)
    highlight_y_offset: float = 8.0

    # Segmentation thresholds, in document units.
    line_tolerance: float = Field(default=2.0, gt=0)
    paged_block_tolerance: float = 25.0
    flowing_block_tolerance: float = 30.0
    block_x_tolerance: float = 100.0
    paged_min_line_chars: int = 15
    flowing_min_line_chars: int = 1
    context_min_line_chars: int = 5
    min_snippet_chars: int = 15
    heading_font_size: float = 14.0

    # Synthesized geometry for coordinate-free documents.
    flow_line_spacing: float = 25.0
    flow_line_height: float = 20.0
    flow_char_width: float = 7.0
    flow_max_width: float = 800.0

    citation_count: int = Field(default=3, ge=0)
    default_extraction_mode: Literal["single-line", "multi-line"] = "multi-line"
    hover_debounce_sec: float = Field(default=0.3, ge=0)
    flow_text_param_limit: int = 1000
    pdf_display_errors: bool = False


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

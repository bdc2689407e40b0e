from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        env_prefix='ENDREPORT_',
        case_sensitive=False,
        populate_by_name=True,
        extra='ignore',
    )

    app_name: str = 'End Product Report Composer'

    output_dir: Path = Field(default=Path('./reports'))
    log_level: str = 'INFO'

    # Background template stamped on every generated page (local path or http(s) URL)
    template_source: str | None = Field(
        default='templates/end-product-raport-template.png',
        validation_alias=AliasChoices('ENDREPORT_TEMPLATE_SOURCE', 'REPORT_TEMPLATE'),
    )
    template_timeout_seconds: float = 10.0

    # Attachment merge
    attachment_timeout_seconds: float = 30.0
    attachment_deadline_seconds: float | None = 180.0
    attachment_max_concurrency: int = 1
    max_attachment_bytes: int = 50 * 1024 * 1024

    # PDF metadata
    pdf_title: str = 'End Product Report'
    pdf_author: str = 'Production'
    pdf_producer: str = 'End Product Report Composer'


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class AttachmentType(str, Enum):
    pdf = 'pdf'
    png = 'png'
    jpg = 'jpg'
    jpeg = 'jpeg'

    @property
    def is_image(self) -> bool:
        return self is not AttachmentType.pdf


class Attachment(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_url: str = Field(validation_alias=_alias('file_url', 'fileUrl', 'downloadURL'))
    file_name: str = Field(validation_alias=_alias('file_name', 'fileName'))
    file_type: AttachmentType = Field(
        default=AttachmentType.pdf,
        validation_alias=_alias('file_type', 'fileType'),
    )

    @field_validator('file_type', mode='before')
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower().lstrip('.')
        return value


class FormResponses(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    completed_mo: list[dict[str, Any]] = Field(
        default_factory=list,
        validation_alias=_alias('completed_mo', 'completedMO'),
    )
    production_control: list[dict[str, Any]] = Field(
        default_factory=list,
        validation_alias=_alias('production_control', 'productionControl'),
    )
    production_shift: list[dict[str, Any]] = Field(
        default_factory=list,
        validation_alias=_alias('production_shift', 'productionShift'),
    )

    @field_validator('completed_mo', 'production_control', 'production_shift', mode='before')
    @classmethod
    def _coerce_rows(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return [row for row in value if isinstance(row, dict)]


class ReportInput(BaseModel):
    """Read-only aggregate assembled by the upstream services for one manufacturing order."""

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    task: dict[str, Any] | None = None
    company: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=_alias('company', 'companyData'),
    )
    workstation: dict[str, Any] | None = Field(
        default=None,
        validation_alias=_alias('workstation', 'workstationData'),
    )
    production_history: list[dict[str, Any]] = Field(
        default_factory=list,
        validation_alias=_alias('production_history', 'productionHistory'),
    )
    form_responses: FormResponses = Field(
        default_factory=FormResponses,
        validation_alias=_alias('form_responses', 'formResponses'),
    )
    clinical_attachments: list[dict[str, Any]] = Field(
        default_factory=list,
        validation_alias=_alias('clinical_attachments', 'clinicalAttachments'),
    )
    ingredient_attachments: dict[str, list[dict[str, Any]]] = Field(
        default_factory=dict,
        validation_alias=_alias('ingredient_attachments', 'ingredientAttachments'),
    )
    ingredient_batch_attachments: dict[str, list[dict[str, Any]]] = Field(
        default_factory=dict,
        validation_alias=_alias('ingredient_batch_attachments', 'ingredientBatchAttachments'),
    )
    additional_attachments: list[dict[str, Any]] = Field(
        default_factory=list,
        validation_alias=_alias('additional_attachments', 'additionalAttachments'),
    )
    materials: list[dict[str, Any]] = Field(default_factory=list)
    allergens: list[str] = Field(
        default_factory=list,
        validation_alias=_alias('allergens', 'selectedAllergens'),
    )
    current_user: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=_alias('current_user', 'currentUser'),
    )
    # Explicit merge list; derived from the attachment metadata when absent.
    attachments: list[Attachment] | None = None

    @field_validator(
        'production_history',
        'clinical_attachments',
        'additional_attachments',
        'materials',
        mode='before',
    )
    @classmethod
    def _coerce_rows(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return [row for row in value if isinstance(row, dict)]

    @field_validator('ingredient_attachments', 'ingredient_batch_attachments', mode='before')
    @classmethod
    def _coerce_grouped_rows(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return {}
        grouped: dict[str, list[dict[str, Any]]] = {}
        for key, rows in value.items():
            if not isinstance(rows, list):
                continue
            grouped[str(key)] = [row for row in rows if isinstance(row, dict)]
        return grouped

    @field_validator('allergens', mode='before')
    @classmethod
    def _coerce_allergens(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return [str(item).strip() for item in value if str(item or '').strip()]

    @field_validator('company', 'current_user', mode='before')
    @classmethod
    def _coerce_mapping(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @field_validator('form_responses', mode='before')
    @classmethod
    def _coerce_form_responses(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, FormResponses)) else {}


class GeneratedReport(BaseModel):
    file_name: str
    content: bytes = Field(repr=False)
    page_count: int
    base_page_count: int
    merged_attachments: list[str] = Field(default_factory=list)
    failed_attachments: list[str] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utcnow)

    def summary(self) -> dict[str, Any]:
        return {
            'file_name': self.file_name,
            'bytes': len(self.content),
            'page_count': self.page_count,
            'base_page_count': self.base_page_count,
            'merged_attachments': list(self.merged_attachments),
            'failed_attachments': list(self.failed_attachments),
            'generated_at': self.generated_at.isoformat(),
        }

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from golden_keys.constants.vocabulary import DEFAULT_VERSION


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def parse_timestamp(value: Any) -> Any:
    """Accept ISO-8601 strings (including a trailing ``Z``) and return aware UTC datetimes."""
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("Timestamp must not be empty")
        value = datetime.fromisoformat(text)
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GoldenKey(CamelModel):
    id: str = Field(..., min_length=1, max_length=64)
    key: str = Field(..., min_length=1, max_length=200)
    label: str = Field(..., max_length=200)
    description: str = ""
    data_type: str = Field(..., max_length=50)
    required: bool = False
    owner: str = Field("", max_length=200)
    version: str = Field(DEFAULT_VERSION, max_length=50)
    approval_status: str = ApprovalStatus.PENDING.value
    created_at: datetime
    updated_at: datetime
    approved_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at", "approved_at", mode="before")
    @classmethod
    def _normalize_timestamp(cls, value: Any) -> Any:
        if value is None:
            return None
        return parse_timestamp(value)

    @property
    def is_pending(self) -> bool:
        return self.approval_status == ApprovalStatus.PENDING.value


class GoldenKeyCreate(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    key: str = Field(..., min_length=1, max_length=200)
    label: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    data_type: str = Field(..., min_length=1, max_length=50)
    required: bool = False
    owner: str = Field("", max_length=200)
    version: Optional[str] = Field(None, max_length=50)
    # Accepted for compatibility with clients that echo a full record; new
    # records always start pending.
    approval_status: Optional[str] = None


class GoldenKeyUpdate(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    key: Optional[str] = Field(None, min_length=1, max_length=200)
    label: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    data_type: Optional[str] = Field(None, min_length=1, max_length=50)
    required: Optional[bool] = None
    owner: Optional[str] = Field(None, max_length=200)
    version: Optional[str] = Field(None, max_length=50)
    approval_status: Optional[str] = None


class GoldenKeyFilters(CamelModel):
    search: str = ""
    data_type: str = ""
    owner: str = ""
    approval_status: str = ""


class VocabularyOption(BaseModel):
    value: str
    label: str
    color: str


class GoldenKeyVocabulary(CamelModel):
    data_types: list[VocabularyOption]
    approval_statuses: list[VocabularyOption]


class GoldenKeySummary(CamelModel):
    total: int
    visible: int
    pending: int


class GoldenKeyListResponse(CamelModel):
    items: list[GoldenKey]
    summary: GoldenKeySummary
    owners: list[str]


class GoldenKeyImportResponse(CamelModel):
    imported: int
    persisted: bool
    total: int

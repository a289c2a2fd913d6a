from golden_keys.schemas.golden_key import (
    ApprovalStatus,
    GoldenKey,
    GoldenKeyCreate,
    GoldenKeyFilters,
    GoldenKeyImportResponse,
    GoldenKeyListResponse,
    GoldenKeySummary,
    GoldenKeyUpdate,
    GoldenKeyVocabulary,
    VocabularyOption,
)

__all__ = [
    "ApprovalStatus",
    "GoldenKey",
    "GoldenKeyCreate",
    "GoldenKeyFilters",
    "GoldenKeyImportResponse",
    "GoldenKeyListResponse",
    "GoldenKeySummary",
    "GoldenKeyUpdate",
    "GoldenKeyVocabulary",
    "VocabularyOption",
]

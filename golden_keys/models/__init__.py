from golden_keys.models.entities import GoldenKeyRecord, TimestampMixin

__all__ = ["GoldenKeyRecord", "TimestampMixin"]

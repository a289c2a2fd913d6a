"""Serialize golden key collections to and from JSON documents."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from pydantic import ValidationError

from golden_keys.schemas import GoldenKey

logger = logging.getLogger(__name__)

IdFactory = Callable[[], str]
Clock = Callable[[], datetime]


class GoldenKeyImportError(ValueError):
    """Raised when an import document cannot be turned into golden keys."""


def record_to_document(record: GoldenKey) -> dict[str, Any]:
    """Return the camelCase JSON form of ``record`` with ISO-8601 timestamps."""
    return record.model_dump(mode="json", by_alias=True, exclude_none=True)


def export_records(records: Iterable[GoldenKey]) -> str:
    documents = [record_to_document(record) for record in records]
    return json.dumps(documents, indent=2, ensure_ascii=False)


def _describe_validation_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "record"
        problems.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(problems)


def _normalize_element(
    index: int,
    element: Any,
    *,
    id_factory: IdFactory,
    clock: Clock,
) -> GoldenKey:
    if not isinstance(element, Mapping):
        raise GoldenKeyImportError(f"Entry {index} is not a JSON object.")

    data = dict(element)
    if not data.get("id"):
        data["id"] = id_factory()
    if not data.get("approvedAt"):
        data.pop("approvedAt", None)

    now = None
    for field in ("createdAt", "updatedAt"):
        if data.get(field) in (None, ""):
            now = now or clock()
            data[field] = now

    try:
        return GoldenKey.model_validate(data)
    except ValidationError as exc:
        raise GoldenKeyImportError(
            f"Entry {index} is not a valid golden key ({_describe_validation_error(exc)})."
        ) from exc


def parse_import_document(
    content: str | bytes,
    *,
    id_factory: IdFactory,
    clock: Clock | None = None,
) -> list[GoldenKey]:
    """Parse an import document into golden keys.

    The whole document is rejected on the first problem: invalid JSON, a top
    level that is not an array, or an entry that does not describe a record.
    Approval statuses are carried through as-is.
    """
    clock = clock or (lambda: datetime.now(timezone.utc))
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise GoldenKeyImportError("Import file must be UTF-8 encoded JSON.") from exc

    try:
        payload = json.loads(content)
    except ValueError as exc:
        raise GoldenKeyImportError("Invalid JSON file format.") from exc

    if not isinstance(payload, list):
        raise GoldenKeyImportError("Invalid JSON format: expected an array of golden keys.")

    records = [
        _normalize_element(index, element, id_factory=id_factory, clock=clock)
        for index, element in enumerate(payload)
    ]
    logger.debug("Parsed %d golden keys from import document", len(records))
    return records


__all__ = [
    "GoldenKeyImportError",
    "export_records",
    "parse_import_document",
    "record_to_document",
]

"""Approval workflow rules for golden keys.

New keys always enter the catalog as ``pending``. Only pending keys may be
edited or deleted here; moving a key to ``approved`` or ``rejected`` belongs
to the external review process, so this module offers no such transition.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import ExitStack
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Callable, Iterable

from golden_keys.config import get_settings
from golden_keys.constants.vocabulary import (
    APPROVAL_STATUS_VALUES,
    APPROVAL_STATUSES,
    DEFAULT_VERSION,
    resolve_data_types,
)
from golden_keys.schemas import (
    ApprovalStatus,
    GoldenKey,
    GoldenKeyCreate,
    GoldenKeyUpdate,
    GoldenKeyVocabulary,
    VocabularyOption,
)
from golden_keys.services.golden_key_catalog import GoldenKeyCatalog
from golden_keys.services.golden_key_codec import parse_import_document
from golden_keys.services.golden_key_gateway import DuplicateRecordError, GatewayError, build_gateway

logger = logging.getLogger(__name__)

IdFactory = Callable[[], str]
Clock = Callable[[], datetime]


class GoldenKeyPolicyError(Exception):
    """Raised when a mutation is not allowed for a key's approval status."""


class DuplicateGoldenKeyError(GoldenKeyPolicyError):
    """Raised when another key in the catalog already uses the same name."""


class GoldenKeyNotFoundError(LookupError):
    """Raised when a golden key is not part of the working set."""


class GoldenKeyValidationError(ValueError):
    """Raised when a data type or approval status is outside the vocabulary."""


def _generate_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GoldenKeyWorkflow:
    def __init__(
        self,
        catalog: GoldenKeyCatalog,
        *,
        data_types: Iterable[str] | None = None,
        id_factory: IdFactory | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._catalog = catalog
        self._data_type_options = resolve_data_types(list(data_types) if data_types is not None else None)
        self._data_types = {option["value"] for option in self._data_type_options}
        self._id_factory = id_factory or _generate_id
        self._clock = clock or _utcnow

    @property
    def catalog(self) -> GoldenKeyCatalog:
        return self._catalog

    def vocabulary(self) -> GoldenKeyVocabulary:
        return GoldenKeyVocabulary(
            data_types=[VocabularyOption(**option) for option in self._data_type_options],
            approval_statuses=[VocabularyOption(**option) for option in APPROVAL_STATUSES],
        )

    def create(self, payload: GoldenKeyCreate) -> GoldenKey:
        self._validate_data_type(payload.data_type)
        self._ensure_unique_key(payload.key)

        if payload.approval_status and payload.approval_status != ApprovalStatus.PENDING.value:
            logger.info(
                "Ignoring requested status %r for new golden key %s; new keys start pending",
                payload.approval_status,
                payload.key,
            )

        now = self._clock()
        record = GoldenKey(
            id=self._id_factory(),
            key=payload.key,
            label=payload.label,
            description=payload.description,
            data_type=payload.data_type,
            required=payload.required,
            owner=payload.owner,
            version=payload.version or DEFAULT_VERSION,
            approval_status=ApprovalStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )

        with self._catalog.guard(record.id):
            self._catalog.gateway.add_pending(record)
            self._catalog.reload()

        logger.info("Created golden key %s (%s) pending approval", record.key, record.id)
        return record

    def edit(self, record_id: str, payload: GoldenKeyUpdate) -> GoldenKey:
        changes: dict[str, Any] = {
            field: value
            for field, value in payload.model_dump(exclude_unset=True).items()
            if value is not None
        }
        requested_status = changes.pop("approval_status", None)

        with self._catalog.guard(record_id):
            current, local = self._require(record_id, "updated")
            self._require_pending(current, "updated")

            if requested_status is not None and requested_status != ApprovalStatus.PENDING.value:
                self._validate_status(requested_status)
                raise GoldenKeyPolicyError(
                    "Approval status can only be changed by the review process."
                )
            if "data_type" in changes:
                self._validate_data_type(changes["data_type"])
            if "key" in changes and changes["key"] != current.key:
                self._ensure_unique_key(changes["key"], exclude_id=record_id)

            changes["updated_at"] = self._clock()

            if local:
                updated = current.model_copy(update=changes)
                self._catalog.replace_local(updated)
                logger.info("Updated locally imported golden key %s", record_id)
                return updated

            self._catalog.gateway.update_pending(record_id, changes)
            self._catalog.reload()

        logger.info("Updated golden key %s (%s)", changes.get("key", current.key), record_id)
        return self._catalog.find(record_id) or current.model_copy(update=changes)

    def delete(self, record_id: str) -> GoldenKey:
        with self._catalog.guard(record_id):
            current, local = self._require(record_id, "deleted")
            self._require_pending(current, "deleted")

            if local:
                self._catalog.remove_local(record_id)
                logger.info("Removed locally imported golden key %s", record_id)
                return current

            self._catalog.gateway.delete_pending(record_id)
            self._catalog.reload()

        logger.info("Deleted golden key %s (%s)", current.key, record_id)
        return current

    def import_document(self, content: str | bytes, *, persist: bool = False) -> list[GoldenKey]:
        """Merge an import document into the working set.

        By default the records stay local to this catalog. With ``persist`` each
        record is stored through the gateway as a new pending key. Either way the
        whole document is rejected if any id is already taken.
        """
        records = parse_import_document(content, id_factory=self._id_factory, clock=self._clock)

        if not persist:
            self._catalog.append_local(records)
            logger.info("Imported %d golden keys into the working set", len(records))
            return records

        return self._store_imported(records)

    def _store_imported(self, records: list[GoldenKey]) -> list[GoldenKey]:
        stored = [
            record.model_copy(update={"approval_status": ApprovalStatus.PENDING.value, "approved_at": None})
            for record in records
        ]
        added: list[GoldenKey] = []

        with ExitStack() as stack:
            for record in stored:
                stack.enter_context(self._catalog.guard(record.id))
            self._check_importable(stored)

            try:
                for record in stored:
                    self._catalog.gateway.add_pending(record)
                    added.append(record)
            except GatewayError:
                self._roll_back(added)
                raise
            finally:
                self._catalog.reload()

        logger.info("Imported and stored %d golden keys pending approval", len(stored))
        return stored

    def _check_importable(self, records: list[GoldenKey]) -> None:
        seen_ids: set[str] = set()
        seen_keys: set[str] = set()
        for record in records:
            if (
                record.id in seen_ids
                or self._catalog.find(record.id) is not None
                or self._catalog.gateway.fetch_status(record.id) is not None
            ):
                raise DuplicateRecordError(f"Golden key {record.id} already exists.")
            if record.key in seen_keys:
                raise DuplicateGoldenKeyError(f"A golden key named {record.key!r} already exists.")
            self._ensure_unique_key(record.key)
            self._validate_data_type(record.data_type)
            seen_ids.add(record.id)
            seen_keys.add(record.key)

    def _roll_back(self, added: list[GoldenKey]) -> None:
        for record in reversed(added):
            try:
                self._catalog.gateway.delete_pending(record.id)
            except GatewayError:
                logger.exception("Failed to roll back imported golden key %s", record.id)

    def _require(self, record_id: str, action: str) -> tuple[GoldenKey, bool]:
        located = self._catalog.locate(record_id)
        if located is not None:
            return located

        stored_status = self._catalog.gateway.fetch_status(record_id)
        if stored_status is not None and stored_status != ApprovalStatus.PENDING.value:
            raise GoldenKeyPolicyError(
                f"Only pending keys can be {action}; golden key {record_id} is {stored_status}."
            )
        raise GoldenKeyNotFoundError(f"Golden key {record_id} not found.")

    def _require_pending(self, record: GoldenKey, action: str) -> None:
        self._validate_status(record.approval_status)
        if record.approval_status != ApprovalStatus.PENDING.value:
            raise GoldenKeyPolicyError(
                f"Only pending keys can be {action}; {record.key} is {record.approval_status}."
            )

    @staticmethod
    def _validate_status(status: str) -> None:
        if status not in APPROVAL_STATUS_VALUES:
            raise GoldenKeyValidationError(f"Unknown approval status {status!r}.")

    def _validate_data_type(self, data_type: str) -> None:
        if data_type not in self._data_types:
            allowed = ", ".join(sorted(self._data_types))
            raise GoldenKeyValidationError(f"Unknown data type {data_type!r}; expected one of {allowed}.")

    def _ensure_unique_key(self, key: str, *, exclude_id: str | None = None) -> None:
        for record in self._catalog.records():
            if record.id != exclude_id and record.key == key:
                raise DuplicateGoldenKeyError(f"A golden key named {key!r} already exists.")


@lru_cache()
def get_golden_key_workflow() -> GoldenKeyWorkflow:
    settings = get_settings()
    catalog = GoldenKeyCatalog(build_gateway(settings))
    return GoldenKeyWorkflow(catalog, data_types=settings.golden_key_data_types)


__all__ = [
    "DuplicateGoldenKeyError",
    "GoldenKeyNotFoundError",
    "GoldenKeyPolicyError",
    "GoldenKeyValidationError",
    "GoldenKeyWorkflow",
    "get_golden_key_workflow",
]

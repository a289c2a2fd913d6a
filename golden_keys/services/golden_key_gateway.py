"""Persistence gateways for pending and approved golden keys."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Mapping

import requests
from pydantic import ValidationError
from pydantic.alias_generators import to_camel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from golden_keys.config import Settings, get_settings
from golden_keys.database import SessionLocal, get_engine
from golden_keys.models import GoldenKeyRecord
from golden_keys.schemas import ApprovalStatus, GoldenKey
from golden_keys.services.golden_key_codec import record_to_document

logger = logging.getLogger(__name__)

MUTABLE_FIELDS = (
    "key",
    "label",
    "description",
    "data_type",
    "required",
    "owner",
    "version",
    "updated_at",
)

RequestFunc = Callable[[str, str, dict[str, str], Any, int], Any]


class GatewayError(RuntimeError):
    """Raised when the golden key store cannot complete an operation."""


class RecordNotFoundError(GatewayError):
    """Raised when no pending golden key exists for an identifier."""


class DuplicateRecordError(GatewayError):
    """Raised when a golden key with the same identifier is already stored."""


def mutable_changes(changes: Mapping[str, Any]) -> dict[str, Any]:
    return {field: value for field, value in changes.items() if field in MUTABLE_FIELDS}


class GoldenKeyGateway(ABC):
    """Contract for stores holding pending and approved golden keys.

    Approved and rejected records can only be written by the external review
    process, so the contract only mutates pending records.
    """

    @abstractmethod
    def fetch_pending(self) -> list[GoldenKey]:
        ...

    @abstractmethod
    def fetch_approved(self) -> list[GoldenKey]:
        ...

    @abstractmethod
    def add_pending(self, record: GoldenKey) -> None:
        ...

    @abstractmethod
    def update_pending(self, record_id: str, changes: Mapping[str, Any]) -> None:
        ...

    @abstractmethod
    def delete_pending(self, record_id: str) -> None:
        ...

    def fetch_status(self, record_id: str) -> str | None:
        """Return the stored approval status of ``record_id``, or ``None`` if the store does not know it.

        The default only sees pending and approved records; stores that keep
        rejected records override it.
        """
        for record in self.reload():
            if record.id == record_id:
                return record.approval_status
        return None

    def invalidate(self) -> None:
        """Forget cached state after a mutation. Stateless gateways have nothing to drop."""

    def reload(self) -> list[GoldenKey]:
        """Return the working set: pending records followed by approved ones."""
        pending = self.fetch_pending()
        approved = self.fetch_approved()
        return [*pending, *approved]


def _record_to_schema(row: GoldenKeyRecord) -> GoldenKey:
    return GoldenKey(
        id=row.id,
        key=row.key,
        label=row.label,
        description=row.description or "",
        data_type=row.data_type,
        required=bool(row.required),
        owner=row.owner or "",
        version=row.version,
        approval_status=row.approval_status,
        created_at=row.created_at,
        updated_at=row.updated_at,
        approved_at=row.approved_at,
    )


class SqlAlchemyGoldenKeyGateway(GoldenKeyGateway):
    """Store every golden key in one table keyed by approval status."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def fetch_pending(self) -> list[GoldenKey]:
        return self._fetch(ApprovalStatus.PENDING)

    def fetch_approved(self) -> list[GoldenKey]:
        return self._fetch(ApprovalStatus.APPROVED)

    def _fetch(self, status: ApprovalStatus) -> list[GoldenKey]:
        statement = (
            select(GoldenKeyRecord)
            .where(GoldenKeyRecord.approval_status == status.value)
            .order_by(GoldenKeyRecord.created_at, GoldenKeyRecord.id)
        )
        try:
            with self._session_factory() as session:
                return [_record_to_schema(row) for row in session.execute(statement).scalars()]
        except SQLAlchemyError as exc:
            raise GatewayError(f"Failed to load {status.value} golden keys: {exc}") from exc

    def fetch_status(self, record_id: str) -> str | None:
        try:
            with self._session_factory() as session:
                row = session.get(GoldenKeyRecord, record_id)
                return row.approval_status if row is not None else None
        except SQLAlchemyError as exc:
            raise GatewayError(f"Failed to look up golden key {record_id}: {exc}") from exc

    def add_pending(self, record: GoldenKey) -> None:
        try:
            with self._session_factory() as session:
                if session.get(GoldenKeyRecord, record.id) is not None:
                    raise DuplicateRecordError(f"Golden key {record.id} already exists.")
                session.add(
                    GoldenKeyRecord(
                        id=record.id,
                        key=record.key,
                        label=record.label,
                        description=record.description,
                        data_type=record.data_type,
                        required=record.required,
                        owner=record.owner,
                        version=record.version,
                        approval_status=ApprovalStatus.PENDING.value,
                        created_at=record.created_at,
                        updated_at=record.updated_at,
                    )
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise GatewayError(f"Failed to store golden key {record.id}: {exc}") from exc
        logger.info("Stored pending golden key %s (%s)", record.id, record.key)

    def update_pending(self, record_id: str, changes: Mapping[str, Any]) -> None:
        try:
            with self._session_factory() as session:
                row = self._get_pending(session, record_id)
                for field, value in mutable_changes(changes).items():
                    setattr(row, field, value)
                session.commit()
        except SQLAlchemyError as exc:
            raise GatewayError(f"Failed to update golden key {record_id}: {exc}") from exc
        logger.info("Updated pending golden key %s", record_id)

    def delete_pending(self, record_id: str) -> None:
        try:
            with self._session_factory() as session:
                row = self._get_pending(session, record_id)
                session.delete(row)
                session.commit()
        except SQLAlchemyError as exc:
            raise GatewayError(f"Failed to delete golden key {record_id}: {exc}") from exc
        logger.info("Deleted pending golden key %s", record_id)

    @staticmethod
    def _get_pending(session: Session, record_id: str) -> GoldenKeyRecord:
        row = session.get(GoldenKeyRecord, record_id)
        if row is None or row.approval_status != ApprovalStatus.PENDING.value:
            raise RecordNotFoundError(f"Pending golden key {record_id} not found.")
        return row


class JsonFileGoldenKeyGateway(GoldenKeyGateway):
    """Keep pending, approved and rejected golden keys in three JSON files."""

    FILENAMES = {
        ApprovalStatus.PENDING: "pending_golden_keys.json",
        ApprovalStatus.APPROVED: "approved_golden_keys.json",
        ApprovalStatus.REJECTED: "rejected_golden_keys.json",
    }

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)
        self._lock = RLock()

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, status: ApprovalStatus) -> Path:
        return self._directory / self.FILENAMES[status]

    def fetch_pending(self) -> list[GoldenKey]:
        with self._lock:
            return self._load(ApprovalStatus.PENDING)

    def fetch_approved(self) -> list[GoldenKey]:
        with self._lock:
            return self._load(ApprovalStatus.APPROVED)

    def fetch_status(self, record_id: str) -> str | None:
        with self._lock:
            for status in ApprovalStatus:
                if any(row.get("id") == record_id for row in self._read(status)):
                    return status.value
        return None

    def add_pending(self, record: GoldenKey) -> None:
        with self._lock:
            for status in ApprovalStatus:
                if any(row.get("id") == record.id for row in self._read(status)):
                    raise DuplicateRecordError(f"Golden key {record.id} already exists.")
            rows = self._read(ApprovalStatus.PENDING)
            stored = record.model_copy(update={"approval_status": ApprovalStatus.PENDING.value, "approved_at": None})
            rows.append(record_to_document(stored))
            self._write(ApprovalStatus.PENDING, rows)
        logger.info("Stored pending golden key %s (%s)", record.id, record.key)

    def update_pending(self, record_id: str, changes: Mapping[str, Any]) -> None:
        with self._lock:
            records = self._load(ApprovalStatus.PENDING)
            index = self._index_of(records, record_id)
            records[index] = records[index].model_copy(update=mutable_changes(changes))
            self._write(ApprovalStatus.PENDING, [record_to_document(record) for record in records])
        logger.info("Updated pending golden key %s", record_id)

    def delete_pending(self, record_id: str) -> None:
        with self._lock:
            rows = self._read(ApprovalStatus.PENDING)
            remaining = [row for row in rows if row.get("id") != record_id]
            if len(remaining) == len(rows):
                raise RecordNotFoundError(f"Pending golden key {record_id} not found.")
            self._write(ApprovalStatus.PENDING, remaining)
        logger.info("Deleted pending golden key %s", record_id)

    @staticmethod
    def _index_of(records: list[GoldenKey], record_id: str) -> int:
        for index, record in enumerate(records):
            if record.id == record_id:
                return index
        raise RecordNotFoundError(f"Pending golden key {record_id} not found.")

    def _read(self, status: ApprovalStatus) -> list[dict[str, Any]]:
        path = self.path_for(status)
        if not path.exists():
            return []
        try:
            text = path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise GatewayError(f"Failed to read {path.name}: {exc}") from exc
        if not text:
            return []
        try:
            payload = json.loads(text)
        except ValueError as exc:
            raise GatewayError(f"{path.name} does not contain valid JSON.") from exc
        if not isinstance(payload, list):
            raise GatewayError(f"{path.name} must contain a JSON array.")
        return payload

    def _load(self, status: ApprovalStatus) -> list[GoldenKey]:
        rows = self._read(status)
        try:
            return [GoldenKey.model_validate(row) for row in rows]
        except ValidationError as exc:
            raise GatewayError(f"{self.path_for(status).name} contains an invalid golden key: {exc}") from exc

    def _write(self, status: ApprovalStatus, rows: list[dict[str, Any]]) -> None:
        path = self.path_for(status)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(rows, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
            tmp_path.replace(path)
        except OSError as exc:
            raise GatewayError(f"Failed to write {path.name}: {exc}") from exc


@dataclass(frozen=True)
class GoldenKeyServiceConfig:
    base_url: str
    timeout_seconds: int = 15


class HttpGoldenKeyGateway(GoldenKeyGateway):
    """Thin wrapper around the golden keys REST service."""

    def __init__(
        self,
        *,
        config: GoldenKeyServiceConfig | None = None,
        request_func: RequestFunc | None = None,
    ) -> None:
        if config is None:
            settings = get_settings()
            config = GoldenKeyServiceConfig(
                base_url=settings.golden_key_service_url,
                timeout_seconds=settings.golden_key_service_timeout_seconds,
            )

        base_url = (config.base_url or "").strip()
        if not base_url:
            raise ValueError("A service URL is required to initialize HttpGoldenKeyGateway.")

        self._base_url = base_url.rstrip("/")
        self._timeout = max(1, config.timeout_seconds)
        self._request_func = request_func

    def fetch_pending(self) -> list[GoldenKey]:
        return self._parse_records(self._request("GET", "/api/golden-keys/pending"))

    def fetch_approved(self) -> list[GoldenKey]:
        return self._parse_records(self._request("GET", "/api/golden-keys/approved"))

    def add_pending(self, record: GoldenKey) -> None:
        stored = record.model_copy(update={"approval_status": ApprovalStatus.PENDING.value, "approved_at": None})
        self._request(
            "POST",
            "/api/golden-keys/pending",
            json_payload=record_to_document(stored),
            expected_statuses=(200, 201),
        )
        logger.info("Stored pending golden key %s (%s) via %s", record.id, record.key, self._base_url)

    def update_pending(self, record_id: str, changes: Mapping[str, Any]) -> None:
        payload = {
            to_camel(field): value.isoformat() if isinstance(value, datetime) else value
            for field, value in mutable_changes(changes).items()
        }
        self._request(
            "PUT",
            f"/api/golden-keys/pending/{record_id}",
            json_payload=payload,
            expected_statuses=(200, 204),
        )
        logger.info("Updated pending golden key %s via %s", record_id, self._base_url)

    def delete_pending(self, record_id: str) -> None:
        self._request(
            "DELETE",
            f"/api/golden-keys/pending/{record_id}",
            expected_statuses=(200, 204),
        )
        logger.info("Deleted pending golden key %s via %s", record_id, self._base_url)

    @staticmethod
    def _parse_records(payload: Any) -> list[GoldenKey]:
        if not isinstance(payload, list):
            raise GatewayError("Golden keys service returned an unexpected payload.")
        try:
            return [GoldenKey.model_validate(item) for item in payload]
        except ValidationError as exc:
            raise GatewayError(f"Golden keys service returned an invalid record: {exc}") from exc

    def _request(
        self,
        method: str,
        path: str,
        *,
        json_payload: Any = None,
        expected_statuses: tuple[int, ...] = (200,),
    ) -> Any:
        url = f"{self._base_url}{path}"
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        try:
            response = self._dispatch_request(method, url, headers, json_payload)
        except requests.RequestException as exc:
            raise GatewayError(f"Golden keys request {method} {path} failed: {exc}") from exc

        if response.status_code not in expected_statuses:
            detail = self._extract_detail(response)
            if response.status_code == 404:
                raise RecordNotFoundError(detail)
            if response.status_code == 409:
                raise DuplicateRecordError(detail)
            raise GatewayError(
                f"Golden keys service call {method} {path} failed with {response.status_code}: {detail}"
            )

        if response.status_code == 204:
            return None

        try:
            return response.json()
        except ValueError:
            return None

    def _dispatch_request(self, method: str, url: str, headers: dict[str, str], json_payload: Any):
        if self._request_func is not None:
            return self._request_func(method, url, headers, json_payload, self._timeout)
        return requests.request(method, url, headers=headers, json=json_payload, timeout=self._timeout)

    @staticmethod
    def _extract_detail(response: Any) -> str:
        try:
            payload = response.json()
        except ValueError:
            payload = None

        if isinstance(payload, Mapping):
            message = payload.get("message") or payload.get("error") or payload.get("detail")
            if message:
                return str(message)
        text = getattr(response, "text", None)
        if text:
            return str(text).strip()
        reason = getattr(response, "reason", None)
        if reason:
            return str(reason)
        return "unknown error"


def build_gateway(settings: Settings | None = None) -> GoldenKeyGateway:
    settings = settings or get_settings()
    backend = settings.golden_key_gateway
    if backend == "database":
        get_engine()
        return SqlAlchemyGoldenKeyGateway(SessionLocal)
    if backend == "http":
        return HttpGoldenKeyGateway(
            config=GoldenKeyServiceConfig(
                base_url=settings.golden_key_service_url,
                timeout_seconds=settings.golden_key_service_timeout_seconds,
            )
        )
    return JsonFileGoldenKeyGateway(settings.golden_key_store_dir)


__all__ = [
    "DuplicateRecordError",
    "GatewayError",
    "GoldenKeyGateway",
    "GoldenKeyServiceConfig",
    "HttpGoldenKeyGateway",
    "JsonFileGoldenKeyGateway",
    "RecordNotFoundError",
    "SqlAlchemyGoldenKeyGateway",
    "build_gateway",
]

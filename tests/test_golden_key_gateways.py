import json
from datetime import datetime, timezone
from typing import Any, Optional

import pytest
import requests

from golden_keys.schemas import ApprovalStatus, GoldenKey
from golden_keys.services.golden_key_codec import record_to_document
from golden_keys.services.golden_key_gateway import (
    DuplicateRecordError,
    GatewayError,
    GoldenKeyServiceConfig,
    HttpGoldenKeyGateway,
    JsonFileGoldenKeyGateway,
    RecordNotFoundError,
)

CREATED = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)
EDITED = datetime(2025, 1, 7, 10, 15, tzinfo=timezone.utc)


def _record(record_id: str, key: str, *, approval_status: str = "pending", **overrides) -> GoldenKey:
    values = {
        "id": record_id,
        "key": key,
        "label": key.title(),
        "data_type": "string",
        "owner": "Data Governance",
        "approval_status": approval_status,
        "created_at": CREATED,
        "updated_at": CREATED,
    }
    values.update(overrides)
    return GoldenKey(**values)


# SQL gateway


def test_sql_gateway_splits_records_by_status(sql_gateway, seed_golden_key) -> None:
    seed_golden_key("customer_id", approval_status="approved")
    seed_golden_key("order_total", approval_status="pending")
    seed_golden_key("legacy_code", approval_status="rejected")

    assert [record.key for record in sql_gateway.fetch_pending()] == ["order_total"]
    assert [record.key for record in sql_gateway.fetch_approved()] == ["customer_id"]
    assert [record.key for record in sql_gateway.reload()] == ["order_total", "customer_id"]


def test_sql_gateway_returns_aware_timestamps(sql_gateway, seed_golden_key) -> None:
    seed_golden_key("customer_id", approval_status="approved")

    (record,) = sql_gateway.fetch_approved()

    assert record.created_at.tzinfo is not None
    assert record.approved_at is not None


def test_sql_gateway_add_update_delete_pending(sql_gateway) -> None:
    sql_gateway.add_pending(_record("gk-1", "customer_id"))

    sql_gateway.update_pending("gk-1", {"label": "Customer", "updated_at": EDITED, "approval_status": "approved"})
    (stored,) = sql_gateway.fetch_pending()
    assert stored.label == "Customer"
    assert stored.updated_at == EDITED
    assert stored.approval_status == ApprovalStatus.PENDING.value

    sql_gateway.delete_pending("gk-1")
    assert sql_gateway.fetch_pending() == []


def test_sql_gateway_forces_new_records_to_pending(sql_gateway) -> None:
    sql_gateway.add_pending(_record("gk-1", "customer_id", approval_status="approved", approved_at=EDITED))

    (stored,) = sql_gateway.fetch_pending()

    assert stored.approval_status == "pending"
    assert stored.approved_at is None


def test_sql_gateway_rejects_duplicate_ids(sql_gateway) -> None:
    sql_gateway.add_pending(_record("gk-1", "customer_id"))

    with pytest.raises(DuplicateRecordError):
        sql_gateway.add_pending(_record("gk-1", "other_key"))


def test_sql_gateway_refuses_to_touch_approved_rows(sql_gateway, seed_golden_key) -> None:
    approved = seed_golden_key("customer_id", approval_status="approved")

    with pytest.raises(RecordNotFoundError):
        sql_gateway.update_pending(approved.id, {"label": "Changed"})
    with pytest.raises(RecordNotFoundError):
        sql_gateway.delete_pending(approved.id)
    with pytest.raises(RecordNotFoundError):
        sql_gateway.delete_pending("missing")

    assert [record.label for record in sql_gateway.fetch_approved()] == ["Customer Id"]


def test_sql_gateway_reports_stored_status(sql_gateway, seed_golden_key) -> None:
    rejected = seed_golden_key("legacy_code", approval_status="rejected")

    assert sql_gateway.fetch_status(rejected.id) == "rejected"
    assert sql_gateway.fetch_status("missing") is None


# JSON file gateway


def test_json_gateway_treats_missing_files_as_empty(json_gateway) -> None:
    assert json_gateway.reload() == []


def test_json_gateway_round_trip(json_gateway) -> None:
    json_gateway.add_pending(_record("gk-1", "customer_id"))
    json_gateway.add_pending(_record("gk-2", "order_total"))

    json_gateway.update_pending("gk-2", {"owner": "Finance", "updated_at": EDITED})
    json_gateway.delete_pending("gk-1")

    (stored,) = json_gateway.fetch_pending()
    assert stored.id == "gk-2"
    assert stored.owner == "Finance"
    assert stored.updated_at == EDITED

    on_disk = json.loads(json_gateway.path_for(ApprovalStatus.PENDING).read_text(encoding="utf-8"))
    assert on_disk[0]["updatedAt"] == "2025-01-07T10:15:00Z"
    assert not json_gateway.path_for(ApprovalStatus.PENDING).with_suffix(".json.tmp").exists()


def test_json_gateway_detects_duplicates_across_files(json_gateway) -> None:
    rejected = _record("gk-9", "legacy_code", approval_status="rejected")
    json_gateway.directory.mkdir(parents=True)
    json_gateway.path_for(ApprovalStatus.REJECTED).write_text(
        json.dumps([record_to_document(rejected)]), encoding="utf-8"
    )

    with pytest.raises(DuplicateRecordError):
        json_gateway.add_pending(_record("gk-9", "legacy_code"))


def test_json_gateway_only_mutates_pending_records(json_gateway) -> None:
    approved = _record("gk-1", "customer_id", approval_status="approved", approved_at=EDITED)
    json_gateway.directory.mkdir(parents=True)
    json_gateway.path_for(ApprovalStatus.APPROVED).write_text(
        json.dumps([record_to_document(approved)]), encoding="utf-8"
    )

    with pytest.raises(RecordNotFoundError):
        json_gateway.update_pending("gk-1", {"label": "Changed"})
    with pytest.raises(RecordNotFoundError):
        json_gateway.delete_pending("gk-1")

    assert json_gateway.fetch_approved() == [approved]


@pytest.mark.parametrize("content", ["{not json", '{"id": "x"}', '[{"id": "x"}]'])
def test_json_gateway_reports_corrupt_files(json_gateway, content: str) -> None:
    json_gateway.directory.mkdir(parents=True)
    json_gateway.path_for(ApprovalStatus.PENDING).write_text(content, encoding="utf-8")

    with pytest.raises(GatewayError):
        json_gateway.fetch_pending()


def test_json_gateway_reports_status_across_files(json_gateway) -> None:
    rejected = _record("gk-9", "legacy_code", approval_status="rejected")
    json_gateway.directory.mkdir(parents=True)
    json_gateway.path_for(ApprovalStatus.REJECTED).write_text(
        json.dumps([record_to_document(rejected)]), encoding="utf-8"
    )
    json_gateway.add_pending(_record("gk-1", "customer_id"))

    assert json_gateway.fetch_status("gk-9") == "rejected"
    assert json_gateway.fetch_status("gk-1") == "pending"
    assert json_gateway.fetch_status("missing") is None


# HTTP gateway


class DummyResponse:
    def __init__(
        self,
        status_code: int,
        *,
        payload: Optional[Any] = None,
        text: str = "",
        reason: str = "",
    ) -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.reason = reason

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("No JSON payload")
        return self._payload


def _build_gateway(record: dict[str, Any], response: DummyResponse | None = None) -> HttpGoldenKeyGateway:
    def fake_request(method, url, headers, json_payload, timeout):
        record.update(
            {
                "method": method,
                "url": url,
                "headers": headers,
                "json": json_payload,
                "timeout": timeout,
            }
        )
        return response or DummyResponse(200, payload=[])

    return HttpGoldenKeyGateway(
        config=GoldenKeyServiceConfig(base_url="https://keys.example.com/", timeout_seconds=20),
        request_func=fake_request,
    )


def test_http_gateway_fetches_pending_records() -> None:
    captured: dict[str, Any] = {}
    document = record_to_document(_record("gk-1", "customer_id"))
    gateway = _build_gateway(captured, DummyResponse(200, payload=[document]))

    records = gateway.fetch_pending()

    assert captured["method"] == "GET"
    assert captured["url"] == "https://keys.example.com/api/golden-keys/pending"
    assert captured["timeout"] == 20
    assert captured["headers"]["Accept"] == "application/json"
    assert [record.id for record in records] == ["gk-1"]


def test_http_gateway_fetches_approved_records() -> None:
    captured: dict[str, Any] = {}
    gateway = _build_gateway(captured)

    assert gateway.fetch_approved() == []
    assert captured["url"].endswith("/api/golden-keys/approved")


def test_http_gateway_posts_new_records_as_pending() -> None:
    captured: dict[str, Any] = {}
    gateway = _build_gateway(captured, DummyResponse(201, payload={"ok": True}))

    gateway.add_pending(_record("gk-1", "customer_id", approval_status="approved", approved_at=EDITED))

    assert captured["method"] == "POST"
    assert captured["url"].endswith("/api/golden-keys/pending")
    assert captured["json"]["approvalStatus"] == "pending"
    assert "approvedAt" not in captured["json"]
    assert captured["json"]["createdAt"] == "2025-01-06T09:00:00Z"


def test_http_gateway_puts_camel_case_changes() -> None:
    captured: dict[str, Any] = {}
    gateway = _build_gateway(captured, DummyResponse(204))

    gateway.update_pending("gk-1", {"data_type": "integer", "updated_at": EDITED, "approval_status": "approved"})

    assert captured["method"] == "PUT"
    assert captured["url"].endswith("/api/golden-keys/pending/gk-1")
    assert captured["json"] == {"dataType": "integer", "updatedAt": "2025-01-07T10:15:00+00:00"}


def test_http_gateway_deletes_pending_records() -> None:
    captured: dict[str, Any] = {}
    gateway = _build_gateway(captured, DummyResponse(204))

    gateway.delete_pending("gk-1")

    assert captured["method"] == "DELETE"
    assert captured["url"].endswith("/api/golden-keys/pending/gk-1")


def test_http_gateway_maps_not_found() -> None:
    gateway = _build_gateway({}, DummyResponse(404, payload={"message": "No such pending key"}))

    with pytest.raises(RecordNotFoundError) as excinfo:
        gateway.delete_pending("gk-1")

    assert str(excinfo.value) == "No such pending key"


def test_http_gateway_maps_conflict() -> None:
    gateway = _build_gateway({}, DummyResponse(409, text="duplicate id"))

    with pytest.raises(DuplicateRecordError):
        gateway.add_pending(_record("gk-1", "customer_id"))


def test_http_gateway_raises_for_server_errors() -> None:
    gateway = _build_gateway({}, DummyResponse(500, reason="Internal Server Error"))

    with pytest.raises(GatewayError) as excinfo:
        gateway.fetch_pending()

    assert "500" in str(excinfo.value)
    assert "Internal Server Error" in str(excinfo.value)


def test_http_gateway_rejects_unexpected_payloads() -> None:
    gateway = _build_gateway({}, DummyResponse(200, payload={"items": []}))

    with pytest.raises(GatewayError):
        gateway.fetch_approved()


def test_http_gateway_wraps_transport_errors() -> None:
    def failing_request(method, url, headers, json_payload, timeout):
        raise requests.ConnectionError("connection refused")

    gateway = HttpGoldenKeyGateway(
        config=GoldenKeyServiceConfig(base_url="https://keys.example.com"),
        request_func=failing_request,
    )

    with pytest.raises(GatewayError) as excinfo:
        gateway.fetch_pending()

    assert "connection refused" in str(excinfo.value)


def test_http_gateway_requires_a_base_url() -> None:
    with pytest.raises(ValueError):
        HttpGoldenKeyGateway(config=GoldenKeyServiceConfig(base_url="  "))


def test_http_gateway_looks_up_status_in_the_working_set() -> None:
    document = record_to_document(_record("gk-1", "customer_id"))
    gateway = _build_gateway({}, DummyResponse(200, payload=[document]))

    assert gateway.fetch_status("gk-1") == "pending"
    assert gateway.fetch_status("missing") is None

"""Session-local working set of golden keys.

The catalog mirrors the gateway's pending and approved records plus any
records imported locally. Mutations never edit the mirror in place: after the
gateway confirms a change the catalog reloads, and each reload carries a
generation ticket so a slow response cannot overwrite a newer snapshot.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from threading import Lock
from typing import Iterable, Iterator

from golden_keys.schemas import GoldenKey, GoldenKeyFilters, GoldenKeyListResponse
from golden_keys.services.golden_key_codec import export_records
from golden_keys.services.golden_key_filters import distinct_owners, summarize, visible
from golden_keys.services.golden_key_gateway import DuplicateRecordError, GoldenKeyGateway

logger = logging.getLogger(__name__)


class ConcurrentOperationError(RuntimeError):
    """Raised when a golden key already has a mutation in flight."""


class GoldenKeyCatalog:
    def __init__(self, gateway: GoldenKeyGateway) -> None:
        self._gateway = gateway
        self._lock = Lock()
        self._stored: list[GoldenKey] = []
        self._local: list[GoldenKey] = []
        self._loaded = False
        self._reload_seq = 0
        self._applied_seq = 0
        self._in_flight: set[str] = set()

    @property
    def gateway(self) -> GoldenKeyGateway:
        return self._gateway

    def ensure_loaded(self) -> None:
        if not self._loaded:
            self.reload()

    def reload(self) -> list[GoldenKey]:
        with self._lock:
            self._reload_seq += 1
            ticket = self._reload_seq

        self._gateway.invalidate()
        stored = self._gateway.reload()

        with self._lock:
            if ticket < self._applied_seq:
                logger.debug(
                    "Discarding stale golden key reload %d (snapshot %d already applied)",
                    ticket,
                    self._applied_seq,
                )
            else:
                self._applied_seq = ticket
                self._stored = list(stored)
                self._loaded = True
                self._drop_shadowed_local()
            return [*self._stored, *self._local]

    def _drop_shadowed_local(self) -> None:
        # Stored records win over local copies that carry the same id.
        stored_ids = {record.id for record in self._stored}
        shadowed = [record.id for record in self._local if record.id in stored_ids]
        if shadowed:
            logger.info("Dropping %d local golden keys now held by the store: %s", len(shadowed), shadowed)
            self._local = [record for record in self._local if record.id not in stored_ids]

    def records(self) -> list[GoldenKey]:
        self.ensure_loaded()
        with self._lock:
            return [*self._stored, *self._local]

    def find(self, record_id: str) -> GoldenKey | None:
        for record in self.records():
            if record.id == record_id:
                return record
        return None

    def locate(self, record_id: str) -> tuple[GoldenKey, bool] | None:
        """Return the record with ``record_id`` and whether it is a local import."""
        self.ensure_loaded()
        with self._lock:
            for record in self._stored:
                if record.id == record_id:
                    return record, False
            for record in self._local:
                if record.id == record_id:
                    return record, True
        return None

    def append_local(self, records: Iterable[GoldenKey]) -> int:
        """Add imported records to the working set; every id must be new to it."""
        incoming = list(records)
        self.ensure_loaded()
        with self._lock:
            taken = {record.id for record in (*self._stored, *self._local)}
            for record in incoming:
                if record.id in taken:
                    raise DuplicateRecordError(f"Golden key {record.id} is already in the catalog.")
                taken.add(record.id)
            self._local.extend(incoming)
        return len(incoming)

    def replace_local(self, record: GoldenKey) -> None:
        with self._lock:
            self._local = [record if item.id == record.id else item for item in self._local]

    def remove_local(self, record_id: str) -> None:
        with self._lock:
            self._local = [item for item in self._local if item.id != record_id]

    def clear(self) -> None:
        """Empty the working set without touching the gateway; a reload restores stored records."""
        with self._lock:
            self._stored = []
            self._local = []
            self._loaded = True
        logger.info("Cleared the golden key working set")

    def view(self, filters: GoldenKeyFilters | None = None) -> GoldenKeyListResponse:
        records = self.records()
        shown = visible(records, filters)
        return GoldenKeyListResponse(
            items=shown,
            summary=summarize(records, shown),
            owners=distinct_owners(records),
        )

    def owners(self) -> list[str]:
        return distinct_owners(self.records())

    def export_document(self) -> str:
        return export_records(self.records())

    @contextmanager
    def guard(self, record_id: str) -> Iterator[None]:
        """Hold the per-record slot for the duration of a mutation."""
        with self._lock:
            if record_id in self._in_flight:
                logger.warning("Rejected overlapping mutation of golden key %s", record_id)
                raise ConcurrentOperationError(
                    f"Another change to golden key {record_id} is still in progress."
                )
            self._in_flight.add(record_id)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight.discard(record_id)


__all__ = ["ConcurrentOperationError", "GoldenKeyCatalog"]

# SPDX-License-Identifier: Apache-2.0
"""
Client view of the ledger's key/value space.

One index key (gwas_keys) holds the ordered list of dataset ids; each dataset
lives under gwas_<id>. Record and index are two separate writes, so a failure
in between leaves a record that no listing can see (PartialWriteError).
"""
from __future__ import annotations

import logging
import secrets
import string
import time
from collections.abc import Callable, Iterator

from gwassync.crypto import seal_draft
from gwassync.exceptions import (
    ConcurrentUpdateError,
    DatasetNotFoundError,
    ParseError,
    PartialWriteError,
    StoreError,
)
from gwassync.records import (
    INDEX_KEY,
    DatasetDraft,
    GwasDataset,
    StoredRecord,
    UnparseableRecord,
    encode_index,
    parse_index,
    parse_record,
    record_key,
)
from gwassync.store import KeyValueStore, VersionedKeyValueStore

logger = logging.getLogger("gwassync")

_BASE36 = string.digits + string.ascii_lowercase


def generate_dataset_id() -> str:
    """Epoch milliseconds plus seven random base-36 characters. Unique in practice, not guaranteed."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(7))
    return f"{int(time.time() * 1000)}-{suffix}"


class DatasetSynchronizer:
    """
    list/create/mark-processed over a KeyValueStore.
    On a VersionedKeyValueStore the index append is a compare-and-swap retry
    loop; on a plain store it is last-write-wins and concurrent appends can be lost.
    """

    def __init__(
        self,
        store: KeyValueStore,
        id_factory: Callable[[], str] = generate_dataset_id,
        clock: Callable[[], float] = time.time,
        max_retries: int = 5,
    ):
        self.store = store
        self.id_factory = id_factory
        self.clock = clock
        self.max_retries = max_retries

    # -- reads ------------------------------------------------------------

    def _read_index(self, raw: bytes) -> list[str]:
        if not raw:
            return []
        try:
            return parse_index(raw)
        except ParseError as e:
            logger.error("Error parsing dataset keys: %s", e)
            return []

    def scan(self) -> Iterator[GwasDataset | UnparseableRecord]:
        """Lazily fetch every indexed record in index order. Each call starts a fresh snapshot."""
        for dataset_id in self._read_index(self.store.get(INDEX_KEY)):
            try:
                raw = self.store.get(record_key(dataset_id))
            except StoreError as e:
                logger.error("Error loading dataset %s: %s", dataset_id, e)
                continue
            if not raw:
                logger.debug("Index references %s but no record is stored", dataset_id)
                continue
            try:
                yield parse_record(dataset_id, raw)
            except ParseError as e:
                yield UnparseableRecord(dataset_id, e)

    def list_datasets(self) -> list[GwasDataset]:
        """Parsed records, newest first. Unparseable records are skipped with a warning."""
        if not self.store.is_available():
            logger.error("Key/value store is not available")
            return []
        datasets = []
        try:
            for item in self.scan():
                if isinstance(item, UnparseableRecord):
                    logger.warning("Skipping dataset %s: %s", item.id, item.error)
                    continue
                datasets.append(item)
        except StoreError as e:
            logger.error("Error loading datasets: %s", e)
            return []
        datasets.sort(key=lambda d: d.timestamp, reverse=True)
        return datasets

    def get_dataset(self, dataset_id: str) -> GwasDataset:
        raw = self.store.get(record_key(dataset_id))
        if not raw:
            raise DatasetNotFoundError("Dataset not found")
        return parse_record(dataset_id, raw)

    # -- writes -----------------------------------------------------------

    def create_dataset(self, draft: DatasetDraft, institution: str) -> str:
        """Write the record, then append its id to the index. Returns the new id."""
        dataset_id = self.id_factory()
        record = StoredRecord(
            data=seal_draft(draft),
            timestamp=int(self.clock()),
            institution=institution,
            study_type=draft.study_type,
            status="pending",
        )
        self.store.set(record_key(dataset_id), record.to_bytes())
        try:
            self._append_to_index(dataset_id)
        except (StoreError, ConcurrentUpdateError) as e:
            logger.error("Record %s written but index update failed: %s", dataset_id, e)
            raise PartialWriteError(dataset_id) from e
        logger.info("Created dataset %s for %s", dataset_id, institution)
        return dataset_id

    def _append_to_index(self, dataset_id: str) -> None:
        if not isinstance(self.store, VersionedKeyValueStore):
            ids = self._read_index(self.store.get(INDEX_KEY))
            ids.append(dataset_id)
            self.store.set(INDEX_KEY, encode_index(ids))
            return
        for attempt in range(1, self.max_retries + 1):
            raw, version = self.store.get_versioned(INDEX_KEY)
            ids = self._read_index(raw)
            ids.append(dataset_id)
            if self.store.compare_and_set(INDEX_KEY, encode_index(ids), version):
                return
            logger.debug("Index changed under us (attempt %d/%d), retrying", attempt, self.max_retries)
        raise ConcurrentUpdateError(f"Could not append {dataset_id} to the index after {self.max_retries} attempts")

    def mark_processed(self, dataset_id: str) -> GwasDataset:
        """Re-read, set status processed, rewrite. Last write wins."""
        return self._set_status(dataset_id, "processed")

    def mark_failed(self, dataset_id: str) -> GwasDataset:
        return self._set_status(dataset_id, "error")

    def _set_status(self, dataset_id: str, status: str) -> GwasDataset:
        dataset = self.get_dataset(dataset_id)
        updated = dataset.model_copy(update={"status": status})
        self.store.set(record_key(dataset_id), updated.stored().to_bytes())
        logger.info("Dataset %s marked %s", dataset_id, status)
        return updated

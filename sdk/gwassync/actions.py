# SPDX-License-Identifier: Apache-2.0
"""Dashboard actions: each reports pending, then success or error. Nothing retries on its own."""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Literal

from gwassync.exceptions import GwasSyncError
from gwassync.records import DatasetDraft, GwasDataset
from gwassync.synchronizer import DatasetSynchronizer

logger = logging.getLogger("gwassync")

StatusKind = Literal["pending", "success", "error"]


@dataclass(frozen=True)
class TransactionStatus:
    status: StatusKind
    message: str

    @property
    def ok(self) -> bool:
        return self.status == "success"


@dataclass(frozen=True)
class DatasetSummary:
    total: int
    processed: int
    pending: int
    error: int


def _notify(notify: Callable[[TransactionStatus], None] | None, status: TransactionStatus) -> TransactionStatus:
    if notify is not None:
        notify(status)
    return status


def upload_dataset(
    sync: DatasetSynchronizer,
    draft: DatasetDraft,
    institution: str,
    notify: Callable[[TransactionStatus], None] | None = None,
) -> TransactionStatus:
    if not institution:
        return _notify(notify, TransactionStatus("error", "Please connect wallet first"))
    _notify(notify, TransactionStatus("pending", "Encrypting genomic data with FHE..."))
    try:
        sync.create_dataset(draft, institution)
    except (GwasSyncError, ValueError) as e:
        logger.error("Upload failed: %s", e)
        return _notify(notify, TransactionStatus("error", f"Upload failed: {e or 'Unknown error'}"))
    return _notify(notify, TransactionStatus("success", "Encrypted genomic data submitted securely!"))


def process_dataset(
    sync: DatasetSynchronizer,
    dataset_id: str,
    institution: str,
    notify: Callable[[TransactionStatus], None] | None = None,
) -> TransactionStatus:
    """Owner-only; a pending dataset becomes processed."""
    if not institution:
        return _notify(notify, TransactionStatus("error", "Please connect wallet first"))
    _notify(notify, TransactionStatus("pending", "Processing encrypted genomic data with FHE..."))
    try:
        dataset = sync.get_dataset(dataset_id)
        if not dataset.owned_by(institution):
            raise PermissionError("only the submitting institution may process this dataset")
        if dataset.status != "pending":
            raise ValueError(f"dataset is already {dataset.status}")
        sync.mark_processed(dataset_id)
    except (GwasSyncError, PermissionError, ValueError) as e:
        logger.error("Analysis of %s failed: %s", dataset_id, e)
        return _notify(notify, TransactionStatus("error", f"Analysis failed: {e or 'Unknown error'}"))
    return _notify(notify, TransactionStatus("success", "FHE GWAS analysis completed successfully!"))


def summarize(datasets: Iterable[GwasDataset]) -> DatasetSummary:
    items = list(datasets)
    return DatasetSummary(
        total=len(items),
        processed=sum(1 for d in items if d.status == "processed"),
        pending=sum(1 for d in items if d.status == "pending"),
        error=sum(1 for d in items if d.status == "error"),
    )


def filter_datasets(datasets: Iterable[GwasDataset], query: str) -> list[GwasDataset]:
    """Case-insensitive match on study type or institution."""
    q = query.lower()
    return [d for d in datasets if q in d.study_type.lower() or q in d.institution.lower()]

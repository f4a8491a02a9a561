# SPDX-License-Identifier: Apache-2.0
"""Dashboard actions and their status messages."""
from gwassync.actions import TransactionStatus, filter_datasets, process_dataset, summarize, upload_dataset
from gwassync.exceptions import StoreError
from gwassync.records import DatasetDraft
from gwassync.store import InMemoryStore

ALICE = "0xa11ce00000000000000000000000000000000001"
BOB = "0xb0b0000000000000000000000000000000000002"


class BrokenStore(InMemoryStore):
    def set(self, key, value):
        raise StoreError("ledger unreachable")


def test_upload_requires_wallet(sync, draft):
    seen = []
    status = upload_dataset(sync, draft, "", notify=seen.append)
    assert status == TransactionStatus("error", "Please connect wallet first")
    assert seen == [status]
    assert sync.list_datasets() == []


def test_upload_reports_pending_then_success(sync, draft):
    seen = []
    status = upload_dataset(sync, draft, ALICE, notify=seen.append)
    assert [s.status for s in seen] == ["pending", "success"]
    assert seen[0].message == "Encrypting genomic data with FHE..."
    assert status.message == "Encrypted genomic data submitted securely!"
    assert status.ok
    assert len(sync.list_datasets()) == 1


def test_upload_failure_message(make_sync, draft):
    status = upload_dataset(make_sync(BrokenStore()), draft, ALICE)
    assert status.status == "error"
    assert status.message == "Upload failed: ledger unreachable"
    assert not status.ok


def test_upload_failure_keeps_store_message(make_sync, draft):
    class RejectingStore(InMemoryStore):
        def set(self, key, value):
            raise StoreError("user rejected transaction")

    status = upload_dataset(make_sync(RejectingStore()), draft, ALICE)
    assert status.message == "Upload failed: user rejected transaction"


def test_process_by_owner(sync, draft):
    dataset_id = sync.create_dataset(draft, ALICE)
    seen = []
    status = process_dataset(sync, dataset_id, ALICE.upper().replace("0X", "0x"), notify=seen.append)
    assert [s.message for s in seen] == [
        "Processing encrypted genomic data with FHE...",
        "FHE GWAS analysis completed successfully!",
    ]
    assert status.ok
    assert sync.get_dataset(dataset_id).status == "processed"


def test_process_by_non_owner_is_rejected(sync, draft):
    dataset_id = sync.create_dataset(draft, ALICE)
    status = process_dataset(sync, dataset_id, BOB)
    assert status.status == "error"
    assert status.message.startswith("Analysis failed: ")
    assert sync.get_dataset(dataset_id).status == "pending"


def test_process_twice_is_rejected(sync, draft):
    dataset_id = sync.create_dataset(draft, ALICE)
    assert process_dataset(sync, dataset_id, ALICE).ok
    status = process_dataset(sync, dataset_id, ALICE)
    assert status.message == "Analysis failed: dataset is already processed"


def test_process_unknown_dataset(sync):
    status = process_dataset(sync, "ghost", ALICE)
    assert status.message == "Analysis failed: Dataset not found"


def test_process_requires_wallet(sync, draft):
    dataset_id = sync.create_dataset(draft, ALICE)
    assert process_dataset(sync, dataset_id, "").message == "Please connect wallet first"


def test_summarize_and_filter(sync, draft):
    a = sync.create_dataset(draft, ALICE)
    sync.create_dataset(DatasetDraft(study_type="Asthma", genomic_data="x"), BOB)
    c = sync.create_dataset(draft, BOB)
    sync.mark_processed(a)
    sync.mark_failed(c)
    datasets = sync.list_datasets()
    summary = summarize(datasets)
    assert (summary.total, summary.processed, summary.pending, summary.error) == (3, 1, 1, 1)
    assert [d.study_type for d in filter_datasets(datasets, "ASTH")] == ["Asthma"]
    assert len(filter_datasets(datasets, "0xb0b")) == 2
    assert filter_datasets(datasets, "nothing-matches") == []

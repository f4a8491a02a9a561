# SPDX-License-Identifier: Apache-2.0
"""SDK-specific exceptions."""


class GwasSyncError(Exception):
    """Base exception for the SDK."""


class StoreError(GwasSyncError):
    """Key/value store read or write failed."""


class ParseError(GwasSyncError):
    """Stored index or record does not match the expected schema."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Cannot parse '{key}': {reason}")
        self.key = key
        self.reason = reason


class DatasetNotFoundError(GwasSyncError):
    """No record stored under the dataset key."""


class PartialWriteError(GwasSyncError):
    """
    Record was written but the index update failed. The record exists under its
    key and is invisible to list_datasets until its id is appended to the index.
    """

    def __init__(self, dataset_id: str):
        super().__init__(f"Dataset {dataset_id} written but not added to the index")
        self.dataset_id = dataset_id


class ConcurrentUpdateError(GwasSyncError):
    """Compare-and-swap on the index kept losing to concurrent writers."""


class APIError(GwasSyncError):
    """API request failed (HTTP or validation)."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(f"HTTP {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail

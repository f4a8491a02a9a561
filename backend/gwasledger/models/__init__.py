# SPDX-License-Identifier: Apache-2.0
"""SQLModel table definitions."""
from gwasledger.models.dataset import AnalysisResult, Dataset
from gwasledger.models.event import LedgerEvent
from gwasledger.models.kv import KeyValueEntry
from gwasledger.models.request import DecryptionRequest

__all__ = [
    "AnalysisResult",
    "Dataset",
    "DecryptionRequest",
    "KeyValueEntry",
    "LedgerEvent",
]

# SPDX-License-Identifier: Apache-2.0
"""FHE-GWAS client SDK: key/value dataset synchronizer and ledger client."""
from .client import LedgerClient
from .store import HttpKeyValueStore, InMemoryStore
from .synchronizer import DatasetSynchronizer

__all__ = ["DatasetSynchronizer", "HttpKeyValueStore", "InMemoryStore", "LedgerClient"]

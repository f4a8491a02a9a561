# SPDX-License-Identifier: Apache-2.0
"""Key/value stores the synchronizer reads and writes: get(key) -> bytes, set(key, bytes)."""
from __future__ import annotations

import base64
import threading
from abc import ABC, abstractmethod

import requests

from gwassync.exceptions import StoreError


class KeyValueStore(ABC):
    """Plain store. Missing keys read as b""."""

    @abstractmethod
    def get(self, key: str) -> bytes:
        ...

    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        ...

    def is_available(self) -> bool:
        return True


class VersionedKeyValueStore(KeyValueStore):
    """Store with a per-key version counter (0 = never written) and compare-and-swap."""

    @abstractmethod
    def get_versioned(self, key: str) -> tuple[bytes, int]:
        ...

    @abstractmethod
    def compare_and_set(self, key: str, value: bytes, expected_version: int) -> bool:
        """Write only if the key is still at expected_version. False when another writer got there first."""

    def get(self, key: str) -> bytes:
        return self.get_versioned(key)[0]


class InMemoryStore(VersionedKeyValueStore):
    """Thread-safe dict-backed store for local use and tests."""

    def __init__(self, initial: dict[str, bytes] | None = None):
        self._data: dict[str, tuple[bytes, int]] = {k: (v, 1) for k, v in (initial or {}).items()}
        self._lock = threading.Lock()

    def get_versioned(self, key: str) -> tuple[bytes, int]:
        with self._lock:
            return self._data.get(key, (b"", 0))

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            _, version = self._data.get(key, (b"", 0))
            self._data[key] = (bytes(value), version + 1)

    def compare_and_set(self, key: str, value: bytes, expected_version: int) -> bool:
        with self._lock:
            _, version = self._data.get(key, (b"", 0))
            if version != expected_version:
                return False
            self._data[key] = (bytes(value), version + 1)
            return True


class HttpKeyValueStore(VersionedKeyValueStore):
    """Ledger /kv endpoints over HTTP."""

    def __init__(self, api_base_url: str, session: requests.Session | None = None, timeout: float = 30.0):
        self.api_base_url = api_base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _url(self, key: str) -> str:
        return f"{self.api_base_url}/kv/{key}"

    def get_versioned(self, key: str) -> tuple[bytes, int]:
        try:
            resp = self.session.get(self._url(key), timeout=self.timeout)
        except requests.RequestException as e:
            raise StoreError(f"GET {key} failed: {e}") from e
        if resp.status_code != 200:
            raise StoreError(f"GET {key} failed: HTTP {resp.status_code} {resp.text[:200]}")
        body = resp.json()
        return base64.b64decode(body.get("value") or ""), int(body.get("version", 0))

    def _put(self, key: str, value: bytes, expected_version: int | None):
        payload = {"value": base64.b64encode(value).decode("ascii"), "expected_version": expected_version}
        try:
            return self.session.put(self._url(key), json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise StoreError(f"PUT {key} failed: {e}") from e

    def set(self, key: str, value: bytes) -> None:
        resp = self._put(key, value, None)
        if resp.status_code != 200:
            raise StoreError(f"PUT {key} failed: HTTP {resp.status_code} {resp.text[:200]}")

    def compare_and_set(self, key: str, value: bytes, expected_version: int) -> bool:
        resp = self._put(key, value, expected_version)
        if resp.status_code == 409:
            return False
        if resp.status_code != 200:
            raise StoreError(f"PUT {key} failed: HTTP {resp.status_code} {resp.text[:200]}")
        return True

    def is_available(self) -> bool:
        try:
            resp = self.session.get(f"{self.api_base_url}/system/health", timeout=self.timeout)
        except requests.RequestException:
            return False
        return resp.status_code == 200 and resp.json().get("status") == "ok"

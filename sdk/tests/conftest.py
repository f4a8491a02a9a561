# SPDX-License-Identifier: Apache-2.0
"""pytest fixtures for the client SDK."""
import itertools

import pytest

from gwassync.records import DatasetDraft
from gwassync.store import InMemoryStore, KeyValueStore
from gwassync.synchronizer import DatasetSynchronizer


class DictStore(KeyValueStore):
    """Plain last-write-wins store with no versions."""

    def __init__(self, initial=None, available=True):
        self.data = dict(initial or {})
        self.available = available

    def get(self, key):
        return self.data.get(key, b"")

    def set(self, key, value):
        self.data[key] = bytes(value)

    def is_available(self):
        return self.available


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("no JSON body")
        return self._body


class FakeSession:
    """Records calls and replays queued responses (requests.Session stand-in)."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, **kwargs):
        return self._next("GET", url, **kwargs)

    def put(self, url, **kwargs):
        return self._next("PUT", url, **kwargs)

    def request(self, method, url, **kwargs):
        return self._next(method, url, **kwargs)


def make_synchronizer(store, prefix="id", start=1000):
    """Deterministic ids (<prefix>-1, <prefix>-2, ...) and a clock that ticks one second per call."""
    counter = itertools.count(1)
    ticks = itertools.count(start)
    return DatasetSynchronizer(store, id_factory=lambda: f"{prefix}-{next(counter)}", clock=lambda: next(ticks))


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def sync(store):
    return make_synchronizer(store)


@pytest.fixture
def draft():
    return DatasetDraft(study_type="Type 2 diabetes", description="cohort A", genomic_data="rs123:AG,rs456:CC")


@pytest.fixture
def plain_store():
    return DictStore()


@pytest.fixture
def make_sync():
    return make_synchronizer


@pytest.fixture
def fake_session():
    """Factory: fake_session((200, {...}), (409, None, "conflict"), requests.ConnectionError())."""

    def factory(*responses):
        return FakeSession(*[r if isinstance(r, Exception) else FakeResponse(*r) for r in responses])

    return factory

# SPDX-License-Identifier: Apache-2.0
"""pytest fixtures for backend tests."""
import json
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

from gwasledger.config import settings  # noqa: E402
from gwasledger.database import engine  # noqa: E402
from gwasledger.main import create_app  # noqa: E402
from gwasledger.services.ledger_service import GwasLedger  # noqa: E402
from gwasledger.services.oracle_service import DecryptionOracle, ProofVerifier  # noqa: E402

ORACLE_KEY = "test-oracle-proof-key"


class FakeFheBackend:
    """Stand-in ciphertexts for workflow tests: tagged JSON, never inspected by the ledger."""

    def encrypt(self, values):
        return b"fake-ct:" + json.dumps([int(v) for v in values]).encode()

    def decrypt(self, handle):
        if not handle.startswith(b"fake-ct:"):
            raise ValueError("not a ciphertext")
        return json.loads(handle[len(b"fake-ct:"):])

    def public_context(self):
        return b"fake-public-context"


@pytest.fixture(autouse=True)
def fresh_db():
    """Every test starts with empty tables on the shared in-memory engine."""
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture
def backend():
    return FakeFheBackend()


@pytest.fixture
def oracle(backend):
    return DecryptionOracle(backend, ORACLE_KEY)


@pytest.fixture
def ledger(backend, oracle):
    return GwasLedger(engine, backend=backend, oracle=oracle, verifier=ProofVerifier(ORACLE_KEY))


@pytest.fixture
def client(ledger):
    """FastAPI test client around the injected ledger."""
    with TestClient(create_app(ledger=ledger)) as c:
        yield c


@pytest.fixture
def oracle_headers():
    return {"X-Oracle-Token": settings.oracle_token}


# Cases carry more alternate alleles than controls.
GENOTYPES = [2, 1, 1, 0, 0, 0, 1, 0]
PHENOTYPES = [1, 1, 1, 1, 0, 0, 0, 0]


@pytest.fixture
def samples():
    return list(GENOTYPES), list(PHENOTYPES)

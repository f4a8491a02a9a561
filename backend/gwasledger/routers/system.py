# SPDX-License-Identifier: Apache-2.0
"""Health, public context, event chain, and association test registry."""
import sys

from fastapi import APIRouter, Depends
from sqlmodel import Session

from gwasledger.core.clock import as_utc
from gwasledger.core.statistics import ASSOCIATION_TEST_REGISTRY
from gwasledger.schemas import b64encode_bytes
from gwasledger.services.event_service import list_events, verify_event_chain
from gwasledger.services.ledger_service import GwasLedger, get_ledger

router = APIRouter(tags=["system"])


@router.get("/health")
def health():
    """Liveness/readiness (the dashboard's isAvailable check)."""
    return {"status": "ok"}


@router.get("/public-context")
def system_public_context(ledger: GwasLedger = Depends(get_ledger)):
    """Public BFV context for client-side encryption."""
    return {"context": b64encode_bytes(ledger.backend.public_context())}


@router.get("/events")
def system_events(dataset_id: int | None = None, ledger: GwasLedger = Depends(get_ledger)):
    with Session(ledger.engine) as session:
        return [
            {
                "id": e.id,
                "dataset_id": e.dataset_id,
                "event_type": e.event_type,
                "actor": e.actor,
                "details": e.details,
                "entry_hash": e.entry_hash,
                "created_at": as_utc(e.created_at).isoformat(),
            }
            for e in list_events(session, dataset_id)
        ]


@router.get("/events/verify")
def system_events_verify(ledger: GwasLedger = Depends(get_ledger)):
    with Session(ledger.engine) as session:
        return verify_event_chain(list_events(session))


@router.get("/association-tests")
def system_association_tests(ledger: GwasLedger = Depends(get_ledger)):
    return {
        "active": ledger.association_test,
        "tests": ASSOCIATION_TEST_REGISTRY,
        "python_version": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
    }

# SPDX-License-Identifier: Apache-2.0
"""Append-only ledger events with chained hashes."""
from __future__ import annotations

import json
import logging

from sqlmodel import select

from gwasledger.config import INITIAL_HASH
from gwasledger.core.clock import as_utc, utcnow
from gwasledger.core.security import sha3_256_hex
from gwasledger.models import LedgerEvent

logger = logging.getLogger("gwasledger")

DATASET_SUBMITTED = "DatasetSubmitted"
ANALYSIS_REQUESTED = "AnalysisRequested"
ANALYSIS_COMPLETED = "AnalysisCompleted"
REVEAL_REQUESTED = "RevealRequested"
RESULT_REVEALED = "ResultRevealed"
DECRYPTION_FAILED = "DecryptionFailed"


def _entry_hash(event_type: str, actor: str, details_json: str, ts_str: str, previous_hash: str) -> str:
    return sha3_256_hex(f"{event_type}{actor}{details_json}{ts_str}{previous_hash}")


def write_event(
    session,
    event_type: str,
    dataset_id: int | None,
    actor: str,
    details: dict,
) -> LedgerEvent:
    """Append one event: previous_hash chain over the whole ledger, entry_hash = SHA3-256(...)."""
    last = session.exec(select(LedgerEvent).order_by(LedgerEvent.id.desc()).limit(1)).first()
    previous_hash = last.entry_hash if last else INITIAL_HASH
    now = utcnow()
    details_json = json.dumps(details, sort_keys=True)
    entry = LedgerEvent(
        dataset_id=dataset_id,
        event_type=event_type,
        actor=actor,
        details=details_json,
        previous_hash=previous_hash,
        entry_hash=_entry_hash(event_type, actor, details_json, as_utc(now).isoformat(), previous_hash),
        created_at=now,
    )
    session.add(entry)
    logger.info("ledger event %s dataset=%s actor=%s %s", event_type, dataset_id, actor, details_json)
    return entry


def list_events(session, dataset_id: int | None = None) -> list[LedgerEvent]:
    stmt = select(LedgerEvent).order_by(LedgerEvent.id.asc())
    if dataset_id is not None:
        stmt = stmt.where(LedgerEvent.dataset_id == dataset_id)
    return list(session.exec(stmt).all())


def verify_event_chain(events: list[LedgerEvent]) -> dict:
    """Recompute every entry hash and check each previous_hash link. Expects the full chain in id order."""
    previous = INITIAL_HASH
    for i, event in enumerate(events):
        expected = _entry_hash(
            event.event_type, event.actor, event.details, as_utc(event.created_at).isoformat(), event.previous_hash
        )
        if event.previous_hash != previous or event.entry_hash != expected:
            return {"valid": False, "checked": i, "broken_at": event.id}
        previous = event.entry_hash
    return {"valid": True, "checked": len(events), "broken_at": None}
